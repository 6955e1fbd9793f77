# ==============================================================================
# TASK REPOSITORY
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from farm_data.database.crud import CrudFacade
from farm_data.database.repositories.base_repository import BaseRepository, Payload

SORT_FIELDS = frozenset({
    "id",
    "title",
    "status",
    "priority",
    "task_category",
    "due_date",
    "completed_date",
    "created_at",
    "updated_at",
})

_ACCESS_JOIN = """
    FROM tasks t
    JOIN farm_members fm ON fm.farm_id = t.farm_id AND fm.user_id = ?
    JOIN farms fa ON fa.id = t.farm_id
"""


class TaskRepository(BaseRepository):
    """
    Repository for farm tasks.

    Listing filters: ``status``, ``priority``, ``task_category``,
    ``assigned_to``, ``farm_id``, ``due_date_from``, ``due_date_to`` and
    ``search`` (title or description substring).
    """

    def __init__(self, crud: CrudFacade) -> None:
        super().__init__(crud, "tasks")

    @staticmethod
    def _filters(filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
        filters = filters or {}
        clauses: List[str] = []
        params: List[Any] = []

        for column in ("status", "priority", "task_category", "assigned_to", "farm_id"):
            if filters.get(column) is not None:
                clauses.append(f"t.{column} = ?")
                params.append(filters[column])

        if filters.get("due_date_from"):
            clauses.append("date(t.due_date) >= date(?)")
            params.append(filters["due_date_from"])
        if filters.get("due_date_to"):
            clauses.append("date(t.due_date) <= date(?)")
            params.append(filters["due_date_to"])

        if filters.get("search"):
            clauses.append("(t.title LIKE ? OR t.description LIKE ?)")
            pattern = f"%{filters['search']}%"
            params.extend([pattern, pattern])

        return "".join(f" AND {clause}" for clause in clauses), params

    async def find_by_user_access(
        self,
        user_id: Any,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        sort_by: Optional[str] = None,
        sort_direction: Optional[str] = None,
        limit: Any = None,
        page: Any = 1,
    ) -> List[Dict[str, Any]]:
        """
        Tasks on the user's farms with people names and work totals.

        Rows carry ``farm_name``, ``created_by_name``, ``assigned_to_name``,
        ``time_log_count``, ``total_logged_hours`` and ``comment_count``.
        """
        where, params = self._filters(filters)
        column = sort_by if sort_by in SORT_FIELDS else "created_at"
        size, offset = self._page(limit, page)

        query = f"""
            SELECT t.*,
                   fa.name AS farm_name,
                   creator.name AS created_by_name,
                   assignee.name AS assigned_to_name,
                   (SELECT COUNT(*) FROM task_time_logs tl
                     WHERE tl.task_id = t.id) AS time_log_count,
                   (SELECT COALESCE(SUM(tl.total_hours), 0) FROM task_time_logs tl
                     WHERE tl.task_id = t.id) AS total_logged_hours,
                   (SELECT COUNT(*) FROM task_comments tc
                     WHERE tc.task_id = t.id) AS comment_count
            {_ACCESS_JOIN}
            LEFT JOIN users creator ON creator.id = t.created_by
            LEFT JOIN users assignee ON assignee.id = t.assigned_to
            WHERE 1 = 1{where}
            ORDER BY t.{column} {self._direction(sort_direction)}
            LIMIT ? OFFSET ?
        """
        return await self._fetch_all(
            query, [user_id, *params, size, offset], user_id
        )

    async def count_by_user_access(
        self,
        user_id: Any,
        filters: Optional[Mapping[str, Any]] = None,
    ) -> int:
        where, params = self._filters(filters)
        query = f"SELECT COUNT(*) AS total {_ACCESS_JOIN} WHERE 1 = 1{where}"
        row = await self._fetch_first(query, [user_id, *params], user_id)
        return int(row["total"]) if row else 0

    async def create_task(self, data: Payload, user_id: Any) -> Dict[str, Any]:
        """
        Raises:
            RecordNotFoundError: Farm not visible to the user
        """
        payload = {**self._to_dict(data), "created_by": user_id}
        await self._require_farm_access(payload.get("farm_id"), user_id)
        return await self._crud.create("tasks", payload, actor_id=self._actor(user_id))
