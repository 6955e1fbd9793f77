# ==============================================================================
# FINANCE REPOSITORY
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from farm_data.database.crud import CrudFacade
from farm_data.database.repositories.base_repository import BaseRepository, Payload

SORT_FIELDS = frozenset({
    "id",
    "entry_date",
    "type",
    "amount",
    "account",
    "budget_category",
    "created_at",
})

_ACCESS_JOIN = """
    FROM finance_entries fe
    JOIN farm_members fm ON fm.farm_id = fe.farm_id AND fm.user_id = ?
    JOIN farms fa ON fa.id = fe.farm_id
"""


class FinanceRepository(BaseRepository):
    """
    Repository for income and expense entries.

    ``net_amount`` is the amount signed by type: positive for income,
    negative for anything else.
    """

    def __init__(self, crud: CrudFacade) -> None:
        super().__init__(crud, "finance_entries")

    @staticmethod
    def _filters(filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
        filters = filters or {}
        clauses: List[str] = []
        params: List[Any] = []

        for column in ("farm_id", "type", "budget_category"):
            if filters.get(column) is not None:
                clauses.append(f"fe.{column} = ?")
                params.append(filters[column])

        if filters.get("entry_date_from"):
            clauses.append("date(fe.entry_date) >= date(?)")
            params.append(filters["entry_date_from"])
        if filters.get("entry_date_to"):
            clauses.append("date(fe.entry_date) <= date(?)")
            params.append(filters["entry_date_to"])

        if filters.get("search"):
            clauses.append("(fe.description LIKE ? OR fe.account LIKE ?)")
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
        where, params = self._filters(filters)
        column = sort_by if sort_by in SORT_FIELDS else "entry_date"
        size, offset = self._page(limit, page)

        query = f"""
            SELECT fe.*,
                   fa.name AS farm_name,
                   CASE WHEN fe.type = 'income' THEN fe.amount
                        ELSE -fe.amount END AS net_amount
            {_ACCESS_JOIN}
            WHERE 1 = 1{where}
            ORDER BY fe.{column} {self._direction(sort_direction)}, fe.id DESC
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

    async def summarize(
        self,
        farm_id: Any,
        user_id: Any,
        entry_date_from: Optional[str] = None,
        entry_date_to: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Income, expense and net totals for one farm.

        Returns:
            {"farm_id", "total_income", "total_expenses", "net", "entry_count"}

        Raises:
            RecordNotFoundError: Farm not visible to the user
        """
        await self._require_farm_access(farm_id, user_id)
        where, params = self._filters({
            "farm_id": farm_id,
            "entry_date_from": entry_date_from,
            "entry_date_to": entry_date_to,
        })
        query = f"""
            SELECT COALESCE(SUM(CASE WHEN fe.type = 'income'
                                     THEN fe.amount ELSE 0 END), 0) AS total_income,
                   COALESCE(SUM(CASE WHEN fe.type = 'income'
                                     THEN 0 ELSE fe.amount END), 0) AS total_expenses,
                   COUNT(*) AS entry_count
            {_ACCESS_JOIN}
            WHERE 1 = 1{where}
        """
        row = await self._fetch_first(query, [user_id, *params], user_id) or {}
        income = float(row.get("total_income") or 0)
        expenses = float(row.get("total_expenses") or 0)
        return {
            "farm_id": farm_id,
            "total_income": income,
            "total_expenses": expenses,
            "net": income - expenses,
            "entry_count": int(row.get("entry_count") or 0),
        }

    async def create_entry(self, data: Payload, user_id: Any) -> Dict[str, Any]:
        """
        Raises:
            RecordNotFoundError: Farm not visible to the user
        """
        payload = {**self._to_dict(data), "created_by": user_id}
        await self._require_farm_access(payload.get("farm_id"), user_id)
        return await self._crud.create(
            "finance_entries", payload, actor_id=self._actor(user_id)
        )
