# ==============================================================================
# FARM REPOSITORY
# ==============================================================================
# Farms, ownership and membership-based access
# ==============================================================================

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from farm_data.core.exceptions import RecordNotFoundError
from farm_data.core.settings import settings
from farm_data.database.crud import CrudFacade
from farm_data.database.operations import OperationKind, QueryRequest
from farm_data.database.repositories.base_repository import BaseRepository, Payload

logger = logging.getLogger(__name__)

# Open tasks are every status except completed
_STATS_COLUMNS = """
    (SELECT COUNT(*) FROM animals a WHERE a.farm_id = f.id) AS animal_count,
    (SELECT COUNT(*) FROM fields fd WHERE fd.farm_id = f.id) AS field_count,
    (SELECT COUNT(*) FROM tasks t
      WHERE t.farm_id = f.id AND t.status != 'completed') AS pending_tasks
"""


class FarmRepository(BaseRepository):
    """
    Repository for farms.

    A user sees a farm only through a ``farm_members`` row. Creating a
    farm writes the farm, the owner's membership and a seed statistics
    row in one transaction.
    """

    def __init__(self, crud: CrudFacade) -> None:
        super().__init__(crud, "farms")

    async def has_user_access(self, farm_id: Any, user_id: Any) -> bool:
        return await self.has_farm_access(farm_id, user_id)

    async def find_by_owner(
        self, owner_id: Any, limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Farms owned by the user, newest first, with the stats counts."""
        query = f"""
            SELECT f.*, {_STATS_COLUMNS}
            FROM farms f
            WHERE f.owner_id = ?
            ORDER BY f.created_at DESC, f.id DESC
            LIMIT ?
        """
        size, _ = self._page(limit if limit is not None else settings.DB_MAX_LIMIT)
        return await self._fetch_all(query, [owner_id, size], owner_id)

    async def find_by_user(self, user_id: Any) -> List[Dict[str, Any]]:
        """Farms the user belongs to, with the stats counts and the role as ``user_role``."""
        query = f"""
            SELECT f.*, fm.role AS user_role, {_STATS_COLUMNS}
            FROM farms f
            JOIN farm_members fm ON fm.farm_id = f.id
            WHERE fm.user_id = ?
            ORDER BY f.created_at DESC
        """
        return await self._fetch_all(query, [user_id], user_id)

    async def find_with_stats(self, farm_id: Any, user_id: Any) -> Optional[Dict[str, Any]]:
        """
        Farm row plus ``animal_count``, ``field_count`` and ``pending_tasks``.

        Returns:
            None if the farm does not exist or the user is not a member
        """
        query = f"""
            SELECT f.*, fm.role AS user_role, {_STATS_COLUMNS}
            FROM farms f
            JOIN farm_members fm ON fm.farm_id = f.id
            WHERE f.id = ? AND fm.user_id = ?
            LIMIT 1
        """
        return await self._fetch_first(query, [farm_id, user_id], user_id)

    async def create_farm(self, data: Payload, owner_id: Any) -> Dict[str, Any]:
        """
        Create a farm with its owner membership and an initial statistics row.

        The three inserts are one batch; the membership and statistics
        rows pick up the farm id through ``last_insert_rowid()``.

        Raises:
            TransactionError: If any insert fails (nothing is written)
        """
        payload = {**self._to_dict(data), "owner_id": owner_id}

        async with self.unit_of_work(owner_id) as uow:
            farm_index = uow.add(self._crud.build_insert("farms", payload))
            uow.add(QueryRequest(
                query=(
                    "INSERT INTO farm_members (farm_id, user_id, role) "
                    "VALUES (last_insert_rowid(), ?, 'owner')"
                ),
                params=[owner_id],
                operation=OperationKind.RUN,
                table="farm_members",
            ))
            uow.add(QueryRequest(
                query=(
                    "INSERT INTO farm_statistics (farm_id, report_date) "
                    "SELECT farm_id, ? FROM farm_members WHERE id = last_insert_rowid()"
                ),
                params=[date.today()],
                operation=OperationKind.RUN,
                table="farm_statistics",
            ))

        farm_id = uow.result.results[farm_index].last_insert_id
        logger.info(f"Created farm {farm_id} for owner {owner_id}")

        farm = await self._crud.find_by_id(
            "farms", farm_id, actor_id=self._actor(owner_id), skip_rate_limit=True
        )
        return farm or {**payload, "id": farm_id}

    async def delete_farm(self, farm_id: Any, user_id: Any) -> Dict[str, Any]:
        """
        Delete a farm owned by ``user_id`` together with its memberships
        and statistics.

        Raises:
            RecordNotFoundError: Farm missing or not owned by the user
            DependencyViolationError: Other rows still reference the farm
        """
        farm = await self._crud.find_by_id(
            "farms", farm_id, actor_id=self._actor(user_id)
        )
        if not farm or str(farm.get("owner_id")) != str(user_id):
            raise RecordNotFoundError(
                "Farm not found or access denied",
                resource_type="farms",
                resource_id=farm_id,
            )

        await self._crud.check_dependencies(
            "farms",
            farm_id,
            ignore=("farm_members", "farm_statistics"),
            actor_id=self._actor(user_id),
        )

        async with self.unit_of_work(user_id) as uow:
            uow.add(self._crud.build_delete_where("farm_members", {"farm_id": farm_id}))
            uow.add(self._crud.build_delete_where("farm_statistics", {"farm_id": farm_id}))
            farm_index = uow.add(self._crud.build_delete("farms", farm_id))

        changes = uow.result.results[farm_index].changes
        logger.info(f"Deleted farm {farm_id} (owner {user_id})")
        return {"success": True, "changes": changes}
