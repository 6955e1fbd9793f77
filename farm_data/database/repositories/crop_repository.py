# ==============================================================================
# CROP REPOSITORY
# ==============================================================================

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Mapping, Optional

from farm_data.database.crud import CrudFacade
from farm_data.database.operations import OperationKind, QueryRequest
from farm_data.database.repositories.base_repository import BaseRepository, Payload

logger = logging.getLogger(__name__)

ACTIVITY_HISTORY_LIMIT = 20
OBSERVATION_HISTORY_LIMIT = 10


class CropRepository(BaseRepository):
    """Repository for crops and their activity/observation history."""

    def __init__(self, crud: CrudFacade) -> None:
        super().__init__(crud, "crops")

    async def find_by_user_access(
        self,
        user_id: Any,
        filters: Optional[Mapping[str, Any]] = None,
        *,
        limit: Any = None,
        page: Any = 1,
    ) -> List[Dict[str, Any]]:
        """
        Crops on the user's farms, newest first.

        Filters: ``farm_id``, ``field_id``, ``status``, ``crop_type``.
        Rows carry ``field_name``, ``farm_name``, ``activity_count`` and
        ``observation_count``.
        """
        filters = filters or {}
        params: List[Any] = [user_id]
        where = ""
        for column in ("farm_id", "field_id", "status", "crop_type"):
            if filters.get(column) is not None:
                where += f" AND c.{column} = ?"
                params.append(filters[column])

        size, offset = self._page(limit, page)
        query = f"""
            SELECT c.*,
                   fd.name AS field_name,
                   fa.name AS farm_name,
                   COUNT(DISTINCT ca.id) AS activity_count,
                   COUNT(DISTINCT co.id) AS observation_count
            FROM crops c
            JOIN farm_members fm ON fm.farm_id = c.farm_id AND fm.user_id = ?
            JOIN farms fa ON fa.id = c.farm_id
            LEFT JOIN fields fd ON fd.id = c.field_id
            LEFT JOIN crop_activities ca ON ca.crop_id = c.id
            LEFT JOIN crop_observations co ON co.crop_id = c.id
            WHERE 1 = 1{where}
            GROUP BY c.id, fd.name, fa.name
            ORDER BY c.created_at DESC
            LIMIT ? OFFSET ?
        """
        return await self._fetch_all(query, [*params, size, offset], user_id)

    async def create_with_activity(self, data: Payload, user_id: Any) -> Dict[str, Any]:
        """
        Create a crop and its initial "planted" activity atomically.

        Raises:
            RecordNotFoundError: Farm not visible to the user
            TransactionError: Either insert failed (nothing is written)
        """
        payload = {**self._to_dict(data), "created_by": user_id}
        await self._require_farm_access(payload.get("farm_id"), user_id)

        description = f"Planted {payload.get('crop_type')}"
        if payload.get("crop_variety"):
            description += f" ({payload['crop_variety']})"

        async with self.unit_of_work(user_id) as uow:
            crop_index = uow.add(self._crud.build_insert("crops", payload))
            uow.add(QueryRequest(
                query=(
                    "INSERT INTO crop_activities "
                    "(crop_id, activity_type, activity_date, description, created_by) "
                    "VALUES (last_insert_rowid(), 'planted', ?, ?, ?)"
                ),
                params=[date.today(), description, user_id],
                operation=OperationKind.RUN,
                table="crop_activities",
            ))

        crop_id = uow.result.results[crop_index].last_insert_id
        logger.debug(f"Created crop {crop_id} with planting activity")

        crop = await self._crud.find_by_id(
            "crops", crop_id, actor_id=self._actor(user_id), skip_rate_limit=True
        )
        return crop or {**payload, "id": crop_id}

    async def find_with_relations(
        self,
        crop_id: Any,
        user_id: Any,
        include_activities: bool = False,
        include_observations: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        One crop with field/farm names and, optionally, its most recent
        activities (up to 20) and observations (up to 10).
        """
        query = """
            SELECT c.*, fd.name AS field_name, fa.name AS farm_name
            FROM crops c
            JOIN farm_members fm ON fm.farm_id = c.farm_id AND fm.user_id = ?
            JOIN farms fa ON fa.id = c.farm_id
            LEFT JOIN fields fd ON fd.id = c.field_id
            WHERE c.id = ?
            LIMIT 1
        """
        crop = await self._fetch_first(query, [user_id, crop_id], user_id)
        if not crop:
            return None

        if include_activities:
            crop["activities"] = await self._fetch_all(
                "SELECT * FROM crop_activities WHERE crop_id = ? "
                "ORDER BY activity_date DESC LIMIT ?",
                [crop_id, ACTIVITY_HISTORY_LIMIT],
                user_id,
                table="crop_activities",
                skip_rate_limit=True,
            )
        if include_observations:
            crop["observations"] = await self._fetch_all(
                "SELECT * FROM crop_observations WHERE crop_id = ? "
                "ORDER BY observation_date DESC LIMIT ?",
                [crop_id, OBSERVATION_HISTORY_LIMIT],
                user_id,
                table="crop_observations",
                skip_rate_limit=True,
            )
        return crop
