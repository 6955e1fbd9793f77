# ==============================================================================
# ANIMAL REPOSITORY
# ==============================================================================
# Livestock listings scoped to the user's farms, with breed metadata and
# record counts
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Tuple

from farm_data.core.exceptions import RecordNotFoundError
from farm_data.database.crud import CrudFacade
from farm_data.database.repositories.base_repository import BaseRepository, Payload

SORT_FIELDS = frozenset({
    "id",
    "name",
    "species",
    "breed",
    "birth_date",
    "health_status",
    "current_weight",
    "acquisition_date",
    "created_at",
    "updated_at",
})

_ACCESS_JOIN = """
    FROM animals a
    JOIN farm_members fm ON fm.farm_id = a.farm_id AND fm.user_id = ?
    JOIN farms fa ON fa.id = a.farm_id
"""


class AnimalRepository(BaseRepository):
    """
    Repository for animals.

    Filters accepted by the listing queries: ``species``, ``breed``,
    ``health_status``, ``farm_id`` and ``search`` (name or
    identification tag substring).
    """

    def __init__(self, crud: CrudFacade) -> None:
        super().__init__(crud, "animals")

    @staticmethod
    def _filters(filters: Optional[Mapping[str, Any]]) -> Tuple[str, List[Any]]:
        filters = filters or {}
        clauses: List[str] = []
        params: List[Any] = []

        for column in ("species", "breed", "health_status", "farm_id"):
            if filters.get(column) is not None:
                clauses.append(f"a.{column} = ?")
                params.append(filters[column])

        if filters.get("search"):
            clauses.append("(a.name LIKE ? OR a.identification_tag LIKE ?)")
            pattern = f"%{filters['search']}%"
            params.extend([pattern, pattern])

        where = "".join(f" AND {clause}" for clause in clauses)
        return where, params

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
        Animals on farms the user belongs to.

        Each row carries ``farm_name``, breed metadata (``breed_origin``,
        ``breed_purpose``, ``breed_avg_weight``, ``breed_temperament``)
        and ``health_records_count`` / ``production_records_count``.

        Args:
            sort_by: Column from SORT_FIELDS, unknown values sort by created_at
            sort_direction: ASC, anything else is DESC
            limit: Page size, default 20, clamped to [1, DB_MAX_LIMIT]
            page: 1-based page number
        """
        where, params = self._filters(filters)
        column = sort_by if sort_by in SORT_FIELDS else "created_at"
        size, offset = self._page(limit, page)

        query = f"""
            SELECT a.*,
                   fa.name AS farm_name,
                   b.origin_country AS breed_origin,
                   b.purpose AS breed_purpose,
                   b.average_weight AS breed_avg_weight,
                   b.temperament AS breed_temperament,
                   COUNT(DISTINCT hr.id) AS health_records_count,
                   COUNT(DISTINCT pr.id) AS production_records_count
            {_ACCESS_JOIN}
            LEFT JOIN breeds b ON b.name = a.breed AND b.species = a.species
            LEFT JOIN animal_health_records hr ON hr.animal_id = a.id
            LEFT JOIN animal_production pr ON pr.animal_id = a.id
            WHERE 1 = 1{where}
            GROUP BY a.id, fa.name, b.origin_country, b.purpose,
                     b.average_weight, b.temperament
            ORDER BY a.{column} {self._direction(sort_direction)}
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
        query = f"""
            SELECT COUNT(DISTINCT a.id) AS total
            {_ACCESS_JOIN}
            WHERE 1 = 1{where}
        """
        row = await self._fetch_first(query, [user_id, *params], user_id)
        return int(row["total"]) if row else 0

    async def find_with_details(self, animal_id: Any, user_id: Any) -> Optional[Dict[str, Any]]:
        """
        One animal with farm, breed, parent names and record counts.

        Returns:
            None if the animal does not exist or is on a farm the user
            cannot see
        """
        query = f"""
            SELECT a.*,
                   fa.name AS farm_name,
                   b.origin_country AS breed_origin,
                   b.purpose AS breed_purpose,
                   b.average_weight AS breed_avg_weight,
                   b.temperament AS breed_temperament,
                   father.name AS father_name,
                   mother.name AS mother_name,
                   (SELECT COUNT(*) FROM animal_health_records hr
                     WHERE hr.animal_id = a.id) AS health_records_count,
                   (SELECT COUNT(*) FROM animal_production pr
                     WHERE pr.animal_id = a.id) AS production_records_count,
                   (SELECT COUNT(*) FROM animal_breeding br
                     WHERE br.animal_id = a.id OR br.partner_id = a.id) AS breeding_records_count
            {_ACCESS_JOIN}
            LEFT JOIN breeds b ON b.name = a.breed AND b.species = a.species
            LEFT JOIN animals father ON father.id = a.father_id
            LEFT JOIN animals mother ON mother.id = a.mother_id
            WHERE a.id = ?
            LIMIT 1
        """
        return await self._fetch_first(query, [user_id, animal_id], user_id)

    async def create_with_validation(self, data: Payload, user_id: Any) -> Dict[str, Any]:
        """
        Create an animal after checking farm access and, when a breed is
        given, that the breed exists for the species.

        Raises:
            RecordNotFoundError: Farm not visible to the user, or unknown breed
        """
        payload = self._to_dict(data)
        await self._require_farm_access(payload.get("farm_id"), user_id)

        breed = payload.get("breed")
        if breed:
            known = await self._fetch_first(
                "SELECT id FROM breeds WHERE name = ? AND species = ? LIMIT 1",
                [breed, payload.get("species")],
                user_id,
                table="breeds",
                skip_rate_limit=True,
            )
            if not known:
                raise RecordNotFoundError(
                    f'Breed "{breed}" not found for species "{payload.get("species")}"',
                    resource_type="breeds",
                    resource_id=breed,
                )

        return await self._crud.create(
            "animals", payload, actor_id=self._actor(user_id)
        )
