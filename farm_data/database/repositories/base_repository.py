# ==============================================================================
# BASE REPOSITORY - Generic Data Access Abstraction
# ==============================================================================
# Repository Pattern on top of the CRUD facade and the query executor
# ==============================================================================

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from pydantic import BaseModel

from farm_data.core.exceptions import InvalidParameterError, RecordNotFoundError
from farm_data.core.settings import settings
from farm_data.database.crud import CrudFacade
from farm_data.database.operations import DatabaseOperations, OperationKind
from farm_data.database.unit_of_work.uow import UnitOfWork

Payload = Union[BaseModel, Mapping[str, Any]]


class BaseRepository:
    """
    Base repository providing standard CRUD operations for one table.

    Domain repositories add hand-written queries through ``_fetch_all``
    and ``_fetch_first`` and stage multi-row writes in a UnitOfWork.

    Payloads may be plain mappings or pydantic models; models are
    dumped with ``exclude_unset=True``.

    Attributes:
        _crud: CRUD facade
        _table: Whitelisted table name

    Example:
        >>> class BreedRepository(BaseRepository):
        ...     def __init__(self, crud):
        ...         super().__init__(crud, "breeds")
        ...
        >>> repo = BreedRepository(crud)
        >>> await repo.find_many({"species": "cattle"})
    """

    DEFAULT_PAGE_SIZE = 20

    def __init__(self, crud: CrudFacade, table: str) -> None:
        if crud is None or not table:
            raise ValueError("CrudFacade instance and table name are required.")
        self._crud = crud
        self._table = crud.builder.table(table)

    @property
    def crud(self) -> CrudFacade:
        return self._crud

    @property
    def ops(self) -> DatabaseOperations:
        return self._crud.ops

    @property
    def table(self) -> str:
        return self._table

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    @staticmethod
    def _to_dict(data: Payload) -> Dict[str, Any]:
        """Convert a pydantic model or mapping into a column dictionary."""
        if isinstance(data, BaseModel):
            return data.model_dump(exclude_unset=True)
        if isinstance(data, Mapping):
            return dict(data)
        raise InvalidParameterError(
            "Record data must be a mapping or model",
            details={"type": type(data).__name__},
        )

    @staticmethod
    def _actor(user_id: Any) -> Optional[str]:
        return None if user_id is None else str(user_id)

    @classmethod
    def _page(cls, limit: Any, page: Any = 1) -> Tuple[int, int]:
        """Clamp a page size to [1, DB_MAX_LIMIT] and turn a 1-based page into an offset."""
        try:
            size = int(limit) if limit is not None else cls.DEFAULT_PAGE_SIZE
            number = int(page) if page is not None else 1
        except (TypeError, ValueError) as e:
            raise InvalidParameterError(
                "Pagination values must be integers",
                details={"limit": str(limit), "page": str(page)},
            ) from e
        size = max(1, min(size, settings.DB_MAX_LIMIT))
        return size, max(0, number - 1) * size

    @staticmethod
    def _direction(value: Any) -> str:
        return "ASC" if isinstance(value, str) and value.upper() == "ASC" else "DESC"

    def unit_of_work(self, user_id: Any = None) -> UnitOfWork:
        return UnitOfWork(self.ops, actor_id=self._actor(user_id))

    async def _fetch_all(
        self,
        query: str,
        params: Sequence[Any],
        user_id: Any = None,
        table: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        skip_rate_limit: bool = False,
    ) -> List[Dict[str, Any]]:
        result = await self.ops.execute_query(
            query,
            list(params),
            operation=OperationKind.QUERY,
            table=table or self._table,
            actor_id=self._actor(user_id),
            skip_rate_limit=skip_rate_limit,
            context=context,
        )
        return result.data

    async def _fetch_first(
        self,
        query: str,
        params: Sequence[Any],
        user_id: Any = None,
        table: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        skip_rate_limit: bool = False,
    ) -> Optional[Dict[str, Any]]:
        result = await self.ops.execute_query(
            query,
            list(params),
            operation=OperationKind.FIRST,
            table=table or self._table,
            actor_id=self._actor(user_id),
            skip_rate_limit=skip_rate_limit,
            context=context,
        )
        return result.data

    async def has_farm_access(self, farm_id: Any, user_id: Any) -> bool:
        """Check farm membership of ``user_id``."""
        if farm_id is None or user_id is None:
            return False
        members = await self._crud.count(
            "farm_members",
            {"farm_id": farm_id, "user_id": user_id},
            actor_id=self._actor(user_id),
            skip_rate_limit=True,
        )
        return members > 0

    async def _require_farm_access(self, farm_id: Any, user_id: Any) -> None:
        """
        Raises:
            RecordNotFoundError: If the farm is missing or not visible to the user
        """
        if not await self.has_farm_access(farm_id, user_id):
            raise RecordNotFoundError(
                "Farm not found or access denied",
                resource_type="farms",
                resource_id=farm_id,
            )

    # ==========================================================================
    # CRUD OPERATIONS
    # ==========================================================================

    async def find_by_id(self, record_id: Any, user_id: Any = None) -> Optional[Dict[str, Any]]:
        return await self._crud.find_by_id(
            self._table, record_id, actor_id=self._actor(user_id)
        )

    async def find_many(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        user_id: Any = None,
        **options: Any,
    ) -> List[Dict[str, Any]]:
        return await self._crud.find_many(
            self._table, filters, actor_id=self._actor(user_id), **options
        )

    async def count(
        self,
        filters: Optional[Mapping[str, Any]] = None,
        user_id: Any = None,
    ) -> int:
        return await self._crud.count(
            self._table, filters, actor_id=self._actor(user_id)
        )

    async def exists(self, record_id: Any, user_id: Any = None) -> bool:
        return await self._crud.exists(
            self._table, {"id": record_id}, actor_id=self._actor(user_id)
        )

    async def create(self, data: Payload, user_id: Any = None) -> Dict[str, Any]:
        return await self._crud.create(
            self._table, self._to_dict(data), actor_id=self._actor(user_id)
        )

    async def update_by_id(
        self,
        record_id: Any,
        data: Payload,
        user_id: Any = None,
    ) -> Optional[Dict[str, Any]]:
        return await self._crud.update_by_id(
            self._table, record_id, self._to_dict(data), actor_id=self._actor(user_id)
        )

    async def delete_by_id(self, record_id: Any, user_id: Any = None) -> Dict[str, Any]:
        return await self._crud.delete_by_id(
            self._table, record_id, actor_id=self._actor(user_id)
        )
