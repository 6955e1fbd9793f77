# ==============================================================================
# CRUD FACADE - Generic Table Access
# ==============================================================================
# Whitelisted single-table CRUD on top of DatabaseOperations
# Deletes are blocked while dependent rows exist
# ==============================================================================

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from farm_data.core.constants import DEPENDENCY_RULES, DependencyRule
from farm_data.core.exceptions import DependencyViolationError
from farm_data.database.operations import DatabaseOperations, QueryRequest
from farm_data.database.query_builder import Columns, Filters, QueryBuilder

logger = logging.getLogger(__name__)


class CrudFacade:
    """
    Generic CRUD over whitelisted tables.

    Every call is routed through the query executor, so it is rate
    limited, validated, retried and timed like any other query.
    Follow-up reads issued internally (re-fetch after a write,
    dependency counts) are not charged to the actor again.

    Attributes:
        ops: Query executor
        builder: SQL builder enforcing the table whitelist
        dependency_rules: Parent table -> rules checked before delete

    Example:
        >>> crud = CrudFacade(ops)
        >>> farm = await crud.create("farms", {"name": "Acme", "owner_id": 1})
        >>> await crud.find_many("farms", {"owner_id": 1}, limit=10)
    """

    def __init__(
        self,
        ops: DatabaseOperations,
        dependency_rules: Mapping[str, Tuple[DependencyRule, ...]] = DEPENDENCY_RULES,
        builder: Optional[QueryBuilder] = None,
    ) -> None:
        self.ops = ops
        self.dependency_rules = dependency_rules
        self.builder = builder or QueryBuilder()

    # ==========================================================================
    # READ OPERATIONS
    # ==========================================================================

    async def find_by_id(
        self,
        table: str,
        record_id: Any,
        columns: Columns = "*",
        *,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
    ) -> Optional[Dict[str, Any]]:
        request = self.builder.select_by_id(table, record_id, columns)
        result = await self.ops.execute(
            request, actor_id=actor_id, skip_rate_limit=skip_rate_limit
        )
        return result.data

    async def find_many(
        self,
        table: str,
        filters: Filters = None,
        *,
        columns: Columns = "*",
        order_by: str = "created_at",
        order_direction: str = "DESC",
        limit: Any = None,
        offset: Any = 0,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
    ) -> List[Dict[str, Any]]:
        """
        Find rows matching column filters.

        Args:
            table: Whitelisted table name
            filters: Scalars for equality or {"operator", "value"} mappings
            columns: "*" or column names
            order_by: Sort column
            order_direction: ASC or DESC (anything else is DESC)
            limit: Page size, clamped to [1, DB_MAX_LIMIT]
            offset: Rows to skip, negative values become 0

        Returns:
            Matching rows
        """
        request = self.builder.select(
            table,
            filters,
            columns=columns,
            order_by=order_by,
            order_direction=order_direction,
            limit=limit,
            offset=offset,
        )
        result = await self.ops.execute(
            request, actor_id=actor_id, skip_rate_limit=skip_rate_limit
        )
        return result.data

    async def find_one(
        self,
        table: str,
        filters: Filters = None,
        **options: Any,
    ) -> Optional[Dict[str, Any]]:
        rows = await self.find_many(table, filters, limit=1, **options)
        return rows[0] if rows else None

    async def count(
        self,
        table: str,
        filters: Filters = None,
        *,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
    ) -> int:
        request = self.builder.count(table, filters)
        result = await self.ops.execute(
            request, actor_id=actor_id, skip_rate_limit=skip_rate_limit
        )
        return int(result.data["count"]) if result.data else 0

    async def exists(self, table: str, filters: Filters = None, **options: Any) -> bool:
        return await self.count(table, filters, **options) > 0

    # ==========================================================================
    # WRITE OPERATIONS
    # ==========================================================================

    async def create(
        self,
        table: str,
        data: Mapping[str, Any],
        *,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
    ) -> Dict[str, Any]:
        """
        Insert a row.

        ``id``, ``created_at`` and ``updated_at`` are never taken from
        the caller.

        Returns:
            The stored row, or the payload merged with the new id when
            the row cannot be read back
        """
        payload = self.builder.clean_payload(data)
        request = self.builder.insert(table, payload)
        result = await self.ops.execute(
            request, actor_id=actor_id, skip_rate_limit=skip_rate_limit
        )

        if result.last_insert_id:
            row = await self.find_by_id(
                table, result.last_insert_id, actor_id=actor_id, skip_rate_limit=True
            )
            if row:
                return row
        return {**payload, "id": result.last_insert_id}

    async def update_by_id(
        self,
        table: str,
        record_id: Any,
        data: Mapping[str, Any],
        *,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
    ) -> Optional[Dict[str, Any]]:
        """
        Update a row by id.

        Returns:
            The row after the update, None if no such row exists
        """
        request = self.builder.update(table, record_id, data)
        result = await self.ops.execute(
            request, actor_id=actor_id, skip_rate_limit=skip_rate_limit
        )
        if result.changes == 0:
            return None
        return await self.find_by_id(
            table, record_id, actor_id=actor_id, skip_rate_limit=True
        )

    async def check_dependencies(
        self,
        table: str,
        record_id: Any,
        ignore: Iterable[str] = (),
        *,
        actor_id: Optional[str] = None,
    ) -> None:
        """
        Raise if any dependent row references ``record_id``.

        Args:
            ignore: Child tables the caller deletes itself in the same batch

        Raises:
            DependencyViolationError: Naming the first blocking child table
        """
        self.builder.table(table)
        skipped = frozenset(ignore)
        for rule in self.dependency_rules.get(table, ()):
            if rule.child_table in skipped:
                continue
            dependents = await self.count(
                rule.child_table,
                {rule.foreign_key_column: record_id},
                actor_id=actor_id,
                skip_rate_limit=True,
            )
            if dependents > 0:
                raise DependencyViolationError(
                    f"Cannot delete {table} record: {dependents} dependent "
                    f"{rule.child_table} record(s) exist",
                    details={
                        "table": table,
                        "record_id": str(record_id),
                        "dependent_table": rule.child_table,
                        "foreign_key": rule.foreign_key_column,
                        "dependent_count": dependents,
                    },
                )

    async def delete_by_id(
        self,
        table: str,
        record_id: Any,
        *,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
    ) -> Dict[str, Any]:
        """
        Delete a row after checking every dependency rule for its table.

        Returns:
            {"success": True, "changes": <rows deleted>}
        """
        request = self.builder.delete(table, record_id)
        self.ops.check_rate_limit(actor_id, skip_rate_limit)
        await self.check_dependencies(table, record_id, actor_id=actor_id)
        result = await self.ops.execute(
            request, actor_id=actor_id, skip_rate_limit=True
        )
        logger.debug(f"Deleted {result.changes} row(s) from {table} (id={record_id})")
        return {"success": True, "changes": result.changes}

    # ==========================================================================
    # STATEMENT BUILDERS (for transaction batches)
    # ==========================================================================

    def build_insert(self, table: str, data: Mapping[str, Any]) -> QueryRequest:
        return self.builder.insert(table, data)

    def build_update(self, table: str, record_id: Any, data: Mapping[str, Any]) -> QueryRequest:
        return self.builder.update(table, record_id, data)

    def build_delete(self, table: str, record_id: Any) -> QueryRequest:
        return self.builder.delete(table, record_id)

    def build_delete_where(self, table: str, filters: Mapping[str, Any]) -> QueryRequest:
        return self.builder.delete_where(table, filters)
