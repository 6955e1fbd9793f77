# ==============================================================================
# QUERY BUILDER - Whitelisted SQL Construction
# ==============================================================================
# Only validated identifiers and allow-listed operators are interpolated
# into SQL text; every value is a bound parameter
# ==============================================================================

from __future__ import annotations

import re
from typing import Any, Dict, FrozenSet, List, Mapping, Optional, Sequence, Tuple, Union

from farm_data.core.constants import (
    ALLOWED_TABLES,
    LIST_OPERATORS,
    VALID_OPERATORS,
    DatabaseConstants,
    ParameterLimits,
)
from farm_data.core.exceptions import (
    InvalidColumnsError,
    InvalidOrderByError,
    InvalidParameterError,
    InvalidTableError,
)
from farm_data.core.settings import settings
from farm_data.database.operations import OperationKind, QueryRequest

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

Filters = Optional[Mapping[str, Any]]
Columns = Union[str, Sequence[str]]


class QueryBuilder:
    """
    Builds QueryRequests for single-table CRUD statements.

    Attributes:
        allowed_tables: Table whitelist
        max_limit: Upper bound for page sizes

    Example:
        >>> builder = QueryBuilder()
        >>> request = builder.select("farms", {"owner_id": 7}, limit=10)
        >>> request.query
        'SELECT * FROM farms WHERE owner_id = ? ORDER BY created_at DESC LIMIT ? OFFSET ?'
        >>> request.params
        [7, 10, 0]
    """

    def __init__(
        self,
        allowed_tables: FrozenSet[str] = ALLOWED_TABLES,
        max_limit: Optional[int] = None,
    ) -> None:
        self.allowed_tables = allowed_tables
        self.max_limit = max_limit or settings.DB_MAX_LIMIT

    # ==========================================================================
    # IDENTIFIERS
    # ==========================================================================

    def table(self, name: Any) -> str:
        if not isinstance(name, str) or name not in self.allowed_tables:
            raise InvalidTableError(name)
        return name

    @staticmethod
    def column(name: Any) -> str:
        if not isinstance(name, str) or not IDENTIFIER.match(name):
            raise InvalidColumnsError(f"Invalid column name: {name}", column=str(name))
        return name

    def columns(self, columns: Columns = "*") -> str:
        """Validate a column list given as ``"*"``, ``"a, b"`` or ``["a", "b"]``."""
        if columns == "*" or columns is None:
            return "*"
        if isinstance(columns, str):
            names = [part.strip() for part in columns.split(",")]
        elif isinstance(columns, (list, tuple)):
            names = list(columns)
        else:
            raise InvalidColumnsError("Columns must be '*', a string or a list")
        if not names:
            raise InvalidColumnsError("Column list is empty")
        return ", ".join(self.column(name) for name in names)

    @staticmethod
    def order_by(column: Any) -> str:
        if not isinstance(column, str) or not IDENTIFIER.match(column):
            raise InvalidOrderByError(column)
        return column

    @staticmethod
    def direction(value: Any) -> str:
        if isinstance(value, str) and value.upper() in ("ASC", "DESC"):
            return value.upper()
        return "DESC"

    # ==========================================================================
    # PAGINATION
    # ==========================================================================

    def clamp_limit(self, limit: Any) -> int:
        try:
            value = int(limit)
        except (TypeError, ValueError) as e:
            raise InvalidParameterError(
                "Limit must be an integer", details={"limit": str(limit)}
            ) from e
        return max(1, min(value, self.max_limit))

    @staticmethod
    def clamp_offset(offset: Any) -> int:
        try:
            value = int(offset)
        except (TypeError, ValueError) as e:
            raise InvalidParameterError(
                "Offset must be an integer", details={"offset": str(offset)}
            ) from e
        return max(0, value)

    # ==========================================================================
    # WHERE CLAUSE
    # ==========================================================================

    def where(self, filters: Filters) -> Tuple[str, List[Any]]:
        """
        Build a WHERE clause from column filters.

        A filter value is either a scalar (equality) or a mapping with
        ``operator`` and ``value`` keys. Unknown operators fall back to ``=``.
        Scalar ``None`` values are skipped.

        Returns:
            (" WHERE ..." or "", params)
        """
        if not filters:
            return "", []

        clauses: List[str] = []
        params: List[Any] = []

        for key, condition in filters.items():
            if condition is None:
                continue
            column = self.column(key)

            if isinstance(condition, Mapping):
                operator = str(condition.get("operator", "=")).upper()
                if operator not in VALID_OPERATORS:
                    operator = "="
                value = condition.get("value")
            else:
                operator, value = "=", condition

            if operator in LIST_OPERATORS:
                if not isinstance(value, (list, tuple)) or not value:
                    raise InvalidParameterError(
                        f"{operator} filter requires a non-empty list",
                        details={"column": column},
                    )
                placeholders = ", ".join("?" for _ in value)
                clauses.append(f"{column} {operator} ({placeholders})")
                params.extend(value)
            elif value is None and operator in ("=", "!="):
                clauses.append(f"{column} IS {'NOT ' if operator == '!=' else ''}NULL")
            else:
                clauses.append(f"{column} {operator} ?")
                params.append(value)

        if not clauses:
            return "", []
        return " WHERE " + " AND ".join(clauses), params

    # ==========================================================================
    # PAYLOADS
    # ==========================================================================

    def clean_payload(self, data: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Drop protected columns and validate the rest.

        Raises:
            InvalidParameterError: Empty payload or over-long string value
            InvalidColumnsError: Column name is not an identifier
        """
        if not isinstance(data, Mapping):
            raise InvalidParameterError(
                "Record data must be a mapping",
                details={"type": type(data).__name__},
            )

        payload: Dict[str, Any] = {}
        for key, value in data.items():
            if key in DatabaseConstants.PROTECTED_COLUMNS:
                continue
            column = self.column(key)
            if isinstance(value, str) and len(value) > ParameterLimits.MAX_STRING_LENGTH:
                raise InvalidParameterError(
                    f"Field '{column}' exceeds maximum length",
                    details={
                        "field": column,
                        "length": len(value),
                        "max_length": ParameterLimits.MAX_STRING_LENGTH,
                    },
                )
            payload[column] = value

        if not payload:
            raise InvalidParameterError("No valid fields to write")
        return payload

    # ==========================================================================
    # STATEMENTS
    # ==========================================================================

    def select_by_id(self, table: str, record_id: Any, columns: Columns = "*") -> QueryRequest:
        table = self.table(table)
        return QueryRequest(
            query=f"SELECT {self.columns(columns)} FROM {table} WHERE id = ? LIMIT 1",
            params=[record_id],
            operation=OperationKind.FIRST,
            table=table,
        )

    def select(
        self,
        table: str,
        filters: Filters = None,
        *,
        columns: Columns = "*",
        order_by: str = "created_at",
        order_direction: str = "DESC",
        limit: Any = None,
        offset: Any = 0,
    ) -> QueryRequest:
        table = self.table(table)
        where, params = self.where(filters)
        query = (
            f"SELECT {self.columns(columns)} FROM {table}{where}"
            f" ORDER BY {self.order_by(order_by)} {self.direction(order_direction)}"
            f" LIMIT ? OFFSET ?"
        )
        params.extend([
            self.clamp_limit(settings.DB_DEFAULT_LIMIT if limit is None else limit),
            self.clamp_offset(offset),
        ])
        return QueryRequest(query=query, params=params, operation=OperationKind.QUERY, table=table)

    def count(self, table: str, filters: Filters = None) -> QueryRequest:
        table = self.table(table)
        where, params = self.where(filters)
        return QueryRequest(
            query=f"SELECT COUNT(*) AS count FROM {table}{where}",
            params=params,
            operation=OperationKind.FIRST,
            table=table,
        )

    def insert(self, table: str, data: Mapping[str, Any]) -> QueryRequest:
        table = self.table(table)
        payload = self.clean_payload(data)
        columns = ", ".join(payload)
        placeholders = ", ".join("?" for _ in payload)
        return QueryRequest(
            query=f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            params=list(payload.values()),
            operation=OperationKind.RUN,
            table=table,
        )

    def update(self, table: str, record_id: Any, data: Mapping[str, Any]) -> QueryRequest:
        table = self.table(table)
        payload = self.clean_payload(data)
        assignments = ", ".join(f"{column} = ?" for column in payload)
        return QueryRequest(
            query=f"UPDATE {table} SET {assignments} WHERE id = ?",
            params=[*payload.values(), record_id],
            operation=OperationKind.RUN,
            table=table,
        )

    def delete(self, table: str, record_id: Any) -> QueryRequest:
        table = self.table(table)
        return QueryRequest(
            query=f"DELETE FROM {table} WHERE id = ?",
            params=[record_id],
            operation=OperationKind.RUN,
            table=table,
        )

    def delete_where(self, table: str, filters: Mapping[str, Any]) -> QueryRequest:
        """DELETE with a mandatory WHERE clause."""
        table = self.table(table)
        where, params = self.where(filters)
        if not where:
            raise InvalidParameterError("Refusing to delete without filters", details={"table": table})
        return QueryRequest(
            query=f"DELETE FROM {table}{where}",
            params=params,
            operation=OperationKind.RUN,
            table=table,
        )
