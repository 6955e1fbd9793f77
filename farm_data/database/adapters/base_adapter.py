# ==============================================================================
# BASE STORAGE ENGINE - Abstract Interface
# ==============================================================================
# Defines the contract the query executor relies on
# prepare -> bind -> run/first/all/raw, plus an atomic batch primitive
# ==============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple


# ==============================================================================
# ERRORS
# ==============================================================================

class StorageErrorKind(str, Enum):
    """Classification assigned to a driver error at the adapter boundary."""
    BUSY = "busy"
    LOCKED = "locked"
    TIMEOUT = "timeout"
    CONSTRAINT = "constraint"
    SCHEMA = "schema"
    SYNTAX = "syntax"
    CONNECTION = "connection"
    PERMISSION = "permission"
    DISK_FULL = "disk_full"
    CORRUPT = "corrupt"
    UNKNOWN = "unknown"


class StorageEngineError(Exception):
    """
    Driver failure translated by a storage engine.

    The executor decides whether to retry from ``kind`` alone and
    never inspects driver exception types or messages.

    Attributes:
        kind: Classified failure kind
        code: Driver specific error name, if any
        original: The driver exception
    """

    def __init__(
        self,
        message: str,
        kind: StorageErrorKind = StorageErrorKind.UNKNOWN,
        code: Optional[str] = None,
        original: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.code = code
        self.original = original

    def is_retryable(self, retryable_kinds: FrozenSet[str]) -> bool:
        return self.kind.value in retryable_kinds

    def __repr__(self) -> str:
        return (
            f"StorageEngineError(kind='{self.kind.value}', "
            f"code='{self.code}', message='{self.message}')"
        )


# ==============================================================================
# STATEMENTS
# ==============================================================================

@dataclass
class StatementResult:
    """
    Outcome of a single statement.

    Attributes:
        rows: Result rows as column -> value mappings
        raw_rows: Result rows as positional tuples
        changes: Rows affected by a write
        last_insert_id: Row id generated by an INSERT, else None
    """
    rows: List[Dict[str, Any]] = field(default_factory=list)
    raw_rows: List[Tuple[Any, ...]] = field(default_factory=list)
    changes: int = 0
    last_insert_id: Optional[int] = None


class BoundStatement:
    """Query text with its positional parameters, ready to execute."""

    __slots__ = ("_engine", "query", "params")

    def __init__(self, engine: "StorageEngine", query: str, params: Sequence[Any]) -> None:
        self._engine = engine
        self.query = query
        self.params: Tuple[Any, ...] = tuple(params)

    async def run(self) -> StatementResult:
        return await self._engine.execute(self)

    async def all(self) -> StatementResult:
        return await self._engine.execute(self)

    async def first(self) -> Optional[Dict[str, Any]]:
        result = await self._engine.execute(self)
        return result.rows[0] if result.rows else None

    async def raw(self) -> List[Tuple[Any, ...]]:
        result = await self._engine.execute(self)
        return result.raw_rows

    def __repr__(self) -> str:
        return f"<BoundStatement(query={self.query!r}, params={len(self.params)})>"


class PreparedStatement:
    """Query text awaiting parameters."""

    __slots__ = ("_engine", "query")

    def __init__(self, engine: "StorageEngine", query: str) -> None:
        self._engine = engine
        self.query = query

    def bind(self, *params: Any) -> BoundStatement:
        return BoundStatement(self._engine, self.query, params)


# ==============================================================================
# ENGINE INTERFACE
# ==============================================================================

class StorageEngine(ABC):
    """
    Abstract Base Class for storage engines.

    Provides the minimal surface the data access layer needs from a
    SQL database. Concrete engines translate every driver failure into
    a StorageEngineError with a classified kind.

    Example:
        >>> engine = SQLiteEngine("sqlite+aiosqlite:///./farm.db")
        >>> await engine.connect()
        >>> row = await engine.prepare("SELECT * FROM farms WHERE id = ?").bind(1).first()
        >>> await engine.disconnect()
    """

    # ==========================================================================
    # LIFECYCLE METHODS
    # ==========================================================================

    @abstractmethod
    async def connect(self) -> None:
        """
        Establish database connection.

        Must be called before any statement is executed.

        Raises:
            StorageEngineError: If connection cannot be established
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Release all connections held by the engine."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Check if the database answers a trivial query.

        Returns:
            True if connection is healthy, False otherwise
        """
        pass

    # ==========================================================================
    # STATEMENT EXECUTION
    # ==========================================================================

    def prepare(self, query: str) -> PreparedStatement:
        return PreparedStatement(self, query)

    @abstractmethod
    async def execute(self, statement: BoundStatement) -> StatementResult:
        """
        Execute one bound statement in its own implicit transaction.

        Raises:
            StorageEngineError: On any driver failure
        """
        pass

    @abstractmethod
    async def batch(self, statements: Iterable[BoundStatement]) -> List[StatementResult]:
        """
        Execute statements in order inside a single transaction.

        Either every statement takes effect or none does.

        Returns:
            One StatementResult per statement, in input order

        Raises:
            StorageEngineError: On any driver failure, after rollback
        """
        pass
