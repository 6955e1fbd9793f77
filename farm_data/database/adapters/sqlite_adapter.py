# ==============================================================================
# SQLITE ENGINE - SQLAlchemy Async with aiosqlite
# ==============================================================================
# Storage engine executing bound SQL through the async engine
# Driver errors are classified once here into StorageErrorKind values
# ==============================================================================

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy import exc as sa_exc
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, create_async_engine

from farm_data.core.settings import settings
from farm_data.database.adapters.base_adapter import (
    BoundStatement,
    StatementResult,
    StorageEngine,
    StorageEngineError,
    StorageErrorKind,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# ERROR CLASSIFICATION
# ==============================================================================

_ERRORNAME_KINDS = (
    ("SQLITE_BUSY", StorageErrorKind.BUSY),
    ("SQLITE_LOCKED", StorageErrorKind.LOCKED),
    ("SQLITE_INTERRUPT", StorageErrorKind.TIMEOUT),
    ("SQLITE_CONSTRAINT", StorageErrorKind.CONSTRAINT),
    ("SQLITE_FULL", StorageErrorKind.DISK_FULL),
    ("SQLITE_CORRUPT", StorageErrorKind.CORRUPT),
    ("SQLITE_NOTADB", StorageErrorKind.CORRUPT),
    ("SQLITE_PERM", StorageErrorKind.PERMISSION),
    ("SQLITE_READONLY", StorageErrorKind.PERMISSION),
    ("SQLITE_AUTH", StorageErrorKind.PERMISSION),
    ("SQLITE_CANTOPEN", StorageErrorKind.CONNECTION),
    ("SQLITE_IOERR", StorageErrorKind.CONNECTION),
)

# Order matters: "database table is locked" before "database is locked"
_MESSAGE_KINDS = (
    ("database table is locked", StorageErrorKind.LOCKED),
    ("database is locked", StorageErrorKind.BUSY),
    ("busy", StorageErrorKind.BUSY),
    ("interrupted", StorageErrorKind.TIMEOUT),
    ("timeout", StorageErrorKind.TIMEOUT),
    ("constraint", StorageErrorKind.CONSTRAINT),
    ("no such table", StorageErrorKind.SCHEMA),
    ("no such column", StorageErrorKind.SCHEMA),
    ("has no column", StorageErrorKind.SCHEMA),
    ("syntax error", StorageErrorKind.SYNTAX),
    ("incomplete input", StorageErrorKind.SYNTAX),
    ("bindings", StorageErrorKind.SYNTAX),
    ("disk is full", StorageErrorKind.DISK_FULL),
    ("malformed", StorageErrorKind.CORRUPT),
    ("not a database", StorageErrorKind.CORRUPT),
    ("readonly", StorageErrorKind.PERMISSION),
    ("unable to open", StorageErrorKind.CONNECTION),
    ("no active connection", StorageErrorKind.CONNECTION),
)


def classify_error(error: BaseException) -> StorageEngineError:
    """
    Translate a driver or SQLAlchemy exception into a StorageEngineError.

    The extended sqlite error name is used when the driver exposes it,
    the message text otherwise.
    """
    original = getattr(error, "orig", None) or error
    code: Optional[str] = getattr(original, "sqlite_errorname", None)
    message = str(original)

    kind = StorageErrorKind.UNKNOWN
    if code:
        for prefix, candidate in _ERRORNAME_KINDS:
            if code.startswith(prefix):
                kind = candidate
                break

    if kind is StorageErrorKind.UNKNOWN:
        lowered = message.lower()
        for needle, candidate in _MESSAGE_KINDS:
            if needle in lowered:
                kind = candidate
                break

    return StorageEngineError(message, kind=kind, code=code, original=error)


def _is_insert(query: str) -> bool:
    head = query.lstrip().split(None, 1)
    return bool(head) and head[0].upper() in ("INSERT", "REPLACE")


# ==============================================================================
# ENGINE
# ==============================================================================

class SQLiteEngine(StorageEngine):
    """
    SQLite storage engine using SQLAlchemy async with aiosqlite.

    Statements use qmark placeholders and are sent with
    ``exec_driver_sql`` so the query text reaches SQLite unchanged.

    Features:
        - One connection per statement, committed on success
        - Atomic batches inside ``engine.begin()``
        - Schema creation from the declarative models

    Attributes:
        _database_url: SQLite connection string
        _engine: SQLAlchemy async engine

    Example:
        >>> engine = SQLiteEngine()
        >>> await engine.connect()
        >>> await engine.create_schema()
        >>> result = await engine.prepare("SELECT 1 AS one").bind().all()
        >>> result.rows
        [{'one': 1}]
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        busy_timeout_s: float = 5.0,
        echo: Optional[bool] = None,
    ) -> None:
        """
        Initialize SQLite engine.

        Args:
            database_url: SQLite connection URL (defaults to settings)
            busy_timeout_s: Seconds the driver waits on a locked database
            echo: Echo emitted SQL (defaults to DB_ECHO)
        """
        url = database_url or settings.sqlite_async_url
        if "sqlite://" in url and "aiosqlite" not in url:
            url = url.replace("sqlite://", "sqlite+aiosqlite://")

        self._database_url = url
        self._busy_timeout_s = busy_timeout_s
        self._echo = settings.DB_ECHO if echo is None else echo
        self._engine: Optional[AsyncEngine] = None

    @property
    def database_url(self) -> str:
        return self._database_url

    # ==========================================================================
    # LIFECYCLE METHODS
    # ==========================================================================

    async def connect(self) -> None:
        """
        Create the async engine and verify the database answers.

        Raises:
            StorageEngineError: If the database cannot be opened
        """
        if self._engine is not None:
            return

        self._engine = create_async_engine(
            self._database_url,
            echo=self._echo,
            connect_args={
                "check_same_thread": False,
                "timeout": self._busy_timeout_s,
            },
        )
        try:
            async with self._engine.connect() as conn:
                await conn.exec_driver_sql("SELECT 1")
        except sa_exc.SQLAlchemyError as e:
            logger.error(f"Failed to connect to SQLite: {e}")
            await self._engine.dispose()
            self._engine = None
            raise classify_error(e) from e

        logger.info("SQLite engine connected successfully")

    async def disconnect(self) -> None:
        """Close database connections and dispose engine."""
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            logger.info("SQLite engine disconnected")

    async def health_check(self) -> bool:
        """
        Verify database connectivity.

        Returns:
            True if connection is healthy
        """
        try:
            async with self._require_engine().connect() as conn:
                await conn.exec_driver_sql("SELECT 1")
            return True
        except (RuntimeError, sa_exc.SQLAlchemyError) as e:
            logger.warning(f"SQLite health check failed: {e}")
            return False

    async def create_schema(self) -> None:
        """Create every table, index and updated_at trigger of the farm schema."""
        from farm_data.domain_models import SQLBase

        try:
            async with self._require_engine().begin() as conn:
                await conn.run_sync(SQLBase.metadata.create_all)
        except sa_exc.SQLAlchemyError as e:
            raise classify_error(e) from e
        logger.info("SQLite schema created")

    async def drop_schema(self) -> None:
        from farm_data.domain_models import SQLBase

        async with self._require_engine().begin() as conn:
            await conn.run_sync(SQLBase.metadata.drop_all)

    def _require_engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError(
                "Database not connected. Call connect() first."
            )
        return self._engine

    # ==========================================================================
    # STATEMENT EXECUTION
    # ==========================================================================

    @staticmethod
    async def _execute_on(
        conn: AsyncConnection,
        statement: BoundStatement,
    ) -> StatementResult:
        result = await conn.exec_driver_sql(statement.query, statement.params)

        if result.returns_rows:
            keys = list(result.keys())
            raw_rows = [tuple(row) for row in result.fetchall()]
            return StatementResult(
                rows=[dict(zip(keys, row)) for row in raw_rows],
                raw_rows=raw_rows,
            )

        last_insert_id: Any = None
        if _is_insert(statement.query):
            last_insert_id = result.lastrowid or None
        return StatementResult(
            changes=max(result.rowcount, 0),
            last_insert_id=last_insert_id,
        )

    async def execute(self, statement: BoundStatement) -> StatementResult:
        """Execute a single statement and commit."""
        engine = self._require_engine()
        try:
            async with engine.connect() as conn:
                outcome = await self._execute_on(conn, statement)
                await conn.commit()
                return outcome
        except sa_exc.SQLAlchemyError as e:
            raise classify_error(e) from e

    async def batch(self, statements: Iterable[BoundStatement]) -> List[StatementResult]:
        """
        Execute statements in one transaction.

        ``engine.begin()`` commits when the block completes and rolls
        back when any statement raises.
        """
        engine = self._require_engine()
        results: List[StatementResult] = []
        try:
            async with engine.begin() as conn:
                for statement in statements:
                    results.append(await self._execute_on(conn, statement))
        except sa_exc.SQLAlchemyError as e:
            raise classify_error(e) from e
        return results
