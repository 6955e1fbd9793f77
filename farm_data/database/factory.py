# ==============================================================================
# DATABASE FACTORY - Engine Instantiation & Lifecycle Management
# ==============================================================================
# Owns the process-wide storage engine, query executor and CRUD facade
# ==============================================================================

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from farm_data.core.exceptions import DatabaseError
from farm_data.core.settings import settings
from farm_data.database.adapters.base_adapter import StorageEngine, StorageEngineError
from farm_data.database.adapters.sqlite_adapter import SQLiteEngine
from farm_data.database.crud import CrudFacade
from farm_data.database.operations import DatabaseOperations

logger = logging.getLogger(__name__)


class DatabaseFactory:
    """
    Factory class for creating and managing the data access stack.

    Keeps one engine, one DatabaseOperations and one CrudFacade per
    process so the rate limit store and the metrics are shared.

    Class Attributes:
        _engine: Connected storage engine
        _operations: Query executor bound to the engine
        _crud: CRUD facade bound to the executor

    Example:
        >>> # Initialize at application startup
        >>> await DatabaseFactory.initialize()
        >>>
        >>> crud = DatabaseFactory.get_crud()
        >>> farm = await crud.find_by_id("farms", 1)
        >>>
        >>> # Shutdown at application exit
        >>> await DatabaseFactory.shutdown()
    """

    _engine: Optional[StorageEngine] = None
    _operations: Optional[DatabaseOperations] = None
    _crud: Optional[CrudFacade] = None

    @classmethod
    def create_engine(
        cls,
        database_url: Optional[str] = None,
        **kwargs: Any,
    ) -> StorageEngine:
        """
        Create a storage engine for the configured database.

        Args:
            database_url: Custom connection URL (defaults to SQLITE_URL)
            **kwargs: Extra engine options (busy_timeout_s, echo)
        """
        engine = SQLiteEngine(database_url=database_url, **kwargs)
        logger.info("Created SQLite engine")
        return engine

    @classmethod
    async def initialize(
        cls,
        database_url: Optional[str] = None,
        engine: Optional[StorageEngine] = None,
        create_schema: bool = True,
    ) -> DatabaseOperations:
        """
        Connect the engine and build the executor and facade.

        Returns the existing executor when already initialized.

        Args:
            database_url: Custom connection URL
            engine: Pre-built engine (tests inject fakes here)
            create_schema: Create missing tables on SQLite engines

        Returns:
            Initialized DatabaseOperations

        Raises:
            DatabaseError: If connection fails
        """
        if cls._operations is not None:
            return cls._operations

        engine = engine or cls.create_engine(database_url)

        try:
            await engine.connect()
            if create_schema and isinstance(engine, SQLiteEngine):
                await engine.create_schema()
        except StorageEngineError as e:
            logger.error(f"Database initialization failed: {e}")
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                details={"storage_error_kind": e.kind.value},
            ) from e

        cls._engine = engine
        cls._operations = DatabaseOperations(engine)
        cls._crud = CrudFacade(cls._operations)

        logger.info(f"Database initialized ({settings.ENVIRONMENT.value})")
        return cls._operations

    @classmethod
    async def shutdown(cls) -> None:
        """
        Close database connections.

        Releases all resources and clears the cached instances.
        """
        if cls._engine is not None:
            try:
                await cls._engine.disconnect()
            except StorageEngineError as e:
                logger.error(f"Error disconnecting engine: {e}")
        cls.reset()
        logger.info("Database connections closed")

    @classmethod
    def get_operations(cls) -> DatabaseOperations:
        """
        Get the process-wide query executor.

        Raises:
            RuntimeError: If not initialized
        """
        if cls._operations is None:
            raise RuntimeError(
                "Database not initialized. "
                "Call DatabaseFactory.initialize() first."
            )
        return cls._operations

    @classmethod
    def get_crud(cls) -> CrudFacade:
        if cls._crud is None:
            raise RuntimeError(
                "Database not initialized. "
                "Call DatabaseFactory.initialize() first."
            )
        return cls._crud

    @classmethod
    def get_engine(cls) -> StorageEngine:
        if cls._engine is None:
            raise RuntimeError(
                "Database not initialized. "
                "Call DatabaseFactory.initialize() first."
            )
        return cls._engine

    @classmethod
    def is_initialized(cls) -> bool:
        return cls._operations is not None

    @classmethod
    async def health_check(cls) -> Dict[str, Any]:
        """
        Check database health.

        Returns:
            {"healthy": bool, "metrics": {...}} (metrics only when initialized)
        """
        if cls._operations is None:
            return {"healthy": False}
        healthy = await cls._operations.health_check()
        return {"healthy": healthy, "metrics": cls._operations.get_metrics()}

    @classmethod
    def reset(cls) -> None:
        """
        Reset factory state.

        Clears cached instances without disconnecting.
        Primarily for testing purposes.
        """
        cls._engine = None
        cls._operations = None
        cls._crud = None
