# ==============================================================================
# STORAGE ENGINE ADAPTERS PACKAGE
# ==============================================================================

"""
Storage Engine Adapters
=======================

- StorageEngine: Abstract prepare/bind/execute/batch interface
- SQLiteEngine: SQLite using SQLAlchemy async and aiosqlite
"""

from farm_data.database.adapters.base_adapter import (
    BoundStatement,
    PreparedStatement,
    StatementResult,
    StorageEngine,
    StorageEngineError,
    StorageErrorKind,
)
from farm_data.database.adapters.sqlite_adapter import SQLiteEngine, classify_error

__all__ = [
    "BoundStatement",
    "PreparedStatement",
    "StatementResult",
    "StorageEngine",
    "StorageEngineError",
    "StorageErrorKind",
    "SQLiteEngine",
    "classify_error",
]
