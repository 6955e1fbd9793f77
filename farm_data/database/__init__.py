# ==============================================================================
# DATABASE PACKAGE INITIALIZATION
# ==============================================================================

"""
Database Module
===============

Data access layer for the farm schema.

Key Components:
- Adapters: Storage engine interface and the SQLite engine
- Operations: Validated query and transaction execution
- CRUD: Whitelisted single-table facade
- Factory: Process-wide lifecycle
- Repositories: Domain data access
- Unit of Work: Atomic multi-statement writes
"""

from farm_data.database.factory import DatabaseFactory
from farm_data.database.adapters.base_adapter import StorageEngine
from farm_data.database.crud import CrudFacade
from farm_data.database.operations import (
    DatabaseOperations,
    ExecutionResult,
    OperationKind,
    QueryRequest,
    TransactionResult,
)

__all__ = [
    "DatabaseFactory",
    "StorageEngine",
    "CrudFacade",
    "DatabaseOperations",
    "ExecutionResult",
    "OperationKind",
    "QueryRequest",
    "TransactionResult",
]
