# ==============================================================================
# CONFTEST - Pytest Fixtures and Configuration
# ==============================================================================
# Shared fixtures for all tests
# ==============================================================================

from __future__ import annotations

import asyncio
import os
from typing import AsyncGenerator, Iterable, List, Optional

import pytest
import pytest_asyncio

# Set test environment before importing the package
os.environ["ENVIRONMENT"] = "development"
os.environ["DEBUG"] = "false"
os.environ["LOG_FORMAT"] = "text"
os.environ["DB_INITIAL_RETRY_DELAY_MS"] = "1"
os.environ["DB_MAX_RETRY_DELAY_MS"] = "5"
os.environ["RATE_LIMIT_ENABLED"] = "true"
os.environ["RATE_LIMIT_CLEANUP_PROBABILITY"] = "0"

from farm_data.database.adapters.base_adapter import (  # noqa: E402
    BoundStatement,
    StatementResult,
    StorageEngine,
    StorageEngineError,
    StorageErrorKind,
)
from farm_data.database.adapters.sqlite_adapter import SQLiteEngine  # noqa: E402
from farm_data.database.crud import CrudFacade  # noqa: E402
from farm_data.database.factory import DatabaseFactory  # noqa: E402
from farm_data.database.operations import DatabaseOperations  # noqa: E402


# ==============================================================================
# FAKE ENGINES
# ==============================================================================

class RecordingEngine(StorageEngine):
    """Engine that records statements and answers with canned results."""

    def __init__(self, result: Optional[StatementResult] = None) -> None:
        self.result = result or StatementResult()
        self.executed: List[BoundStatement] = []
        self.batches: List[List[BoundStatement]] = []

    async def connect(self) -> None:
        pass

    async def disconnect(self) -> None:
        pass

    async def health_check(self) -> bool:
        return True

    async def execute(self, statement: BoundStatement) -> StatementResult:
        self.executed.append(statement)
        return self.result

    async def batch(self, statements: Iterable[BoundStatement]) -> List[StatementResult]:
        statements = list(statements)
        self.batches.append(statements)
        return [StatementResult() for _ in statements]


class FailingEngine(RecordingEngine):
    """Engine whose every statement fails with the given kind."""

    def __init__(self, kind: StorageErrorKind = StorageErrorKind.BUSY) -> None:
        super().__init__()
        self.kind = kind

    async def execute(self, statement: BoundStatement) -> StatementResult:
        self.executed.append(statement)
        raise StorageEngineError(f"simulated {self.kind.value}", kind=self.kind)

    async def batch(self, statements: Iterable[BoundStatement]) -> List[StatementResult]:
        self.batches.append(list(statements))
        raise StorageEngineError(f"simulated {self.kind.value}", kind=self.kind)


class HangingEngine(RecordingEngine):
    """Engine whose statements never complete."""

    async def execute(self, statement: BoundStatement) -> StatementResult:
        self.executed.append(statement)
        await asyncio.Event().wait()
        return self.result

    async def batch(self, statements: Iterable[BoundStatement]) -> List[StatementResult]:
        self.batches.append(list(statements))
        await asyncio.Event().wait()
        return []


# ==============================================================================
# DATABASE FIXTURES
# ==============================================================================

@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[SQLiteEngine, None]:
    """Connected SQLite engine with the farm schema, one file per test."""
    sqlite_engine = SQLiteEngine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await sqlite_engine.connect()
    await sqlite_engine.create_schema()
    yield sqlite_engine
    await sqlite_engine.disconnect()


@pytest.fixture
def ops(engine: SQLiteEngine) -> DatabaseOperations:
    return DatabaseOperations(engine)


@pytest.fixture
def crud(ops: DatabaseOperations) -> CrudFacade:
    return CrudFacade(ops)


@pytest.fixture(autouse=True)
def reset_factory():
    """Keep factory singletons from leaking between tests."""
    DatabaseFactory.reset()
    yield
    DatabaseFactory.reset()


# ==============================================================================
# DATA FIXTURES
# ==============================================================================

@pytest_asyncio.fixture
async def owner(crud: CrudFacade) -> dict:
    return await crud.create("users", {
        "email": "owner@example.com",
        "password_hash": "hashed",
        "name": "Farm Owner",
    })


@pytest_asyncio.fixture
async def outsider(crud: CrudFacade) -> dict:
    return await crud.create("users", {
        "email": "outsider@example.com",
        "password_hash": "hashed",
        "name": "Someone Else",
    })


@pytest_asyncio.fixture
async def farm(crud: CrudFacade, owner: dict) -> dict:
    """Farm with the owner registered as a member."""
    from farm_data.database.repositories import FarmRepository

    return await FarmRepository(crud).create_farm(
        {"name": "Green Acres", "location": "Valley"}, owner["id"]
    )
