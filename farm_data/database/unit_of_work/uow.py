# ==============================================================================
# UNIT OF WORK - Transaction Coordination
# ==============================================================================
# Stages write statements from one or more repositories and commits
# them as a single atomic transaction batch
# ==============================================================================

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, List, Optional, Type

from farm_data.core.exceptions import TransactionError
from farm_data.database.factory import DatabaseFactory
from farm_data.database.operations import (
    DatabaseOperations,
    QueryRequest,
    TransactionResult,
)


class AbstractUnitOfWork(ABC):
    """
    Abstract Unit of Work pattern interface.

    Defines the contract for managing transactional boundaries.
    """

    @abstractmethod
    async def __aenter__(self) -> "AbstractUnitOfWork":
        """Enter transactional context."""
        pass

    @abstractmethod
    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Any,
    ) -> None:
        """Exit transactional context."""
        pass

    @abstractmethod
    async def commit(self) -> Optional[TransactionResult]:
        """Commit the transaction."""
        pass

    @abstractmethod
    async def rollback(self) -> None:
        """Rollback the transaction."""
        pass


class UnitOfWork(AbstractUnitOfWork):
    """
    Concrete Unit of Work implementation.

    Statements added inside the context are held in memory and sent to
    ``DatabaseOperations.execute_transaction`` on successful exit.
    An exception inside the context discards them; nothing reaches
    the database.

    Attributes:
        _ops: Query executor (defaults to the factory instance)
        _staged: Statements waiting for commit
        result: TransactionResult of the last commit

    Example:
        >>> async with UnitOfWork(actor_id="7") as uow:
        ...     uow.add(crud.build_insert("farms", {"name": "Acme", "owner_id": 7}))
        ...     uow.add(QueryRequest(
        ...         "INSERT INTO farm_members (farm_id, user_id, role) "
        ...         "VALUES (last_insert_rowid(), ?, 'owner')", [7], "run", "farm_members"))
        >>> uow.result.results[0].last_insert_id
        1
    """

    def __init__(
        self,
        ops: Optional[DatabaseOperations] = None,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
    ) -> None:
        self._ops = ops
        self._actor_id = actor_id
        self._skip_rate_limit = skip_rate_limit
        self._staged: List[QueryRequest] = []
        self._is_active = False
        self.result: Optional[TransactionResult] = None

    @property
    def ops(self) -> DatabaseOperations:
        """Get query executor, resolving the factory instance if needed."""
        if self._ops is None:
            self._ops = DatabaseFactory.get_operations()
        return self._ops

    # ==========================================================================
    # STAGING
    # ==========================================================================

    def add(self, request: QueryRequest) -> int:
        """
        Stage a statement.

        Returns:
            Index of the statement's result in ``result.results``

        Raises:
            TransactionError: If the unit of work is not active
        """
        if not self._is_active:
            raise TransactionError("Unit of work is not active")
        self._staged.append(request)
        return len(self._staged) - 1

    @property
    def pending(self) -> int:
        return len(self._staged)

    # ==========================================================================
    # CONTEXT MANAGEMENT
    # ==========================================================================

    async def __aenter__(self) -> "UnitOfWork":
        self._staged = []
        self.result = None
        self._is_active = True
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc_val: Optional[BaseException],
        exc_tb: Any,
    ) -> None:
        """
        Commit on successful exit, discard staged work on exception.
        """
        try:
            if exc_type:
                await self.rollback()
            else:
                await self.commit()
        finally:
            self._is_active = False

    async def commit(self) -> Optional[TransactionResult]:
        """
        Send staged statements as one transaction batch.

        Raises:
            TransactionError: If the batch is rejected or fails
        """
        if not self._staged:
            return None
        staged, self._staged = self._staged, []
        self.result = await self.ops.execute_transaction(
            staged,
            actor_id=self._actor_id,
            skip_rate_limit=self._skip_rate_limit,
        )
        return self.result

    async def rollback(self) -> None:
        self._staged.clear()

    @property
    def is_active(self) -> bool:
        """Check if unit of work is accepting statements."""
        return self._is_active


@asynccontextmanager
async def get_unit_of_work(
    actor_id: Optional[str] = None,
) -> AsyncIterator[UnitOfWork]:
    """
    Helper creating a Unit of Work bound to the factory executor.

    Example:
        >>> async with get_unit_of_work(actor_id="7") as uow:
        ...     uow.add(request)
    """
    uow = UnitOfWork(actor_id=actor_id)
    async with uow:
        yield uow
