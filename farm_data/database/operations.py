# ==============================================================================
# DATABASE OPERATIONS - Query and Transaction Execution
# ==============================================================================
# Every statement passes rate limiting, structure validation and parameter
# sanitization before it reaches the storage engine, then runs under a
# timeout inside a bounded retry loop
# ==============================================================================

from __future__ import annotations

import logging
import random
import string
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from farm_data.core.exceptions import (
    DatabaseError,
    DatabaseErrorCode,
    InvalidParameterError,
    QueryTimeoutError,
    TransactionError,
)
from farm_data.core.logger import audit_logger
from farm_data.core.settings import settings
from farm_data.database.adapters.base_adapter import (
    BoundStatement,
    StatementResult,
    StorageEngine,
    StorageEngineError,
)
from farm_data.database.metrics import QueryMetrics
from farm_data.database.rate_limiter import SlidingWindowRateLimiter
from farm_data.database.retry import RetryPolicy, backoff, run_with_timeout
from farm_data.database.security import (
    redact_error,
    redact_query,
    sanitize_params,
    validate_query_structure,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# REQUEST / RESULT TYPES
# ==============================================================================

class OperationKind(str, Enum):
    """
    How a statement's result is returned.

    QUERY: all rows as mappings
    RUN: no rows, only changes and last insert id
    FIRST: the first row or None
    RAW: all rows as tuples
    """
    QUERY = "query"
    RUN = "run"
    FIRST = "first"
    RAW = "raw"

    @classmethod
    def _missing_(cls, value: object) -> Optional["OperationKind"]:
        if isinstance(value, str):
            lowered = value.lower()
            if lowered == "all":
                return cls.QUERY
            for member in cls:
                if member.value == lowered:
                    return member
        return None

    @classmethod
    def coerce(cls, value: Union[str, "OperationKind"]) -> "OperationKind":
        try:
            return cls(value)
        except ValueError as e:
            raise InvalidParameterError(
                f"Unknown operation: {value}",
                details={"operation": str(value)},
            ) from e


@dataclass
class QueryRequest:
    """One statement destined for the executor or a transaction batch."""

    query: str
    params: Sequence[Any] = field(default_factory=list)
    operation: OperationKind = OperationKind.QUERY
    table: Optional[str] = None

    def __post_init__(self) -> None:
        self.operation = OperationKind.coerce(self.operation)

    @classmethod
    def from_value(cls, value: Union["QueryRequest", Mapping[str, Any]]) -> "QueryRequest":
        if isinstance(value, QueryRequest):
            return value
        if isinstance(value, Mapping):
            return cls(
                query=value.get("query"),
                params=value.get("params") or [],
                operation=value.get("operation", OperationKind.RUN),
                table=value.get("table"),
            )
        raise InvalidParameterError(
            "Transaction operation must be a QueryRequest or mapping",
            details={"type": type(value).__name__},
        )


@dataclass
class ExecutionResult:
    success: bool
    data: Any
    changes: int = 0
    last_insert_id: Optional[int] = None
    duration_ms: float = 0.0
    operation: Optional[OperationKind] = None
    table: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result["operation"] = self.operation.value if self.operation else None
        return result


@dataclass
class TransactionResult:
    success: bool
    results: List[ExecutionResult]
    duration_ms: float
    transaction_id: str


_BASE36 = string.digits + string.ascii_lowercase


def generate_transaction_id() -> str:
    """``txn_<epoch ms>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_BASE36, k=9))
    return f"txn_{int(time.time() * 1000)}_{suffix}"


def _shape(operation: OperationKind, outcome: StatementResult) -> Any:
    if operation is OperationKind.RUN:
        return []
    if operation is OperationKind.FIRST:
        return outcome.rows[0] if outcome.rows else None
    if operation is OperationKind.RAW:
        return outcome.raw_rows
    return outcome.rows


# ==============================================================================
# EXECUTOR
# ==============================================================================

class DatabaseOperations:
    """
    Query executor shared by the CRUD facade and the repositories.

    One instance lives for the whole process (see DatabaseFactory);
    its rate limiter and metrics accumulate across calls.

    Attributes:
        engine: Storage engine statements are sent to
        rate_limiter: Per-actor limiter
        metrics: Running query statistics

    Example:
        >>> ops = DatabaseOperations(engine)
        >>> result = await ops.execute_query(
        ...     "SELECT * FROM farms WHERE owner_id = ?", [7],
        ...     operation="query", table="farms", actor_id="7",
        ... )
        >>> result.data
        [{'id': 1, 'name': 'North Field', ...}]
    """

    def __init__(
        self,
        engine: StorageEngine,
        rate_limiter: Optional[SlidingWindowRateLimiter] = None,
        metrics: Optional[QueryMetrics] = None,
    ) -> None:
        self.engine = engine
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self.metrics = metrics or QueryMetrics()

    # ==========================================================================
    # HELPERS
    # ==========================================================================

    def check_rate_limit(self, actor_id: Optional[str], skip_rate_limit: bool = False) -> None:
        """Charge one request to the actor, raising RateLimitExceededError when over the limit."""
        if actor_id and settings.RATE_LIMIT_ENABLED and not skip_rate_limit:
            self.rate_limiter.check(str(actor_id))

    @staticmethod
    def _resolve_timeout(timeout_ms: Optional[int]) -> int:
        if timeout_ms is None:
            return settings.DB_QUERY_TIMEOUT_MS
        if timeout_ms <= 0:
            raise InvalidParameterError(
                "Timeout must be a positive number of milliseconds",
                details={"timeout_ms": str(timeout_ms)},
            )
        return timeout_ms

    @staticmethod
    def _should_log(slow: bool) -> bool:
        return (
            not settings.is_production
            or slow
            or settings.LOG_QUERIES_IN_PRODUCTION
        )

    @staticmethod
    async def _dispatch(bound: BoundStatement, operation: OperationKind) -> StatementResult:
        if operation is OperationKind.RUN:
            return await bound.run()
        return await bound.all()

    # ==========================================================================
    # SINGLE QUERY
    # ==========================================================================

    async def execute_query(
        self,
        query: str,
        params: Optional[Sequence[Any]] = None,
        *,
        operation: Union[str, OperationKind] = OperationKind.QUERY,
        table: Optional[str] = None,
        retries: Optional[int] = None,
        timeout_ms: Optional[int] = None,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
        context: Optional[Dict[str, Any]] = None,
    ) -> ExecutionResult:
        """
        Execute one statement with validation, retries and a timeout.

        Args:
            query: SQL with ``?`` placeholders
            params: Positional values for the placeholders
            operation: Result shape (query/all, run, first, raw)
            table: Table name used in logs and metrics
            retries: Maximum attempts (defaults to DB_DEFAULT_RETRIES)
            timeout_ms: Per-attempt deadline (defaults to DB_QUERY_TIMEOUT_MS)
            actor_id: Actor charged against the rate limit
            skip_rate_limit: Bypass the limiter for internal follow-up queries
            context: Extra fields for log entries

        Returns:
            ExecutionResult with data shaped by ``operation``

        Raises:
            RateLimitExceededError: Before any validation or storage access
            SuspiciousActivityError / InvalidParameterError: Rejected input
            QueryTimeoutError: An attempt outlived its deadline
            DatabaseError: All attempts failed (code UNKNOWN_ERROR)
        """
        operation = OperationKind.coerce(operation)
        self.check_rate_limit(actor_id, skip_rate_limit)

        validate_query_structure(query)
        clean_params = sanitize_params(params)

        policy = RetryPolicy.from_settings(retries)
        deadline_ms = self._resolve_timeout(timeout_ms)
        start = time.perf_counter()

        attempt = 0
        last_error: Optional[BaseException] = None

        while attempt < policy.max_attempts:
            attempt += 1
            bound = self.engine.prepare(query).bind(*clean_params)

            try:
                outcome = await run_with_timeout(
                    lambda: self._dispatch(bound, operation), deadline_ms
                )
            except QueryTimeoutError as e:
                duration_ms = (time.perf_counter() - start) * 1000
                self.metrics.record(duration_ms, success=False)
                e.details.update({
                    "operation": operation.value,
                    "table": table,
                    "query": redact_query(query),
                    "attempts": attempt,
                })
                audit_logger.error(
                    "Database operation timed out",
                    {
                        "attempt": attempt,
                        "operation": operation.value,
                        "table": table,
                        "query": redact_query(query),
                        "timeout_ms": deadline_ms,
                        "context": context or {},
                    },
                )
                raise
            except Exception as e:
                last_error = e
                duration_ms = (time.perf_counter() - start) * 1000
                self.metrics.record(duration_ms, success=False)
                audit_logger.error(
                    "Database operation failed",
                    {
                        "attempt": attempt,
                        "operation": operation.value,
                        "table": table,
                        "query": redact_query(query),
                        "error": redact_error(e),
                        "context": context or {},
                    },
                )
                if policy.should_retry(e, attempt):
                    await backoff(policy, attempt)
                    continue
                break

            duration_ms = (time.perf_counter() - start) * 1000
            self.metrics.record(duration_ms, success=True)

            slow = self.metrics.is_slow(duration_ms)
            if self._should_log(slow):
                audit_logger.log_database(
                    operation.value,
                    table,
                    duration_ms,
                    True,
                    {
                        "attempt": attempt,
                        "query": redact_query(query),
                        "context": context or {},
                    },
                )
            if slow:
                self.metrics.track_slow_query(query, duration_ms, table, operation.value)

            return ExecutionResult(
                success=True,
                data=_shape(operation, outcome),
                changes=outcome.changes,
                last_insert_id=outcome.last_insert_id,
                duration_ms=duration_ms,
                operation=operation,
                table=table,
            )

        audit_logger.error(
            "Database operation failed after all retries",
            {
                "operation": operation.value,
                "table": table,
                "query": redact_query(query),
                "error": redact_error(last_error),
                "attempts": attempt,
                "context": context or {},
            },
        )

        storage_kind = (
            last_error.kind.value if isinstance(last_error, StorageEngineError) else None
        )
        raise DatabaseError(
            "Database operation failed",
            code=DatabaseErrorCode.UNKNOWN_ERROR,
            details={
                "operation": operation.value,
                "table": table,
                "query": redact_query(query),
                "original_error": str(last_error)[:200],
                "storage_error_kind": storage_kind,
                "attempts": attempt,
            },
        ) from last_error

    async def execute(
        self,
        request: QueryRequest,
        **options: Any,
    ) -> ExecutionResult:
        """Execute a prepared QueryRequest."""
        return await self.execute_query(
            request.query,
            request.params,
            operation=request.operation,
            table=request.table,
            **options,
        )

    # ==========================================================================
    # TRANSACTION BATCH
    # ==========================================================================

    async def execute_transaction(
        self,
        operations: Sequence[Union[QueryRequest, Mapping[str, Any]]],
        *,
        actor_id: Optional[str] = None,
        skip_rate_limit: bool = False,
        timeout_ms: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> TransactionResult:
        """
        Execute statements atomically through the engine's batch primitive.

        The batch is validated in full before anything is sent; the engine
        then applies every statement or none.

        Raises:
            TransactionError: Empty, oversized, rejected or failed batch
            RateLimitExceededError: Actor over its limit (checked once)
        """
        transaction_id = generate_transaction_id()
        deadline_ms = self._resolve_timeout(timeout_ms)

        if not isinstance(operations, (list, tuple)) or not operations:
            raise TransactionError(
                "Transaction requires at least one operation",
                details={"transaction_id": transaction_id},
            )

        max_operations = settings.DB_MAX_TRANSACTION_OPERATIONS
        if len(operations) > max_operations:
            raise TransactionError(
                f"Transaction too large (max {max_operations} operations)",
                details={
                    "transaction_id": transaction_id,
                    "operation_count": len(operations),
                },
            )

        self.check_rate_limit(actor_id, skip_rate_limit)

        requests: List[QueryRequest] = []
        statements: List[BoundStatement] = []
        for index, raw in enumerate(operations):
            try:
                request = QueryRequest.from_value(raw)
                validate_query_structure(request.query)
                clean_params = sanitize_params(request.params)
            except DatabaseError as e:
                raise TransactionError(
                    "Transaction operation rejected",
                    details={
                        "transaction_id": transaction_id,
                        "operation_index": index,
                        "cause_code": e.code.value,
                        "cause": e.message,
                    },
                ) from e
            requests.append(request)
            statements.append(self.engine.prepare(request.query).bind(*clean_params))

        audit_logger.info(
            "Starting atomic database transaction",
            {
                "transaction_id": transaction_id,
                "operations": len(requests),
                "actor_id": actor_id,
            },
        )

        start = time.perf_counter()

        try:
            outcomes = await run_with_timeout(
                lambda: self.engine.batch(statements), deadline_ms
            )
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000
            self.metrics.record(duration_ms, success=False)
            audit_logger.error(
                "Atomic database transaction failed",
                {
                    "transaction_id": transaction_id,
                    "operations": len(requests),
                    "error": redact_error(e),
                    "context": context or {},
                },
            )

            details: Dict[str, Any] = {
                "transaction_id": transaction_id,
                "operations": len(requests),
                "original_error": str(e)[:200],
            }
            if isinstance(e, QueryTimeoutError):
                details["cause_code"] = DatabaseErrorCode.QUERY_TIMEOUT.value
            elif isinstance(e, StorageEngineError):
                details["storage_error_kind"] = e.kind.value
            raise TransactionError(
                "Atomic transaction failed - all operations rolled back",
                details=details,
            ) from e

        duration_ms = (time.perf_counter() - start) * 1000
        self.metrics.record(duration_ms, success=True)
        audit_logger.log_database(
            "transaction",
            "multi-table",
            duration_ms,
            True,
            {
                "transaction_id": transaction_id,
                "operations": len(requests),
                "context": context or {},
            },
        )

        results = [
            ExecutionResult(
                success=True,
                data=_shape(request.operation, outcome),
                changes=outcome.changes,
                last_insert_id=outcome.last_insert_id,
                operation=request.operation,
                table=request.table,
            )
            for request, outcome in zip(requests, outcomes)
        ]

        return TransactionResult(
            success=True,
            results=results,
            duration_ms=duration_ms,
            transaction_id=transaction_id,
        )

    # ==========================================================================
    # METRICS & HEALTH
    # ==========================================================================

    def get_metrics(self) -> Dict[str, Any]:
        return self.metrics.snapshot()

    def reset_metrics(self) -> None:
        self.metrics.reset()

    async def health_check(self) -> bool:
        return await self.engine.health_check()
