"""
Retry and Timeout Primitives.

- RetryPolicy: bounded attempts with exponential backoff
- run_with_timeout: race one storage call against a deadline
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, FrozenSet, Optional, TypeVar

from farm_data.core.exceptions import QueryTimeoutError
from farm_data.core.settings import settings
from farm_data.database.adapters.base_adapter import StorageEngineError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attempt budget and backoff schedule for one query.

    Delay before attempt ``n + 1`` is ``min(initial * 2 ** (n - 1), max)``.
    Only storage errors whose kind is in ``retryable_kinds`` are retried.
    """

    max_attempts: int = 3
    initial_delay_ms: int = 100
    max_delay_ms: int = 2000
    retryable_kinds: FrozenSet[str] = field(
        default_factory=lambda: frozenset({"busy", "locked", "timeout"})
    )

    @classmethod
    def from_settings(cls, retries: Optional[int] = None) -> "RetryPolicy":
        return cls(
            max_attempts=max(1, retries if retries is not None else settings.DB_DEFAULT_RETRIES),
            initial_delay_ms=settings.DB_INITIAL_RETRY_DELAY_MS,
            max_delay_ms=settings.DB_MAX_RETRY_DELAY_MS,
            retryable_kinds=settings.retryable_error_kinds,
        )

    def delay_ms(self, attempt: int) -> int:
        """Backoff after the given (1-based) failed attempt."""
        return min(self.initial_delay_ms * (2 ** (attempt - 1)), self.max_delay_ms)

    def is_retryable(self, error: BaseException) -> bool:
        return isinstance(error, StorageEngineError) and error.is_retryable(
            self.retryable_kinds
        )

    def should_retry(self, error: BaseException, attempt: int) -> bool:
        return attempt < self.max_attempts and self.is_retryable(error)


async def backoff(policy: RetryPolicy, attempt: int) -> None:
    delay = policy.delay_ms(attempt)
    logger.debug(f"Retrying after attempt {attempt}/{policy.max_attempts}, sleeping {delay}ms")
    await asyncio.sleep(delay / 1000)


async def run_with_timeout(
    call: Callable[[], Awaitable[T]],
    timeout_ms: int,
) -> T:
    """
    Await ``call()`` for at most ``timeout_ms`` milliseconds.

    The pending call is cancelled when the deadline passes.

    Raises:
        QueryTimeoutError: If the deadline passes first
    """
    try:
        return await asyncio.wait_for(call(), timeout=timeout_ms / 1000)
    except asyncio.TimeoutError as e:
        raise QueryTimeoutError(timeout_ms) from e
