# ==============================================================================
# QUERY METRICS
# ==============================================================================
# In-process counters for executed queries and a ring buffer of slow ones
# ==============================================================================

from __future__ import annotations

from collections import deque
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List, Optional

from farm_data.core.logger import audit_logger
from farm_data.core.settings import settings
from farm_data.database.security import redact_query


@dataclass
class SlowQuery:
    query: str
    duration_ms: float
    table: Optional[str]
    operation: str
    timestamp: str


class QueryMetrics:
    """
    Running query statistics.

    ``avg_query_time`` is the running mean of every recorded attempt,
    failed ones included. Mutation is synchronous.

    Attributes:
        total_queries: Attempts recorded
        failed_queries: Attempts that raised
        avg_query_time: Mean duration in milliseconds
        slow_queries: Most recent slow queries, oldest first
    """

    def __init__(
        self,
        slow_threshold_ms: Optional[int] = None,
        buffer_size: Optional[int] = None,
    ) -> None:
        self.slow_threshold_ms = (
            settings.DB_SLOW_QUERY_THRESHOLD_MS
            if slow_threshold_ms is None
            else slow_threshold_ms
        )
        self.buffer_size = buffer_size or settings.DB_SLOW_QUERY_BUFFER_SIZE
        self.reset()

    def reset(self) -> None:
        self.total_queries = 0
        self.failed_queries = 0
        self.avg_query_time = 0.0
        self.slow_queries: Deque[SlowQuery] = deque(maxlen=self.buffer_size)

    def record(self, duration_ms: float, success: bool) -> None:
        self.total_queries += 1
        if not success:
            self.failed_queries += 1
        total_time = self.avg_query_time * (self.total_queries - 1) + duration_ms
        self.avg_query_time = total_time / self.total_queries

    def is_slow(self, duration_ms: float) -> bool:
        return duration_ms > self.slow_threshold_ms

    def track_slow_query(
        self,
        query: str,
        duration_ms: float,
        table: Optional[str],
        operation: str,
    ) -> None:
        """Append to the ring buffer and log at WARNING."""
        entry = SlowQuery(
            query=redact_query(query),
            duration_ms=round(duration_ms, 2),
            table=table,
            operation=operation,
            timestamp=datetime.now(timezone.utc).isoformat(),
        )
        self.slow_queries.append(entry)
        audit_logger.warn(
            "Slow query detected",
            {
                "duration_ms": entry.duration_ms,
                "table": table,
                "operation": operation,
                "query": entry.query,
            },
        )

    def snapshot(self) -> Dict[str, Any]:
        slow: List[Dict[str, Any]] = [asdict(item) for item in self.slow_queries]
        return {
            "total_queries": self.total_queries,
            "failed_queries": self.failed_queries,
            "avg_query_time": self.avg_query_time,
            "slow_queries": slow,
        }
