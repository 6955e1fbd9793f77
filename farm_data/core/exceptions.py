# ==============================================================================
# CUSTOM EXCEPTIONS - Application Error Hierarchy
# ==============================================================================
# Structured exception classes for consistent error handling
# Every data-access failure carries a machine-readable DatabaseErrorCode
# ==============================================================================

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class AppException(Exception):
    """
    Base exception for all application errors.

    Provides a consistent interface for error handling with:
    - Error code for programmatic identification
    - Status code hint for whichever outer layer maps the error
    - Detailed message and optional context

    Attributes:
        message: Human-readable error description
        error_code: Machine-readable error identifier
        status_code: HTTP-style status hint
        details: Additional context dictionary

    Example:
        >>> raise AppException(
        ...     message="Something went wrong",
        ...     error_code="INTERNAL_ERROR",
        ...     status_code=500
        ... )
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        error_code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert exception to dictionary format for JSON response.

        Returns:
            Dictionary containing error details
        """
        return {
            "success": False,
            "error": {
                "code": self.error_code,
                "message": self.message,
                "details": self.details,
            }
        }

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message='{self.message}', "
            f"error_code='{self.error_code}', "
            f"status_code={self.status_code})"
        )


# ==============================================================================
# DATABASE ERROR CODES
# ==============================================================================

class DatabaseErrorCode(str, Enum):
    """Machine-readable codes attached to every DatabaseError."""
    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    RECORD_NOT_FOUND = "RECORD_NOT_FOUND"
    DEPENDENCY_VIOLATION = "DEPENDENCY_VIOLATION"
    TRANSACTION_ERROR = "TRANSACTION_ERROR"
    INVALID_TABLE = "INVALID_TABLE"
    INVALID_COLUMNS = "INVALID_COLUMNS"
    INVALID_JOIN = "INVALID_JOIN"
    INVALID_GROUP_BY = "INVALID_GROUP_BY"
    INVALID_HAVING = "INVALID_HAVING"
    INVALID_ORDER_BY = "INVALID_ORDER_BY"
    INVALID_PARAMETER = "INVALID_PARAMETER"
    QUERY_TIMEOUT = "QUERY_TIMEOUT"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    SUSPICIOUS_ACTIVITY = "SUSPICIOUS_ACTIVITY"


_STATUS_BY_CODE: Dict[DatabaseErrorCode, int] = {
    DatabaseErrorCode.RECORD_NOT_FOUND: 404,
    DatabaseErrorCode.DEPENDENCY_VIOLATION: 409,
    DatabaseErrorCode.INVALID_TABLE: 400,
    DatabaseErrorCode.INVALID_COLUMNS: 400,
    DatabaseErrorCode.INVALID_JOIN: 400,
    DatabaseErrorCode.INVALID_GROUP_BY: 400,
    DatabaseErrorCode.INVALID_HAVING: 400,
    DatabaseErrorCode.INVALID_ORDER_BY: 400,
    DatabaseErrorCode.INVALID_PARAMETER: 400,
    DatabaseErrorCode.SUSPICIOUS_ACTIVITY: 400,
    DatabaseErrorCode.RATE_LIMIT_EXCEEDED: 429,
}


# ==============================================================================
# DATABASE EXCEPTIONS
# ==============================================================================

class DatabaseError(AppException):
    """
    Base exception for database-related errors.

    Raised when data access fails due to:
    - Rejected input (tables, columns, parameters, query text)
    - Query execution failures after retries
    - Transaction errors

    Attributes:
        code: DatabaseErrorCode identifying the failure
    """

    def __init__(
        self,
        message: str = "Database operation failed",
        code: DatabaseErrorCode = DatabaseErrorCode.UNKNOWN_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            error_code=code.value,
            status_code=_STATUS_BY_CODE.get(code, 500),
            details=details,
        )
        self.code = code


class InvalidTableError(DatabaseError):
    """Raised when a table name is not in the whitelist."""

    def __init__(self, table: Any) -> None:
        super().__init__(
            message=f"Invalid table name: {table}",
            code=DatabaseErrorCode.INVALID_TABLE,
            details={"table": str(table)},
        )


class InvalidColumnsError(DatabaseError):
    """Raised when a column list or filter key is not a plain identifier."""

    def __init__(self, message: str = "Invalid columns", column: Optional[str] = None) -> None:
        super().__init__(
            message=message,
            code=DatabaseErrorCode.INVALID_COLUMNS,
            details={"column": column} if column else None,
        )


class InvalidOrderByError(DatabaseError):

    def __init__(self, column: Any) -> None:
        super().__init__(
            message=f"Invalid order by column: {column}",
            code=DatabaseErrorCode.INVALID_ORDER_BY,
            details={"order_by": str(column)},
        )


class InvalidParameterError(DatabaseError):
    """Raised when a bound parameter or payload value is rejected."""

    def __init__(
        self,
        message: str = "Invalid query parameter",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=DatabaseErrorCode.INVALID_PARAMETER,
            details=details,
        )


class QueryTimeoutError(DatabaseError):
    """Raised when a single attempt outlives its deadline."""

    def __init__(self, timeout_ms: int, details: Optional[Dict[str, Any]] = None) -> None:
        _details = details or {}
        _details["timeout_ms"] = timeout_ms
        super().__init__(
            message=f"Query timeout after {timeout_ms}ms",
            code=DatabaseErrorCode.QUERY_TIMEOUT,
            details=_details,
        )
        self.timeout_ms = timeout_ms


class RateLimitExceededError(DatabaseError):
    """
    Raised when an actor exceeds the query rate limit.

    Attributes:
        retry_after_ms: Milliseconds until the oldest request leaves the window
    """

    def __init__(
        self,
        actor_id: str,
        request_count: int,
        limit: int,
        window_ms: int,
        retry_after_ms: int = 0,
    ) -> None:
        super().__init__(
            message=f"Rate limit exceeded for {actor_id}",
            code=DatabaseErrorCode.RATE_LIMIT_EXCEEDED,
            details={
                "actor_id": actor_id,
                "request_count": request_count,
                "limit": limit,
                "window_ms": window_ms,
                "retry_after_ms": retry_after_ms,
            },
        )
        self.retry_after_ms = retry_after_ms


class SuspiciousActivityError(DatabaseError):

    def __init__(self, pattern: str) -> None:
        super().__init__(
            message="Suspicious query pattern detected",
            code=DatabaseErrorCode.SUSPICIOUS_ACTIVITY,
            details={"pattern": pattern},
        )


class DependencyViolationError(DatabaseError):
    """
    Raised when a delete or insert would orphan or duplicate related rows.

    Maps to HTTP 409 Conflict.
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=DatabaseErrorCode.DEPENDENCY_VIOLATION,
            details=details,
        )


class TransactionError(DatabaseError):
    """
    Raised when database transaction fails.

    Indicates that a batch could not be committed and every
    operation in it has been rolled back.
    """

    def __init__(
        self,
        message: str = "Transaction failed",
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            message=message,
            code=DatabaseErrorCode.TRANSACTION_ERROR,
            details=details,
        )


class RecordNotFoundError(DatabaseError):
    """
    Raised when a requested record does not exist or is not visible to the caller.

    Attributes:
        resource_type: Table or entity name
        resource_id: Identifier of the missing record
    """

    def __init__(
        self,
        message: str = "Record not found",
        resource_type: Optional[str] = None,
        resource_id: Optional[Any] = None,
    ) -> None:
        details = {}
        if resource_type:
            details["resource_type"] = resource_type
        if resource_id is not None:
            details["resource_id"] = str(resource_id)

        super().__init__(
            message=message,
            code=DatabaseErrorCode.RECORD_NOT_FOUND,
            details=details,
        )
        self.resource_type = resource_type
        self.resource_id = resource_id
