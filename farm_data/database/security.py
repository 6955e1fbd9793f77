# ==============================================================================
# QUERY SECURITY - Parameter Sanitization and Structure Validation
# ==============================================================================
# Defence in depth on top of bound parameters:
# - every bound value is coerced to a storage primitive or rejected
# - query text is screened for DDL, comments and stacked statements
# - queries and errors are redacted before they reach the logs
# ==============================================================================

from __future__ import annotations

import json
import math
import re
import traceback
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Dict, List, Optional, Sequence

from farm_data.core.constants import DatabaseConstants, ParameterLimits
from farm_data.core.exceptions import InvalidParameterError, SuspiciousActivityError
from farm_data.core.logger import audit_logger
from farm_data.core.settings import settings


# ==============================================================================
# PATTERNS
# ==============================================================================

SUSPICIOUS_PATTERNS = (
    re.compile(r"\b(UNION|DROP|ALTER|CREATE|TRUNCATE)\b", re.IGNORECASE),
    re.compile(r"(--|/\*|\*/)"),
    re.compile(r";\s*(SELECT|INSERT|UPDATE|DELETE)", re.IGNORECASE),
)

_SECRET_ASSIGNMENT = re.compile(
    r"\b(password|token|secret|key)\s*=\s*(?:'[^']*'|\"[^\"]*\")",
    re.IGNORECASE,
)


# ==============================================================================
# PARAMETER SANITIZER
# ==============================================================================

class JsonParam(str):
    """
    JSON text produced from an object parameter.

    Keeps the object size bound when sanitized output is sanitized again.
    """

    __slots__ = ()


def sanitize_value(value: Any, index: int = 0) -> Any:
    """
    Coerce one bound value to a storage primitive.

    Args:
        value: Raw parameter value
        index: Position of the value, reported on rejection

    Returns:
        None, str, int or float

    Raises:
        InvalidParameterError: If the value cannot be stored safely
    """
    if value is None:
        return None

    # bool is a subclass of int
    if isinstance(value, bool):
        return 1 if value else 0

    if isinstance(value, JsonParam):
        if len(value) > ParameterLimits.MAX_JSON_LENGTH:
            raise InvalidParameterError(
                "Object parameter too large",
                details={"index": index, "length": len(value),
                         "max_length": ParameterLimits.MAX_JSON_LENGTH},
            )
        return value

    if isinstance(value, str):
        if len(value) > ParameterLimits.MAX_STRING_LENGTH:
            raise InvalidParameterError(
                "String parameter too long",
                details={"index": index, "length": len(value),
                         "max_length": ParameterLimits.MAX_STRING_LENGTH},
            )
        return value

    if isinstance(value, int):
        return value

    if isinstance(value, (float, Decimal)):
        number = float(value)
        if not math.isfinite(number):
            raise InvalidParameterError(
                "Numeric parameter must be finite",
                details={"index": index},
            )
        return number

    if isinstance(value, (datetime, date, time)):
        return value.isoformat()

    if isinstance(value, (dict, list, tuple)):
        try:
            encoded = json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as e:
            raise InvalidParameterError(
                "Object parameter is not JSON serializable",
                details={"index": index, "reason": str(e)[:200]},
            ) from e
        if len(encoded) > ParameterLimits.MAX_JSON_LENGTH:
            raise InvalidParameterError(
                "Object parameter too large",
                details={"index": index, "length": len(encoded),
                         "max_length": ParameterLimits.MAX_JSON_LENGTH},
            )
        return JsonParam(encoded)

    raise InvalidParameterError(
        f"Unsupported parameter type: {type(value).__name__}",
        details={"index": index, "type": type(value).__name__},
    )


def sanitize_params(params: Optional[Sequence[Any]]) -> List[Any]:
    """
    Sanitize an ordered parameter sequence.

    Order and length are preserved. Applying the function to its own
    output returns an equal list.

    Raises:
        InvalidParameterError: If params is not a list/tuple or any value is rejected
    """
    if params is None:
        return []
    if not isinstance(params, (list, tuple)):
        raise InvalidParameterError(
            "Parameters must be a list",
            details={"type": type(params).__name__},
        )
    return [sanitize_value(value, index) for index, value in enumerate(params)]


# ==============================================================================
# QUERY STRUCTURE VALIDATOR
# ==============================================================================

def validate_query_structure(query: Any) -> None:
    """
    Reject query text that carries DDL keywords, comments or stacked statements.

    Raises:
        InvalidParameterError: If the query is empty or not text
        SuspiciousActivityError: If any suspicious pattern matches
    """
    if not isinstance(query, str) or not query.strip():
        raise InvalidParameterError(
            "Query must be a non-empty string",
            details={"type": type(query).__name__},
        )

    for pattern in SUSPICIOUS_PATTERNS:
        if pattern.search(query):
            audit_logger.security(
                "Suspicious query pattern detected",
                {
                    "query": redact_query(query),
                    "pattern": pattern.pattern,
                },
            )
            raise SuspiciousActivityError(pattern.pattern)


# ==============================================================================
# LOG REDACTION
# ==============================================================================

def redact_query(query: Any) -> str:
    """Mask quoted secrets and truncate query text for logging."""
    if not isinstance(query, str):
        return ""
    redacted = _SECRET_ASSIGNMENT.sub(lambda m: f"{m.group(1)}=***", query)
    limit = DatabaseConstants.MAX_LOGGED_QUERY_LENGTH
    if len(redacted) > limit:
        return redacted[:limit] + "..."
    return redacted


def redact_error(error: Optional[BaseException]) -> Dict[str, Any]:
    """
    Reduce an exception to a log-safe mapping.

    The traceback summary (first 3 lines) is omitted in production.
    """
    if error is None:
        return {"message": "Unknown error"}

    code = getattr(error, "error_code", None) or getattr(error, "code", None)
    kind = getattr(error, "kind", None)
    redacted: Dict[str, Any] = {
        "type": type(error).__name__,
        "code": getattr(code, "value", code),
        "kind": getattr(kind, "value", kind),
        "message": str(error)[:DatabaseConstants.MAX_LOGGED_ERROR_LENGTH],
    }

    if not settings.is_production and error.__traceback__ is not None:
        lines = traceback.format_exception(type(error), error, error.__traceback__)
        redacted["stack"] = "".join(lines).splitlines()[:3]

    return redacted
