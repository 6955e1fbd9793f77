# ==============================================================================
# CORE PACKAGE INITIALIZATION
# ==============================================================================
# Core utilities: Settings, Exceptions, Constants, Logging
# ==============================================================================

"""
Core Module
===========

Contains core utilities and configurations for the data access layer:
- settings: Environment configuration management
- exceptions: Error hierarchy and database error codes
- constants: Table whitelist, operators and dependency rules
- logger: Structured logging and audit events
"""

from farm_data.core.settings import settings, get_settings, Environment
from farm_data.core.exceptions import (
    AppException,
    DatabaseError,
    DatabaseErrorCode,
    DependencyViolationError,
    InvalidColumnsError,
    InvalidOrderByError,
    InvalidParameterError,
    InvalidTableError,
    QueryTimeoutError,
    RateLimitExceededError,
    RecordNotFoundError,
    SuspiciousActivityError,
    TransactionError,
)
from farm_data.core.logger import AuditLogger, audit_logger, setup_logging

__all__ = [
    "settings",
    "get_settings",
    "Environment",
    "AppException",
    "DatabaseError",
    "DatabaseErrorCode",
    "DependencyViolationError",
    "InvalidColumnsError",
    "InvalidOrderByError",
    "InvalidParameterError",
    "InvalidTableError",
    "QueryTimeoutError",
    "RateLimitExceededError",
    "RecordNotFoundError",
    "SuspiciousActivityError",
    "TransactionError",
    "AuditLogger",
    "audit_logger",
    "setup_logging",
]
