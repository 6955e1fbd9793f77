# ==============================================================================
# APPLICATION CONSTANTS - Centralized Configuration Values
# ==============================================================================
# Immutable constants used throughout the data access layer
# Organized by category for easy maintenance
# ==============================================================================

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Final, FrozenSet, Mapping, Tuple


# ==============================================================================
# DATABASE CONSTANTS
# ==============================================================================

class DatabaseConstants:
    """Database-related constants."""

    # Table names
    USERS_TABLE: Final[str] = "users"
    FARMS_TABLE: Final[str] = "farms"
    FARM_MEMBERS_TABLE: Final[str] = "farm_members"
    FARM_STATISTICS_TABLE: Final[str] = "farm_statistics"
    ANIMALS_TABLE: Final[str] = "animals"
    BREEDS_TABLE: Final[str] = "breeds"
    CROPS_TABLE: Final[str] = "crops"
    CROP_ACTIVITIES_TABLE: Final[str] = "crop_activities"
    TASKS_TABLE: Final[str] = "tasks"
    FINANCE_ENTRIES_TABLE: Final[str] = "finance_entries"
    INVENTORY_TABLE: Final[str] = "inventory"
    INVENTORY_TRANSACTIONS_TABLE: Final[str] = "inventory_transactions"

    # Columns the caller may never write directly
    PROTECTED_COLUMNS: Final[FrozenSet[str]] = frozenset(
        {"id", "created_at", "updated_at"}
    )

    # Log redaction
    MAX_LOGGED_QUERY_LENGTH: Final[int] = 500
    MAX_LOGGED_ERROR_LENGTH: Final[int] = 200


class ParameterLimits:
    """Bounds enforced on bound parameters and record payloads."""

    MAX_STRING_LENGTH: Final[int] = 10_000
    MAX_JSON_LENGTH: Final[int] = 50_000


# ==============================================================================
# TABLE WHITELIST
# ==============================================================================

ALLOWED_TABLES: Final[FrozenSet[str]] = frozenset(
    {
        "users",
        "farms",
        "farm_members",
        "farm_statistics",
        "farm_operations",
        "animals",
        "animal_health_records",
        "animal_production",
        "animal_breeding",
        "animal_feeding_records",
        "animal_events",
        "animal_movements",
        "breeds",
        "locations",
        "fields",
        "crops",
        "crop_activities",
        "crop_observations",
        "tasks",
        "task_comments",
        "task_time_logs",
        "finance_entries",
        "inventory",
        "inventory_transactions",
        "equipment",
        "weather_data",
        "notifications",
        "audit_logs",
    }
)


# ==============================================================================
# FILTER OPERATORS
# ==============================================================================

VALID_OPERATORS: Final[Tuple[str, ...]] = (
    "=",
    "!=",
    ">",
    "<",
    ">=",
    "<=",
    "LIKE",
    "IN",
    "NOT IN",
)

LIST_OPERATORS: Final[FrozenSet[str]] = frozenset({"IN", "NOT IN"})


# ==============================================================================
# DEPENDENCY RULES
# ==============================================================================

@dataclass(frozen=True)
class DependencyRule:
    """A parent/child relationship checked before a parent row is deleted."""

    parent_table: str
    child_table: str
    foreign_key_column: str


def _rules(parent: str, *children: Tuple[str, str]) -> Tuple[DependencyRule, ...]:
    return tuple(DependencyRule(parent, table, column) for table, column in children)


DEPENDENCY_RULES: Final[Mapping[str, Tuple[DependencyRule, ...]]] = MappingProxyType(
    {
        "farms": _rules(
            "farms",
            ("farm_members", "farm_id"),
            ("farm_statistics", "farm_id"),
            ("farm_operations", "farm_id"),
            ("animals", "farm_id"),
            ("locations", "farm_id"),
            ("fields", "farm_id"),
            ("finance_entries", "farm_id"),
            ("tasks", "farm_id"),
            ("inventory", "farm_id"),
            ("equipment", "farm_id"),
        ),
        "animals": _rules(
            "animals",
            ("animal_health_records", "animal_id"),
            ("animal_production", "animal_id"),
            ("animal_breeding", "animal_id"),
            ("animal_feeding_records", "animal_id"),
            ("animal_events", "animal_id"),
            ("animal_movements", "animal_id"),
        ),
        "locations": _rules(
            "locations",
            ("animals", "current_location_id"),
            ("animal_movements", "source_location_id"),
            ("animal_movements", "destination_location_id"),
        ),
        "fields": _rules("fields", ("crops", "field_id")),
        "crops": _rules(
            "crops",
            ("crop_activities", "crop_id"),
            ("crop_observations", "crop_id"),
        ),
        "tasks": _rules(
            "tasks",
            ("task_comments", "task_id"),
            ("task_time_logs", "task_id"),
        ),
        "inventory": _rules(
            "inventory",
            ("inventory_transactions", "inventory_id"),
        ),
        "users": _rules(
            "users",
            ("farms", "owner_id"),
            ("farm_members", "user_id"),
            ("tasks", "assigned_to"),
            ("animal_movements", "recorded_by"),
            ("audit_logs", "user_id"),
        ),
    }
)
