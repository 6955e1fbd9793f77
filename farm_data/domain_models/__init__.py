# ==============================================================================
# DOMAIN MODELS PACKAGE INITIALIZATION
# ==============================================================================

"""
Domain Models
=============

SQLAlchemy models defining the farm schema:
- User: Accounts
- Farm: Farms, membership, statistics, locations and fields
- Livestock: Breeds, animals and animal record tables
- Crop: Crops, activities and observations
- Operations: Tasks, finance entries, inventory and equipment
- System: Weather data, notifications and audit logs
"""

from farm_data.domain_models.base import SQLBase, TimestampMixin
from farm_data.domain_models.user import User
from farm_data.domain_models.farm import (
    Farm,
    FarmMember,
    FarmOperation,
    FarmStatistics,
    Field,
    Location,
)
from farm_data.domain_models.livestock import (
    Animal,
    AnimalBreeding,
    AnimalEvent,
    AnimalFeedingRecord,
    AnimalHealthRecord,
    AnimalMovement,
    AnimalProduction,
    Breed,
)
from farm_data.domain_models.crop import Crop, CropActivity, CropObservation
from farm_data.domain_models.operations import (
    Equipment,
    FinanceEntry,
    InventoryItem,
    InventoryTransaction,
    Task,
    TaskComment,
    TaskTimeLog,
)
from farm_data.domain_models.system import AuditLog, Notification, WeatherData

__all__ = [
    "SQLBase",
    "TimestampMixin",
    "User",
    "Farm",
    "FarmMember",
    "FarmOperation",
    "FarmStatistics",
    "Field",
    "Location",
    "Animal",
    "AnimalBreeding",
    "AnimalEvent",
    "AnimalFeedingRecord",
    "AnimalHealthRecord",
    "AnimalMovement",
    "AnimalProduction",
    "Breed",
    "Crop",
    "CropActivity",
    "CropObservation",
    "Equipment",
    "FinanceEntry",
    "InventoryItem",
    "InventoryTransaction",
    "Task",
    "TaskComment",
    "TaskTimeLog",
    "AuditLog",
    "Notification",
    "WeatherData",
]
