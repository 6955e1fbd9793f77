# ==============================================================================
# REPOSITORIES PACKAGE INITIALIZATION
# ==============================================================================

"""
Repository Pattern Implementation
=================================

Provides data access abstraction through the Repository Pattern:
- BaseRepository: Generic single-table repository
- Domain repositories with farm-membership scoped queries
"""

from farm_data.database.repositories.animal_repository import AnimalRepository
from farm_data.database.repositories.base_repository import BaseRepository
from farm_data.database.repositories.crop_repository import CropRepository
from farm_data.database.repositories.farm_repository import FarmRepository
from farm_data.database.repositories.finance_repository import FinanceRepository
from farm_data.database.repositories.inventory_repository import InventoryRepository
from farm_data.database.repositories.task_repository import TaskRepository
from farm_data.database.repositories.user_repository import UserRepository

__all__ = [
    "BaseRepository",
    "FarmRepository",
    "UserRepository",
    "AnimalRepository",
    "CropRepository",
    "TaskRepository",
    "FinanceRepository",
    "InventoryRepository",
]
