# ==============================================================================
# UNIT OF WORK PACKAGE INITIALIZATION
# ==============================================================================

"""
Unit of Work Pattern Implementation
===================================

Provides atomic multi-statement writes for the repositories:
- UnitOfWork: Stages statements and commits them as one batch
- get_unit_of_work: Helper bound to the factory executor
"""

from farm_data.database.unit_of_work.uow import UnitOfWork, get_unit_of_work

__all__ = [
    "UnitOfWork",
    "get_unit_of_work",
]
