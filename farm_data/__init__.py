# ==============================================================================
# FARM_DATA PACKAGE INITIALIZATION
# ==============================================================================
# Database access core for a farm-management backend
# Architecture: Storage Engine Adapter, Repository Pattern, Unit of Work
# ==============================================================================

"""
Farm Data Core
==============

Generic database access and query-construction layer for farms, animals,
crops, tasks, finance entries and inventory.

Features:
---------
- Validated, sanitized query execution with retry and timeout
- Atomic transaction batches
- Per-actor sliding window rate limiting
- Whitelisted CRUD facade with dependency-checked deletes
- Domain repositories built on the facade

Usage:
------
    from farm_data.database import DatabaseFactory

    await DatabaseFactory.initialize()
    crud = DatabaseFactory.get_crud()
    farm = await crud.find_by_id("farms", 1)
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
