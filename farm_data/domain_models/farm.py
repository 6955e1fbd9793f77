# ==============================================================================
# FARM MODELS - Farms, Membership and Land
# ==============================================================================

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Date, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farm_data.domain_models.base import SQLBase, TimestampMixin


class Farm(SQLBase, TimestampMixin):
    """
    Farm owned by a user.

    Access to every farm-scoped row goes through ``farm_members``.
    """

    __tablename__ = "farms"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    area_hectares: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    farm_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    metadata_json: Mapped[Optional[str]] = mapped_column(
        "metadata", Text, nullable=True
    )
    owner_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"),
        index=True,
        nullable=False,
    )


class FarmMember(SQLBase, TimestampMixin):
    """Membership row granting a user a role on a farm."""

    __tablename__ = "farm_members"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), index=True, nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(50), nullable=False, default="member", server_default="member"
    )


class FarmStatistics(SQLBase, TimestampMixin):
    """Periodic farm summary, seeded with an empty row when a farm is created."""

    __tablename__ = "farm_statistics"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    report_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_animals: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    total_area_hectares: Mapped[float] = mapped_column(Float, default=0, server_default="0")
    revenue: Mapped[float] = mapped_column(Float, default=0, server_default="0")
    expenses: Mapped[float] = mapped_column(Float, default=0, server_default="0")


class FarmOperation(SQLBase, TimestampMixin):
    __tablename__ = "farm_operations"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    operation_type: Mapped[str] = mapped_column(String(100), nullable=False)
    operation_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class Location(SQLBase, TimestampMixin):
    """Named place on a farm (barn, paddock, storage)."""

    __tablename__ = "locations"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    location_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    capacity: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class Field(SQLBase, TimestampMixin):
    __tablename__ = "fields"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    area_hectares: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    soil_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    crop_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
