# ==============================================================================
# CROP MODELS - Crops, Activities and Observations
# ==============================================================================

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Date, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farm_data.domain_models.base import SQLBase, TimestampMixin


class Crop(SQLBase, TimestampMixin):
    __tablename__ = "crops"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    field_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("fields.id"), index=True, nullable=True
    )
    crop_type: Mapped[str] = mapped_column(String(100), nullable=False)
    crop_variety: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    planting_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    expected_harvest_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), default="planned", server_default="planned"
    )
    area_hectares: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    expected_yield: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )


class CropActivity(SQLBase, TimestampMixin):
    """Dated field work on a crop (planted, irrigated, harvested, ...)."""

    __tablename__ = "crop_activities"

    crop_id: Mapped[int] = mapped_column(
        ForeignKey("crops.id"), index=True, nullable=False
    )
    activity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )


class CropObservation(SQLBase, TimestampMixin):
    __tablename__ = "crop_observations"

    crop_id: Mapped[int] = mapped_column(
        ForeignKey("crops.id"), index=True, nullable=False
    )
    observation_date: Mapped[date] = mapped_column(Date, nullable=False)
    observation_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    health_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
