# ==============================================================================
# SYSTEM MODELS - Weather, Notifications and Audit Trail
# ==============================================================================

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Boolean, Date, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farm_data.domain_models.base import SQLBase, TimestampMixin


class WeatherData(SQLBase, TimestampMixin):
    __tablename__ = "weather_data"

    farm_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=True
    )
    observation_date: Mapped[date] = mapped_column(Date, nullable=False)
    temperature_max: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    temperature_min: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    precipitation_mm: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    humidity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class Notification(SQLBase, TimestampMixin):
    __tablename__ = "notifications"

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id"), index=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    notification_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, server_default="0")


class AuditLog(SQLBase, TimestampMixin):
    """Persisted audit trail entry; ``details`` holds JSON text."""

    __tablename__ = "audit_logs"

    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), index=True, nullable=True
    )
    action: Mapped[str] = mapped_column(String(100), nullable=False)
    table_name: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    record_id: Mapped[Optional[int]] = mapped_column(nullable=True)
    details: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
