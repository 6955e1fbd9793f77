# ==============================================================================
# LIVESTOCK MODELS - Animals, Breeds and Animal Records
# ==============================================================================

from __future__ import annotations

from datetime import date
from typing import Optional

from sqlalchemy import Date, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farm_data.domain_models.base import SQLBase, TimestampMixin


class Breed(SQLBase, TimestampMixin):
    """Reference data, unique per (species, name)."""

    __tablename__ = "breeds"

    species: Mapped[str] = mapped_column(String(100), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    origin_country: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    purpose: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    average_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    temperament: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class Animal(SQLBase, TimestampMixin):
    """
    Animal on a farm.

    ``father_id`` and ``mother_id`` point back into ``animals`` for pedigree;
    ``current_location_id`` points at ``locations``.
    """

    __tablename__ = "animals"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    species: Mapped[str] = mapped_column(String(100), nullable=False)
    breed: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    sex: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    identification_tag: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    health_status: Mapped[str] = mapped_column(
        String(50), default="healthy", server_default="healthy"
    )
    status: Mapped[str] = mapped_column(
        String(50), default="active", server_default="active"
    )
    production_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    current_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    target_weight: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    acquisition_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    acquisition_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    current_location_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("locations.id"), nullable=True
    )
    father_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("animals.id"), nullable=True
    )
    mother_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("animals.id"), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class AnimalHealthRecord(SQLBase, TimestampMixin):
    __tablename__ = "animal_health_records"

    animal_id: Mapped[int] = mapped_column(
        ForeignKey("animals.id"), index=True, nullable=False
    )
    record_date: Mapped[date] = mapped_column(Date, nullable=False)
    record_type: Mapped[str] = mapped_column(String(50), nullable=False)
    diagnosis: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    treatment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    vet_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class AnimalProduction(SQLBase, TimestampMixin):
    __tablename__ = "animal_production"

    animal_id: Mapped[int] = mapped_column(
        ForeignKey("animals.id"), index=True, nullable=False
    )
    production_date: Mapped[date] = mapped_column(Date, nullable=False)
    production_type: Mapped[str] = mapped_column(String(50), nullable=False)
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class AnimalBreeding(SQLBase, TimestampMixin):
    __tablename__ = "animal_breeding"

    animal_id: Mapped[int] = mapped_column(
        ForeignKey("animals.id"), index=True, nullable=False
    )
    partner_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("animals.id"), nullable=True
    )
    breeding_date: Mapped[date] = mapped_column(Date, nullable=False)
    expected_birth_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    outcome: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)


class AnimalFeedingRecord(SQLBase, TimestampMixin):
    __tablename__ = "animal_feeding_records"

    animal_id: Mapped[int] = mapped_column(
        ForeignKey("animals.id"), index=True, nullable=False
    )
    feeding_date: Mapped[date] = mapped_column(Date, nullable=False)
    feed_type: Mapped[str] = mapped_column(String(100), nullable=False)
    quantity: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)


class AnimalEvent(SQLBase, TimestampMixin):
    __tablename__ = "animal_events"

    animal_id: Mapped[int] = mapped_column(
        ForeignKey("animals.id"), index=True, nullable=False
    )
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    event_type: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)


class AnimalMovement(SQLBase, TimestampMixin):
    """Move of an animal between two locations."""

    __tablename__ = "animal_movements"

    animal_id: Mapped[int] = mapped_column(
        ForeignKey("animals.id"), index=True, nullable=False
    )
    source_location_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("locations.id"), nullable=True
    )
    destination_location_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("locations.id"), nullable=True
    )
    movement_date: Mapped[date] = mapped_column(Date, nullable=False)
    recorded_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
