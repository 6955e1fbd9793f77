# ==============================================================================
# OPERATIONS MODELS - Tasks, Finance, Inventory and Equipment
# ==============================================================================

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from sqlalchemy import Date, DateTime, Float, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from farm_data.domain_models.base import SQLBase, TimestampMixin


# ==============================================================================
# TASKS
# ==============================================================================

class Task(SQLBase, TimestampMixin):
    """
    Farm task.

    Attributes:
        status: pending, in_progress, completed or cancelled
        priority: low, medium, high or urgent
        assigned_to: User responsible for the task
    """

    __tablename__ = "tasks"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), default="pending", server_default="pending"
    )
    priority: Mapped[str] = mapped_column(
        String(20), default="medium", server_default="medium"
    )
    task_category: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    completed_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    assigned_to: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), index=True, nullable=True
    )
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )


class TaskComment(SQLBase, TimestampMixin):
    __tablename__ = "task_comments"

    task_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id"), index=True, nullable=False
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    comment: Mapped[str] = mapped_column(Text, nullable=False)


class TaskTimeLog(SQLBase, TimestampMixin):
    __tablename__ = "task_time_logs"

    task_id: Mapped[int] = mapped_column(
        ForeignKey("tasks.id"), index=True, nullable=False
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )
    start_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    end_time: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    total_hours: Mapped[float] = mapped_column(Float, default=0, server_default="0")


# ==============================================================================
# FINANCE
# ==============================================================================

class FinanceEntry(SQLBase, TimestampMixin):
    """Income or expense line; ``amount`` is always positive."""

    __tablename__ = "finance_entries"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    entry_date: Mapped[date] = mapped_column(Date, nullable=False)
    type: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[float] = mapped_column(Float, nullable=False)
    currency: Mapped[str] = mapped_column(
        String(3), default="USD", server_default="USD"
    )
    account: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    budget_category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )


# ==============================================================================
# INVENTORY
# ==============================================================================

class InventoryItem(SQLBase, TimestampMixin):
    """Stocked item; ``reorder_threshold`` drives the stock status."""

    __tablename__ = "inventory"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    category: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    qty: Mapped[float] = mapped_column(Float, default=0, server_default="0")
    unit: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    reorder_threshold: Mapped[float] = mapped_column(
        Float, default=0, server_default="0"
    )
    unit_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)


class InventoryTransaction(SQLBase, TimestampMixin):
    """Signed stock movement recorded for every quantity change."""

    __tablename__ = "inventory_transactions"

    inventory_id: Mapped[int] = mapped_column(
        ForeignKey("inventory.id"), index=True, nullable=False
    )
    qty_delta: Mapped[float] = mapped_column(Float, nullable=False)
    reason_type: Mapped[str] = mapped_column(String(50), nullable=False)
    reference_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    created_by: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id"), nullable=True
    )


class Equipment(SQLBase, TimestampMixin):
    __tablename__ = "equipment"

    farm_id: Mapped[int] = mapped_column(
        ForeignKey("farms.id"), index=True, nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    equipment_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    status: Mapped[str] = mapped_column(
        String(50), default="operational", server_default="operational"
    )
    purchase_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    purchase_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
