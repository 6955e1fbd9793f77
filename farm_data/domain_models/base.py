# ==============================================================================
# BASE MODEL - SQLAlchemy Foundation
# ==============================================================================
# Base declarative class and common mixins for all SQL models
# ==============================================================================

from __future__ import annotations

from datetime import datetime
from sqlalchemy import DateTime, Integer, event, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class SQLBase(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    Provides a common foundation with:
    - Integer row-id primary key (SQLite INTEGER PRIMARY KEY)
    - Type annotations for mapped columns

    The data access layer talks to these tables with bound SQL,
    so the models only define the schema.

    Example:
        >>> class Farm(SQLBase, TimestampMixin):
        ...     __tablename__ = "farms"
        ...     name: Mapped[str] = mapped_column(String(255))
    """

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
    )

    def __repr__(self) -> str:
        """Generate readable representation."""
        class_name = self.__class__.__name__
        return f"<{class_name}(id={self.id})>"


class TimestampMixin:
    """
    Mixin providing automatic timestamp tracking.

    Adds created_at and updated_at columns populated by the database.
    ``updated_at`` is refreshed by an AFTER UPDATE trigger installed
    when the schema is created, so raw UPDATE statements keep it current.

    Attributes:
        created_at: Timestamp of record creation (auto-set)
        updated_at: Timestamp of last update (auto-updated)
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        server_default=func.now(),
        nullable=False,
    )


@event.listens_for(SQLBase.metadata, "after_create")
def _create_updated_at_triggers(target, connection, **kw) -> None:
    """Install one updated_at trigger per timestamped table."""
    for table in target.sorted_tables:
        if "updated_at" not in table.c:
            continue
        connection.exec_driver_sql(
            f"CREATE TRIGGER IF NOT EXISTS trg_{table.name}_updated_at "
            f"AFTER UPDATE ON {table.name} FOR EACH ROW "
            f"WHEN NEW.updated_at = OLD.updated_at "
            f"BEGIN UPDATE {table.name} SET updated_at = CURRENT_TIMESTAMP "
            f"WHERE id = NEW.id; END"
        )
