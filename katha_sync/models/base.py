"""Declarative base and shared audit columns for all tables."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utcnow() -> datetime:
    """Return the current UTC time."""
    return datetime.now(UTC)


def new_id() -> str:
    """Generate a new primary key."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Declarative base for all models."""

    pass


class AuditMixin:
    """Identity, timestamps, attribution and soft-delete columns.

    Attributes:
        id: Unique identifier (UUID)
        created_at: Timestamp when row was created
        updated_at: Timestamp when row was last updated
        created_by: Editor id that created the row
        updated_by: Editor id that last updated the row
        deleted_at: Soft-delete timestamp (None while active)
        deleted_by: Editor id that soft-deleted the row
    """

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )
    created_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    updated_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(36), nullable=True)

    @property
    def is_deleted(self) -> bool:
        """Whether the row is soft-deleted."""
        return self.deleted_at is not None
