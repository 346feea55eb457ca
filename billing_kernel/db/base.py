"""
Module: billing_kernel.db.base
Responsibility: Declarative base and column conventions shared by every
    billing table (invoices, submissions, receipt events, tracking codes,
    expenses).
Architecture position: Kernel > DB.  MUST NOT import from domain/,
    services/, or the billing modules.

Invariants enforced:
    - Every row has a uuid4 primary key stored as a 36-character string, so
      the same schema runs on PostgreSQL and SQLite.
    - Decimal columns are Numeric(38, 9); datetimes are timezone-aware.
    - TrackedBase rows carry created/updated timestamps and the acting staff
      member.  Services stamp them from the injected Clock; the server
      default only covers rows written outside the service layer.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID in Python, String(36) in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    """Declarative base: UUID ``id`` plus the type map for annotated columns."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Base for rows staff create and edit.

    Actor columns are nullable: callers are pre-authorized and clients
    submitting payment proof do not identify as staff.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False,
    )
    created_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def stamp_update(self, now: datetime, actor_id: UUID | None = None) -> None:
        """Record an in-place edit by ``actor_id`` at ``now``."""
        self.updated_at = now
        self.updated_by_id = actor_id


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a datetime read back from the store to aware UTC.

    SQLite returns naive datetimes even for ``timezone=True`` columns.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
