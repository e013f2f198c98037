"""
Module: garage_kernel.db.base
Responsibility: Declarative base for the garage ORM models: UUID primary
    keys stored as text, Decimal money columns, and row timestamps.
Architecture position: Kernel > DB.  Lowest import target of the kernel;
    MUST NOT import from models/, selectors/, domain/ or outer layers.

Invariants enforced:
    - Every row has a uuid4 primary key stored as String(36), so ids travel
      through reports and logs as plain strings.
    - Decimal annotations map to Numeric(38, 9); money is never a float.
    - Timestamps are stored in UTC and come back timezone-aware, on every
      backend.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID on the Python side, 36-character text in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        # Accept both UUID objects and their (any-case) string form.
        return None if value is None else str(UUID(str(value)))

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    SQLite drops the offset of an aware value, so every bound value is
    shifted to UTC first and naive values read back are marked UTC.  Naive
    values are refused on the way in.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"Naive datetime cannot be stored: {value!r}")
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)


class Base(DeclarativeBase):
    """Declarative base shared by every garage table."""

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: UTCDateTime(),
        UUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Base with created_at / updated_at row stamps.

    The stamps are bookkeeping only.  Reconciliation reads the business
    timestamps (occurred_at, reception_date, paid_at) instead.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
