"""
Module: garage_kernel.models.inventory
Responsibility: ORM persistence for spare parts and their append-only usage log.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants:
    - spare_parts.stock_quantity is the live on-hand quantity.  It is the
      only stock figure persisted; every historical figure is reconstructed
      from inventory_usage_events at read time.
    - inventory_usage_events rows are append-only.  quantity_delta is signed:
      negative = consumed by a repair order, positive = restocked / returned.
    - sequence is the insertion order and breaks ties between events that
      share an occurred_at timestamp.
"""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    BigInteger,
    ForeignKey,
    Identity,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from garage_kernel.db.base import TrackedBase, UTCDateTime, UUIDString


class SparePartModel(TrackedBase):
    """Spare part with its live stock level."""

    __tablename__ = "spare_parts"

    name: Mapped[str] = mapped_column(String(200), nullable=False)

    price: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    stock_quantity: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    # Minimum-stock threshold for low-stock alerting (0 = use configured default)
    min_stock: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SparePart {self.name}: {self.stock_quantity}>"


class UsageEventModel(TrackedBase):
    """One signed stock movement of a spare part."""

    __tablename__ = "inventory_usage_events"

    __table_args__ = (
        Index("idx_usage_part_time", "spare_part_id", "occurred_at", "sequence"),
    )

    spare_part_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("spare_parts.id"),
        nullable=False,
    )

    quantity_delta: Mapped[int] = mapped_column(Integer, nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )

    # Originating repair order (None for restocks)
    repair_order_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("repair_orders.id"),
        nullable=True,
    )

    sequence: Mapped[int] = mapped_column(
        BigInteger,
        Identity(always=False),
        nullable=False,
    )

    def __repr__(self) -> str:
        return (
            f"<UsageEvent part={self.spare_part_id} "
            f"delta={self.quantity_delta} at={self.occurred_at}>"
        )
