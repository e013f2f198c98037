"""
Module: garage_kernel.models.vehicle
Responsibility: ORM persistence for customers, vehicles, repair orders and
    payments -- the inputs of vehicle debt aggregation.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants:
    - No balance column.  A vehicle's total paid and remaining debt are
      recomputed from repair_orders and payments on every read.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, ForeignKey, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from garage_kernel.db.base import TrackedBase, UTCDateTime, UUIDString


class CustomerModel(TrackedBase):
    """Vehicle owner."""

    __tablename__ = "customers"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(200), nullable=True)


class VehicleModel(TrackedBase):
    """Vehicle received by the garage."""

    __tablename__ = "vehicles"

    license_plate: Mapped[str] = mapped_column(String(20), nullable=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False)

    customer_id: Mapped[UUID | None] = mapped_column(
        UUIDString(),
        ForeignKey("customers.id"),
        nullable=True,
    )

    def __repr__(self) -> str:
        return f"<Vehicle {self.license_plate} ({self.brand})>"


class RepairOrderModel(TrackedBase):
    """Repair order billed to a vehicle."""

    __tablename__ = "repair_orders"

    __table_args__ = (
        Index("idx_repair_order_vehicle", "vehicle_id"),
        Index("idx_repair_order_reception", "reception_date"),
    )

    vehicle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vehicles.id"),
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(38, 9),
        default=Decimal("0"),
        nullable=False,
    )

    status: Mapped[str] = mapped_column(
        String(20),
        default="pending",
        nullable=False,
    )

    reception_date: Mapped[date] = mapped_column(Date, nullable=False)

    completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    notes: Mapped[str | None] = mapped_column(String(4000), nullable=True)


class PaymentModel(TrackedBase):
    """Payment received for a vehicle."""

    __tablename__ = "payments"

    __table_args__ = (Index("idx_payment_vehicle", "vehicle_id"),)

    vehicle_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("vehicles.id"),
        nullable=False,
    )

    amount: Mapped[Decimal] = mapped_column(Numeric(38, 9), nullable=False)

    payment_method: Mapped[str] = mapped_column(
        String(20),
        default="cash",
        nullable=False,
    )

    paid_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
    )
