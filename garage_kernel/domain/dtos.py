"""
Domain DTOs -- immutable records exchanged between the event store, the
engines, and the reporting facade.

All records are frozen dataclasses.  Quantities are ``int``, money is
``Decimal``, timestamps are timezone-aware ``datetime``.  None of these
records carries a derived total; totals are recomputed on every read.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


class RepairOrderStatus(str, Enum):
    """Lifecycle status of a repair order."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class InventoryItem:
    """A tracked spare part and its live on-hand quantity."""

    part_id: str
    name: str
    stock_quantity: int
    min_stock: int = 0
    unit_price: Decimal = Decimal("0")

    def __post_init__(self) -> None:
        if self.min_stock < 0:
            raise ValueError(f"min_stock cannot be negative for part {self.part_id}")

    @property
    def stock_value(self) -> Decimal:
        return self.unit_price * self.stock_quantity


@dataclass(frozen=True)
class UsageEvent:
    """
    A signed stock movement for one part.

    ``delta`` is negative for consumption and positive for restock or
    return.  ``sequence`` is the insertion order and breaks timestamp ties.
    """

    part_id: str
    delta: int
    occurred_at: datetime
    repair_order_id: str | None = None
    sequence: int = 0

    @property
    def sort_key(self) -> tuple[datetime, int]:
        return (self.occurred_at, self.sequence)


@dataclass(frozen=True)
class RepairOrder:
    """
    Billed repair order for a vehicle.

    ``status`` accepts the stored text and is held as a RepairOrderStatus;
    an unknown status raises ValueError.
    """

    order_id: str
    vehicle_id: str
    total_amount: Decimal
    status: RepairOrderStatus
    reception_date: date
    created_at: datetime | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", RepairOrderStatus(self.status))
        if self.total_amount < 0:
            raise ValueError(
                f"total_amount cannot be negative for order {self.order_id}"
            )


@dataclass(frozen=True)
class Payment:
    """Payment recorded against a vehicle."""

    payment_id: str
    vehicle_id: str
    amount: Decimal
    paid_at: datetime
    method: str = "cash"

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"amount cannot be negative for payment {self.payment_id}")


@dataclass(frozen=True)
class VehicleRef:
    """Vehicle identity shown on debt reports."""

    vehicle_id: str
    license_plate: str = ""
    brand: str = ""
    customer_name: str | None = None
    customer_phone: str | None = None
    customer_email: str | None = None
