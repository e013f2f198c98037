"""Pure domain records: DTOs, reporting periods, and the injectable clock."""

from garage_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from garage_kernel.domain.dtos import (
    InventoryItem,
    Payment,
    RepairOrder,
    RepairOrderStatus,
    UsageEvent,
    VehicleRef,
)
from garage_kernel.domain.period import ReportPeriod

__all__ = [
    "Clock",
    "DeterministicClock",
    "SystemClock",
    "InventoryItem",
    "Payment",
    "RepairOrder",
    "RepairOrderStatus",
    "UsageEvent",
    "VehicleRef",
    "ReportPeriod",
]
