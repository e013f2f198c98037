"""ORM models.  Importing this package registers every table on Base.metadata."""

from garage_kernel.models.inventory import SparePartModel, UsageEventModel
from garage_kernel.models.vehicle import (
    CustomerModel,
    PaymentModel,
    RepairOrderModel,
    VehicleModel,
)

__all__ = [
    "SparePartModel",
    "UsageEventModel",
    "CustomerModel",
    "VehicleModel",
    "RepairOrderModel",
    "PaymentModel",
]
