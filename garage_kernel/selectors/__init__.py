"""Read-only selectors over the garage persistence layer."""

from garage_kernel.selectors.base import BaseSelector
from garage_kernel.selectors.inventory_selector import InventorySelector
from garage_kernel.selectors.vehicle_selector import VehicleSelector

__all__ = ["BaseSelector", "InventorySelector", "VehicleSelector"]
