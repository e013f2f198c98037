"""
Typed Exception Hierarchy for the Garage Reconciliation Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Reports render row-by-row and must decide, per row, whether a figure is
trustworthy, missing, or merely suspicious. Callers therefore catch by
type and read structured attributes instead of parsing message strings:

    try:
        debt = facade.compute_vehicle_debt(vehicle_id)
    except VehicleNotFoundError as e:
        return {"error": e.code, "vehicle_id": e.vehicle_id}
    except DataSourceError as e:
        if e.retryable:
            schedule_retry()

Every class carries a ``code`` class attribute (machine-readable, API-safe)
and keeps its context as instance attributes.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    GarageKernelError (base)
    |
    +-- InvalidRangeError
    |
    +-- NotFoundError
    |   +-- PartNotFoundError
    |   +-- VehicleNotFoundError
    |
    +-- DataSourceError
    |
    +-- DataIntegrityWarning
    |
    +-- PaymentError
        +-- NoOutstandingDebtError
        +-- PaymentExceedsDebtError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category     | Code                    | When Raised
-------------|-------------------------|------------------------------------------
Range        | INVALID_RANGE           | from > to, naive or malformed timestamps
-------------|-------------------------|------------------------------------------
Lookup       | PART_NOT_FOUND          | Spare part id does not exist
             | VEHICLE_NOT_FOUND       | Vehicle id does not exist
-------------|-------------------------|------------------------------------------
Data source  | DATA_SOURCE_ERROR       | Storage / transport failure (retryable)
-------------|-------------------------|------------------------------------------
Integrity    | DATA_INTEGRITY_WARNING  | Reconstructed stock went negative
             |                         | (NEVER raised; attached to results)
-------------|-------------------------|------------------------------------------
Payment      | NO_OUTSTANDING_DEBT     | Payment against a settled vehicle
             | PAYMENT_EXCEEDS_DEBT    | Payment larger than the remaining debt

===============================================================================
PROPAGATION
===============================================================================

1. Validation errors (InvalidRangeError) are raised synchronously before
   any I/O happens.
2. DataSourceError and NotFoundError propagate to the caller in
   single-item operations and are collected per item in batch reports.
3. DataIntegrityWarning instances are constructed and attached to the
   StockPeriodResult they describe; reconciliation still returns a
   best-effort figure.
"""

from datetime import datetime
from decimal import Decimal


class GarageKernelError(Exception):
    """
    Base exception for all garage kernel errors.

    All subclasses must have a ``code`` class attribute for
    machine-readable error identification.
    """

    code: str = "GARAGE_KERNEL_ERROR"


# Range validation


class InvalidRangeError(GarageKernelError):
    """Reporting period is inverted or its bounds are malformed."""

    code: str = "INVALID_RANGE"

    def __init__(self, start: object, end: object, reason: str | None = None):
        self.start = start
        self.end = end
        self.reason = reason or "start is after end"
        super().__init__(
            f"Invalid reporting range [{start}, {end}]: {self.reason}"
        )


# Lookup errors


class NotFoundError(GarageKernelError):
    """Base exception for a referenced entity that does not exist."""

    code: str = "NOT_FOUND"


class PartNotFoundError(NotFoundError):
    """Spare part with given ID was not found."""

    code: str = "PART_NOT_FOUND"

    def __init__(self, part_id: str):
        self.part_id = part_id
        super().__init__(f"Part not found: {part_id}")


class VehicleNotFoundError(NotFoundError):
    """Vehicle with given ID was not found."""

    code: str = "VEHICLE_NOT_FOUND"

    def __init__(self, vehicle_id: str):
        self.vehicle_id = vehicle_id
        super().__init__(f"Vehicle not found: {vehicle_id}")


# Storage errors


class DataSourceError(GarageKernelError):
    """
    The persistence layer failed to answer a read.

    The caller may retry; the reconciliation core never returns partial
    data in place of a failed read.
    """

    code: str = "DATA_SOURCE_ERROR"
    retryable: bool = True

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Data source failure during {operation}: {detail}")


# Integrity annotations


class DataIntegrityWarning(GarageKernelError):
    """
    Reconstructed stock implies an impossible negative historical state.

    Not raised. Instances are attached to the reconciliation result so the
    report can flag the row; a negative figure usually means the usage log
    is missing events.
    """

    code: str = "DATA_INTEGRITY_WARNING"

    def __init__(
        self,
        part_id: str,
        checkpoint: str,
        quantity: int,
        at: datetime | None = None,
    ):
        self.part_id = part_id
        self.checkpoint = checkpoint
        self.quantity = quantity
        self.at = at
        where = f" at {at.isoformat()}" if at is not None else ""
        super().__init__(
            f"Part {part_id}: reconstructed {checkpoint} stock is "
            f"{quantity}{where}"
        )


# Payment pre-checks


class PaymentError(GarageKernelError):
    """Base exception for rejected payment pre-checks."""

    code: str = "PAYMENT_ERROR"


class NoOutstandingDebtError(PaymentError):
    """Vehicle has nothing left to pay."""

    code: str = "NO_OUTSTANDING_DEBT"

    def __init__(self, vehicle_id: str, remaining_debt: Decimal):
        self.vehicle_id = vehicle_id
        self.remaining_debt = remaining_debt
        super().__init__(
            f"No outstanding debt for vehicle {vehicle_id} "
            f"(remaining {remaining_debt})"
        )


class PaymentExceedsDebtError(PaymentError):
    """Payment amount is larger than the remaining debt."""

    code: str = "PAYMENT_EXCEEDS_DEBT"

    def __init__(self, vehicle_id: str, amount: Decimal, remaining_debt: Decimal):
        self.vehicle_id = vehicle_id
        self.amount = amount
        self.remaining_debt = remaining_debt
        super().__init__(
            f"Payment amount ({amount}) exceeds remaining debt "
            f"({remaining_debt}) for vehicle {vehicle_id}"
        )
