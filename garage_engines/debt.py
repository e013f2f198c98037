"""
Module: garage_engines.debt
Responsibility:
    Aggregate a vehicle's billed repair orders and received payments into
    total debt, total paid, and remaining debt.  Also provides the pure
    pre-check applied before a payment is recorded and the search predicate
    used by the debt screen.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Decimal-only arithmetic; floats are rejected.
    - Sums run in an exact decimal context (unbounded precision with the
      Inexact trap set), so any permutation of the same multiset of amounts
      yields an identical Decimal, exponent included.
    - remaining_debt = total_debt - total_paid, never clamped: a negative
      value means the vehicle is overpaid.

Failure modes:
    - TypeError when an amount is a float.
    - ValueError when an order or payment belongs to another vehicle.
    - NoOutstandingDebtError / PaymentExceedsDebtError from check_payment().
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from decimal import MAX_PREC, Decimal, Inexact, localcontext

from garage_engines.tracer import traced_engine
from garage_kernel.db.types import to_decimal
from garage_kernel.domain.dtos import Payment, RepairOrder, VehicleRef
from garage_kernel.domain.period import ReportPeriod
from garage_kernel.exceptions import NoOutstandingDebtError, PaymentExceedsDebtError
from garage_kernel.logging_config import get_logger

logger = get_logger("engines.debt")

ZERO = Decimal("0")


@dataclass(frozen=True)
class VehicleDebt:
    """
    Outstanding balance of one vehicle.

    Guarantees:
        - total_debt == sum(order.total_amount for order in repair_orders).
        - total_paid == sum(payment.amount for payment in payments).
        - remaining_debt == total_debt - total_paid (may be negative).
    """

    vehicle: VehicleRef
    repair_orders: tuple[RepairOrder, ...]
    payments: tuple[Payment, ...]
    total_debt: Decimal
    total_paid: Decimal
    remaining_debt: Decimal

    @property
    def vehicle_id(self) -> str:
        return self.vehicle.vehicle_id

    @property
    def is_overpaid(self) -> bool:
        return self.remaining_debt < ZERO

    @property
    def is_settled(self) -> bool:
        return self.remaining_debt <= ZERO

    @property
    def has_activity(self) -> bool:
        """True if the vehicle was billed or paid anything."""
        return self.total_debt > ZERO or self.total_paid > ZERO


def exact_sum(amounts: Iterable[Decimal]) -> Decimal:
    """
    Sum Decimal amounts without rounding.

    Raises:
        TypeError: If any amount is a float.
    """
    total = ZERO
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        ctx.traps[Inexact] = True
        for amount in amounts:
            total = total + to_decimal(amount)
    return total


def remaining_debt(total_debt: Decimal, total_paid: Decimal) -> Decimal:
    """Outstanding balance; negative when overpaid."""
    with localcontext() as ctx:
        ctx.prec = MAX_PREC
        ctx.traps[Inexact] = True
        return to_decimal(total_debt) - to_decimal(total_paid)


class DebtAggregator:
    """
    Pure engine for vehicle debt aggregation.

    Contract:
        Orders and payments are read directly; no running balance is
        replayed, so both totals are independent sums.
    Guarantees:
        - Deterministic for the same order / payment sets.
        - Orders are returned by (reception_date, order_id) and payments by
          (paid_at, payment_id).
    """

    @traced_engine("debt", "1.0", fingerprint_fields=("vehicle",))
    def aggregate(
        self,
        *,
        vehicle: VehicleRef,
        orders: Sequence[RepairOrder],
        payments: Sequence[Payment],
        reception_window: ReportPeriod | None = None,
    ) -> VehicleDebt:
        """
        Aggregate one vehicle's debt.

        Args:
            vehicle: The vehicle being reported.
            orders: All repair orders of the vehicle.
            payments: All payments of the vehicle.
            reception_window: If given, only orders received inside the
                window are billed.  Payments are never filtered.

        Raises:
            ValueError: If an order or payment names another vehicle.
            TypeError: If an amount is a float.
        """
        for order in orders:
            if order.vehicle_id != vehicle.vehicle_id:
                raise ValueError(
                    f"Order {order.order_id} belongs to vehicle {order.vehicle_id}, "
                    f"not {vehicle.vehicle_id}"
                )
        for payment in payments:
            if payment.vehicle_id != vehicle.vehicle_id:
                raise ValueError(
                    f"Payment {payment.payment_id} belongs to vehicle "
                    f"{payment.vehicle_id}, not {vehicle.vehicle_id}"
                )

        billed = orders
        if reception_window is not None:
            billed = [o for o in orders if reception_window.includes_date(o.reception_date)]

        ordered_orders = tuple(
            sorted(billed, key=lambda o: (o.reception_date, o.order_id))
        )
        ordered_payments = tuple(
            sorted(payments, key=lambda p: (p.paid_at, p.payment_id))
        )

        total_debt = exact_sum(o.total_amount for o in ordered_orders)
        total_paid = exact_sum(p.amount for p in ordered_payments)
        balance = remaining_debt(total_debt, total_paid)

        logger.debug("vehicle_debt_aggregated", extra={
            "vehicle_id": vehicle.vehicle_id,
            "order_count": len(ordered_orders),
            "payment_count": len(ordered_payments),
            "total_debt": total_debt,
            "total_paid": total_paid,
            "remaining_debt": balance,
        })

        return VehicleDebt(
            vehicle=vehicle,
            repair_orders=ordered_orders,
            payments=ordered_payments,
            total_debt=total_debt,
            total_paid=total_paid,
            remaining_debt=balance,
        )


def check_payment(debt: VehicleDebt, amount: Decimal) -> Decimal:
    """
    Validate a payment against the current debt.

    Returns:
        The remaining debt after the payment would be applied.

    Raises:
        ValueError: If amount is not positive.
        NoOutstandingDebtError: If nothing is owed.
        PaymentExceedsDebtError: If amount is larger than the remaining debt.
    """
    amount = to_decimal(amount)
    if amount <= ZERO:
        raise ValueError(f"Payment amount must be positive, got {amount}")
    if debt.remaining_debt <= ZERO:
        raise NoOutstandingDebtError(debt.vehicle_id, debt.remaining_debt)
    if amount > debt.remaining_debt:
        raise PaymentExceedsDebtError(debt.vehicle_id, amount, debt.remaining_debt)
    return remaining_debt(debt.remaining_debt, amount)


def matches_search(debt: VehicleDebt, term: str | None) -> bool:
    """Case-insensitive match on plate, brand and customer contact fields."""
    if not term:
        return True
    needle = term.lower()
    vehicle = debt.vehicle
    haystack = (
        vehicle.license_plate,
        vehicle.brand,
        vehicle.customer_name,
        vehicle.customer_phone,
        vehicle.customer_email,
    )
    return any(value and needle in value.lower() for value in haystack)
