"""
Module: garage_engines.sales
Responsibility:
    Summarize the garage's business over a reporting period: repair orders
    received, by status, revenue collected from the vehicles behind those
    orders, and a per-brand breakdown ranked by revenue.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - An order belongs to the period when its reception date does
      (``ReportPeriod.includes_date``); a payment when its timestamp does.
    - Revenue counts only payments made inside the period by vehicles that
      have an order received inside the period.
    - Each vehicle's revenue is attributed to its brand once, however many
      orders it has, so brand revenues add up to total_revenue exactly.
    - Money sums are exact; only average_order_value and share are rounded.
    - Brands are ranked by revenue descending, ties by brand name.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from decimal import Decimal

from garage_engines.debt import ZERO, exact_sum
from garage_engines.tracer import traced_engine
from garage_kernel.db.types import round_money
from garage_kernel.domain.dtos import Payment, RepairOrder, RepairOrderStatus, VehicleRef
from garage_kernel.domain.period import ReportPeriod
from garage_kernel.logging_config import get_logger

logger = get_logger("engines.sales")

UNKNOWN_BRAND = "Unknown"

_HUNDRED = Decimal("100")


@dataclass(frozen=True)
class BrandSales:
    """One row of the per-brand breakdown."""

    rank: int
    brand: str
    repair_count: int
    revenue: Decimal
    # Percent of total_revenue, two decimals; 0 when nothing was collected.
    share: Decimal


@dataclass(frozen=True)
class SalesSummary:
    """Orders and revenue of one period."""

    period: ReportPeriod
    status_counts: Mapping[RepairOrderStatus, int]
    total_revenue: Decimal
    average_order_value: Decimal
    brands: tuple[BrandSales, ...]

    @property
    def total_orders(self) -> int:
        return sum(self.status_counts.values())

    @property
    def completed_orders(self) -> int:
        return self.status_counts[RepairOrderStatus.COMPLETED]

    @property
    def pending_orders(self) -> int:
        return self.status_counts[RepairOrderStatus.PENDING]

    @property
    def in_progress_orders(self) -> int:
        return self.status_counts[RepairOrderStatus.IN_PROGRESS]

    @property
    def cancelled_orders(self) -> int:
        return self.status_counts[RepairOrderStatus.CANCELLED]

    def top_brands(self, n: int) -> tuple[BrandSales, ...]:
        return self.brands[:n]


class SalesAnalyzer:
    """
    Pure engine for period sales summaries.

    Orders, payments and vehicles may be a superset of the period; anything
    outside it is ignored.  Vehicles missing from ``vehicles`` or without a
    brand are grouped under ``UNKNOWN_BRAND``.
    """

    @traced_engine("sales", "1.0", fingerprint_fields=("period",))
    def summarize(
        self,
        *,
        period: ReportPeriod,
        orders: Sequence[RepairOrder],
        payments: Sequence[Payment],
        vehicles: Mapping[str, VehicleRef],
    ) -> SalesSummary:
        received = [o for o in orders if period.includes_date(o.reception_date)]
        ordering_vehicles = {o.vehicle_id for o in received}
        collected = [
            p for p in payments
            if p.vehicle_id in ordering_vehicles and period.contains(p.paid_at)
        ]

        status_counts = dict.fromkeys(RepairOrderStatus, 0)
        status_counts.update(Counter(o.status for o in received))

        by_vehicle: dict[str, list[Decimal]] = defaultdict(list)
        for p in collected:
            by_vehicle[p.vehicle_id].append(p.amount)
        total_revenue = exact_sum(p.amount for p in collected)

        brands = self._brands(received, by_vehicle, vehicles, total_revenue)
        average = (
            round_money(total_revenue / len(received)) if received else ZERO
        )

        summary = SalesSummary(
            period=period,
            status_counts=status_counts,
            total_revenue=total_revenue,
            average_order_value=average,
            brands=brands,
        )

        logger.info("sales_summarized", extra={
            "order_count": summary.total_orders,
            "payment_count": len(collected),
            "total_revenue": total_revenue,
            "brand_count": len(brands),
        })
        return summary

    @staticmethod
    def _brands(
        received: Sequence[RepairOrder],
        by_vehicle: Mapping[str, list[Decimal]],
        vehicles: Mapping[str, VehicleRef],
        total_revenue: Decimal,
    ) -> tuple[BrandSales, ...]:
        def brand_of(vehicle_id: str) -> str:
            vehicle = vehicles.get(vehicle_id)
            return (vehicle.brand if vehicle is not None else "") or UNKNOWN_BRAND

        repair_counts = Counter(brand_of(o.vehicle_id) for o in received)
        amounts: dict[str, list[Decimal]] = defaultdict(list)
        for vehicle_id, paid in by_vehicle.items():
            amounts[brand_of(vehicle_id)].extend(paid)

        revenue = {brand: exact_sum(amounts.get(brand, ())) for brand in repair_counts}
        ranked = sorted(repair_counts, key=lambda b: (-revenue[b], b))

        return tuple(
            BrandSales(
                rank=position,
                brand=brand,
                repair_count=repair_counts[brand],
                revenue=revenue[brand],
                share=(
                    round_money(revenue[brand] * _HUNDRED / total_revenue)
                    if total_revenue > ZERO
                    else ZERO
                ),
            )
            for position, brand in enumerate(ranked, start=1)
        )
