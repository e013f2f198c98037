"""
Module: garage_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the canonical import surface for
    garage_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import garage_kernel domain records, db.types and exceptions.
    MUST NOT import garage_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or touch a session.
      Current stock and event windows are passed in as parameters.
    - Decimal-only arithmetic for money; integer arithmetic for quantities.
    - Determinism: identical inputs always produce identical outputs.

Usage:
    from garage_engines import StockPeriodReconciler, DebtAggregator, SalesAnalyzer
"""

from garage_engines.debt import (
    DebtAggregator,
    VehicleDebt,
    check_payment,
    exact_sum,
    matches_search,
    remaining_debt,
)
from garage_engines.inventory_analytics import (
    InventoryAnalyzer,
    InventoryHealthReport,
    PartValue,
)
from garage_engines.sales import (
    BrandSales,
    SalesAnalyzer,
    SalesSummary,
)
from garage_engines.stock_period import (
    StockPeriodReconciler,
    StockPeriodResult,
    order_events,
    partition_events,
    sum_deltas,
)
from garage_engines.tracer import traced_engine

__all__ = [
    "DebtAggregator",
    "VehicleDebt",
    "check_payment",
    "exact_sum",
    "matches_search",
    "remaining_debt",
    "InventoryAnalyzer",
    "InventoryHealthReport",
    "PartValue",
    "BrandSales",
    "SalesAnalyzer",
    "SalesSummary",
    "StockPeriodReconciler",
    "StockPeriodResult",
    "order_events",
    "partition_events",
    "sum_deltas",
    "traced_engine",
]
