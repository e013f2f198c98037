"""
Module: garage_engines.inventory_analytics
Responsibility:
    Summarize the health of the live inventory: total stock value, parts
    running low, parts out of stock, and the most valuable stock positions.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Decimal-only money arithmetic; only the presentation average is rounded.
    - A part is *low* when 0 < stock <= threshold, where the threshold is the
      part's own min_stock or, when that is 0, the configured default.
    - A part is *out of stock* when stock <= 0.  The two sets are disjoint.
    - top_value_parts is ordered by value descending, ties by part_id.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from garage_engines.debt import exact_sum
from garage_engines.tracer import traced_engine
from garage_kernel.db.types import round_money
from garage_kernel.domain.dtos import InventoryItem
from garage_kernel.logging_config import get_logger

logger = get_logger("engines.inventory_analytics")


@dataclass(frozen=True)
class PartValue:
    """Stock value of one part (unit price x on-hand quantity)."""

    item: InventoryItem
    total_value: Decimal


@dataclass(frozen=True)
class InventoryHealthReport:
    """Snapshot of the live inventory."""

    total_parts: int
    total_value: Decimal
    average_part_value: Decimal
    low_stock_items: tuple[InventoryItem, ...]
    out_of_stock_items: tuple[InventoryItem, ...]
    top_value_parts: tuple[PartValue, ...]

    @property
    def low_stock_count(self) -> int:
        return len(self.low_stock_items)

    @property
    def out_of_stock_count(self) -> int:
        return len(self.out_of_stock_items)


class InventoryAnalyzer:
    """
    Pure engine for inventory health summaries.

    Args:
        default_low_stock_threshold: Threshold for parts whose min_stock is 0.
        top_n: How many parts to keep in top_value_parts.
    """

    def __init__(self, default_low_stock_threshold: int = 5, top_n: int = 10):
        if default_low_stock_threshold < 0:
            raise ValueError("default_low_stock_threshold cannot be negative")
        if top_n < 0:
            raise ValueError("top_n cannot be negative")
        self.default_low_stock_threshold = default_low_stock_threshold
        self.top_n = top_n

    def threshold_for(self, item: InventoryItem) -> int:
        return item.min_stock or self.default_low_stock_threshold

    def is_low(self, item: InventoryItem) -> bool:
        return 0 < item.stock_quantity <= self.threshold_for(item)

    @traced_engine("inventory_analytics", "1.0")
    def summarize(self, *, items: Sequence[InventoryItem]) -> InventoryHealthReport:
        values = [PartValue(item=i, total_value=i.stock_value) for i in items]
        total_value = exact_sum(v.total_value for v in values)
        average = (
            round_money(total_value / len(items)) if items else Decimal("0")
        )

        ranked = sorted(values, key=lambda v: (-v.total_value, v.item.part_id))

        report = InventoryHealthReport(
            total_parts=len(items),
            total_value=total_value,
            average_part_value=average,
            low_stock_items=tuple(i for i in items if self.is_low(i)),
            out_of_stock_items=tuple(i for i in items if i.stock_quantity <= 0),
            top_value_parts=tuple(ranked[: self.top_n]),
        )

        logger.info("inventory_summarized", extra={
            "total_parts": report.total_parts,
            "total_value": report.total_value,
            "low_stock_count": report.low_stock_count,
            "out_of_stock_count": report.out_of_stock_count,
        })
        return report
