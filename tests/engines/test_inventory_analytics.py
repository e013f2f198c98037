"""
Tests for the inventory health summary.
"""

from decimal import Decimal

import pytest

from garage_engines.inventory_analytics import InventoryAnalyzer
from garage_kernel.domain.dtos import InventoryItem


def item(part_id, stock, price="0", min_stock=0):
    return InventoryItem(
        part_id=part_id,
        name=part_id,
        stock_quantity=stock,
        min_stock=min_stock,
        unit_price=Decimal(price),
    )


class TestInventoryAnalyzer:

    def setup_method(self):
        self.analyzer = InventoryAnalyzer(default_low_stock_threshold=5, top_n=2)

    def test_totals_and_average(self):
        report = self.analyzer.summarize(items=[
            item("a", 10, "2.50"),
            item("b", 3, "10"),
            item("c", 1, "0.01"),
        ])

        assert report.total_parts == 3
        assert report.total_value == Decimal("55.01")
        assert report.average_part_value == Decimal("18.34")

    def test_low_and_out_of_stock_are_disjoint(self):
        report = self.analyzer.summarize(items=[
            item("empty", 0),
            item("low", 5),
            item("ok", 6),
            item("custom", 8, min_stock=10),
        ])

        assert [i.part_id for i in report.low_stock_items] == ["low", "custom"]
        assert [i.part_id for i in report.out_of_stock_items] == ["empty"]
        assert report.low_stock_count == 2
        assert report.out_of_stock_count == 1

    def test_negative_stock_counts_as_out_of_stock(self):
        report = self.analyzer.summarize(items=[item("broken", -2, "1")])

        assert report.out_of_stock_count == 1
        assert report.low_stock_count == 0

    def test_top_value_parts_ranked_with_ties_by_id(self):
        report = self.analyzer.summarize(items=[
            item("z", 1, "100"),
            item("a", 2, "50"),
            item("m", 1, "10"),
        ])

        assert [v.item.part_id for v in report.top_value_parts] == ["a", "z"]
        assert report.top_value_parts[0].total_value == Decimal("100")

    def test_empty_inventory(self):
        report = self.analyzer.summarize(items=[])

        assert report.total_parts == 0
        assert report.total_value == Decimal("0")
        assert report.average_part_value == Decimal("0")
        assert report.top_value_parts == ()

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            InventoryAnalyzer(default_low_stock_threshold=-1)
        with pytest.raises(ValueError):
            InventoryAnalyzer(top_n=-1)

    def test_summary_is_logged(self, captured_logs):
        self.analyzer.summarize(items=[item("a", 1, "1")])

        logs = captured_logs()
        summary = next(r for r in logs if r["message"] == "inventory_summarized")
        assert summary["total_parts"] == 1
        assert summary["total_value"] == "1"
