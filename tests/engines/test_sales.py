"""
Tests for the Sales Analyzer.

Covers:
- Order counts by status for orders received in the period
- Revenue from in-period payments of vehicles with in-period orders
- Per-brand breakdown: counts, revenue attributed once per vehicle, shares
- Period boundaries for reception dates and payment timestamps
"""

import random
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from garage_engines.sales import UNKNOWN_BRAND, SalesAnalyzer
from garage_kernel.domain.dtos import RepairOrderStatus, VehicleRef
from garage_kernel.domain.period import ReportPeriod
from tests.factories import dt, order, payment

MAY = ReportPeriod.of(date(2024, 5, 1), date(2024, 5, 31))


@pytest.fixture
def analyzer():
    return SalesAnalyzer()


@pytest.fixture
def vehicles():
    return {
        "V1": VehicleRef("V1", "51A-111.11", "Toyota"),
        "V2": VehicleRef("V2", "29B-222.22", "Honda"),
        "V3": VehicleRef("V3", "30C-333.33", "Toyota"),
        "V4": VehicleRef("V4", "43D-444.44", ""),
        "V5": VehicleRef("V5", "92E-555.55", "Kia"),
    }


@pytest.fixture
def orders():
    return [
        order("V1", "1000000", date(2024, 5, 2), status="completed"),
        order("V1", "500000", date(2024, 5, 20), status="in_progress"),
        order("V2", "300000", date(2024, 5, 6), status="pending"),
        order("V3", "200000", date(2024, 5, 31), status="cancelled"),
        order("V4", "100000", date(2024, 5, 10), status="completed"),
        order("V5", "400000", date(2024, 4, 30), status="completed"),
        # V9 is not a known vehicle.
        order("V9", "50000", date(2024, 5, 15), status="pending"),
    ]


@pytest.fixture
def payments():
    return [
        payment("V1", "700000", dt(2024, 5, 3)),
        payment("V1", "300000", dt(2024, 6, 1)),
        payment("V2", "250000", dt(2024, 5, 7)),
        payment("V5", "400000", dt(2024, 5, 5)),
        payment("V4", "100000", dt(2024, 5, 1)),
        payment("V3", "1000", dt(2024, 4, 30, 23)),
    ]


@pytest.fixture
def summary(analyzer, orders, payments, vehicles):
    return analyzer.summarize(
        period=MAY, orders=orders, payments=payments, vehicles=vehicles
    )


class TestOrderCounts:

    def test_counts_by_status(self, summary):
        assert summary.total_orders == 6
        assert summary.completed_orders == 2
        assert summary.pending_orders == 2
        assert summary.in_progress_orders == 1
        assert summary.cancelled_orders == 1

    def test_every_status_present(self, analyzer):
        empty = analyzer.summarize(period=MAY, orders=[], payments=[], vehicles={})

        assert empty.status_counts == dict.fromkeys(RepairOrderStatus, 0)
        assert empty.total_orders == 0

    def test_reception_dates_bound_the_period(self, summary):
        # 2024-04-30 is outside, 2024-05-31 is inside.
        assert summary.cancelled_orders == 1
        assert "Kia" not in {b.brand for b in summary.brands}


class TestRevenue:

    def test_only_in_period_payments_of_ordering_vehicles(self, summary):
        # V1 700000 + V2 250000 + V4 100000; V1's June payment, V3's April
        # payment and V5's payment (no order in May) are excluded.
        assert summary.total_revenue == Decimal("1050000")

    def test_average_order_value(self, summary):
        assert summary.average_order_value == Decimal("175000.00")

    def test_payment_on_period_end_included(self, analyzer, vehicles):
        summary = analyzer.summarize(
            period=MAY,
            orders=[order("V1", "10", date(2024, 5, 31))],
            payments=[
                payment("V1", "10", MAY.end),
                payment("V1", "99", MAY.start),
            ],
            vehicles=vehicles,
        )

        assert summary.total_revenue == Decimal("10")

    def test_no_orders_means_zero_average(self, analyzer, payments, vehicles):
        summary = analyzer.summarize(
            period=MAY, orders=[], payments=payments, vehicles=vehicles
        )

        assert summary.total_revenue == Decimal("0")
        assert summary.average_order_value == Decimal("0")
        assert summary.brands == ()

    def test_float_amount_rejected(self, analyzer, vehicles):
        bad = replace(payment("V1", "1", dt(2024, 5, 2)), amount=1.5)

        with pytest.raises(TypeError):
            analyzer.summarize(
                period=MAY,
                orders=[order("V1", "1", date(2024, 5, 2))],
                payments=[bad],
                vehicles=vehicles,
            )


class TestBrands:

    def test_ranked_by_revenue(self, summary):
        rows = [(b.rank, b.brand, b.repair_count, b.revenue) for b in summary.brands]

        assert rows == [
            (1, "Toyota", 3, Decimal("700000")),
            (2, "Honda", 1, Decimal("250000")),
            (3, UNKNOWN_BRAND, 2, Decimal("100000")),
        ]

    def test_vehicle_revenue_counted_once_per_brand(self, summary):
        assert sum(b.revenue for b in summary.brands) == summary.total_revenue

    def test_shares(self, summary):
        assert [b.share for b in summary.brands] == [
            Decimal("66.67"), Decimal("23.81"), Decimal("9.52"),
        ]

    def test_zero_revenue_ties_sorted_by_name(self, analyzer, vehicles):
        summary = analyzer.summarize(
            period=MAY,
            orders=[
                order("V2", "1", date(2024, 5, 2)),
                order("V1", "1", date(2024, 5, 3)),
            ],
            payments=[],
            vehicles=vehicles,
        )

        assert [b.brand for b in summary.brands] == ["Honda", "Toyota"]
        assert all(b.share == Decimal("0") for b in summary.brands)

    def test_top_brands(self, summary):
        assert [b.brand for b in summary.top_brands(2)] == ["Toyota", "Honda"]


def test_input_order_does_not_matter(analyzer, orders, payments, vehicles, summary):
    rng = random.Random(7)
    shuffled_orders, shuffled_payments = orders[:], payments[:]
    rng.shuffle(shuffled_orders)
    rng.shuffle(shuffled_payments)

    again = analyzer.summarize(
        period=MAY, orders=shuffled_orders, payments=shuffled_payments, vehicles=vehicles
    )

    assert again == summary


def test_traced(analyzer, captured_logs):
    analyzer.summarize(period=MAY, orders=[], payments=[], vehicles={})

    [trace] = [r for r in captured_logs() if r["message"] == "GARAGE_ENGINE_TRACE"]
    assert trace["engine_name"] == "sales"
