"""
Tests for the Reporting Facade.

Covers:
- Batch stock reconciliation with per-part error isolation
- Input ordering and de-duplication
- Range validation before any data access
- Shared after-window read and its per-part fallback
- Vehicle debt reports, outstanding-debt listing and inventory health
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from garage_config.schema import DatabaseConfig, GarageConfig, ReportingConfig
from garage_kernel.db.engine import create_tables, get_session_factory, reset_engine
from garage_kernel.exceptions import (
    DataSourceError,
    InvalidRangeError,
    PartNotFoundError,
    VehicleNotFoundError,
)
from garage_kernel.models import SparePartModel, UsageEventModel
from garage_services.reporting import PartialFailure, ReportingFacade
from tests.factories import dt, order, payment, transport_failure, usage


@pytest.fixture
def store(fake_store):
    fake_store.add_part("P1", 50, price="100")
    fake_store.add_part("P2", 8, price="10", min_stock=10)
    fake_store.add_part("P3", 0)
    fake_store.events.extend([
        usage("P1", -10, dt(2024, 5, 5, 10), sequence=1),
        usage("P1", 20, dt(2024, 5, 10, 10), sequence=2),
        usage("P1", -5, dt(2024, 5, 15, 10), sequence=3),
        usage("P2", -2, dt(2024, 5, 12), sequence=4),
        usage("P2", -1, dt(2024, 5, 28), sequence=5),
    ])
    return fake_store


@pytest.fixture
def facade(store, deterministic_clock):
    return ReportingFacade.from_store(store, clock=deterministic_clock, max_workers=4)


class TestStockReport:

    def test_rows_follow_input_order(self, facade, may_period):
        report = facade.reconcile_stock_for_period(["P2", "P1"], *may_period)

        assert [r.part_id for r in report.rows] == ["P2", "P1"]
        p2, p1 = report.rows
        assert (p1.begin_stock, p1.end_stock, p1.used_during_period) == (45, 50, 15)
        assert (p2.begin_stock, p2.end_stock, p2.used_during_period) == (11, 9, 2)
        assert report.is_complete
        assert report.summary() == "2/2 parts reconciled"

    def test_all_parts_when_ids_omitted(self, facade, may_period):
        report = facade.reconcile_stock_for_period(None, *may_period)

        assert [r.part_id for r in report.rows] == ["P1", "P2", "P3"]

    def test_duplicate_ids_reconciled_once(self, facade, store, may_period):
        report = facade.reconcile_stock_for_period(["P1", "P1", "P2"], *may_period)

        assert [r.part_id for r in report.rows] == ["P1", "P2"]
        assert store.calls["get_current_stock"] == 2

    def test_missing_part_is_isolated(self, facade, may_period, captured_logs):
        report = facade.reconcile_stock_for_period(["P1", "ghost", "P2"], *may_period)

        assert [r.part_id for r in report.rows] == ["P1", "P2"]
        failures = report.failures
        assert isinstance(failures, PartialFailure)
        assert failures.failed_ids == ("ghost",)
        assert isinstance(failures.errors["ghost"], PartNotFoundError)
        assert report.summary() == "2/3 parts reconciled, errors for ghost"
        assert [key for key, _ in report.outcomes] == ["P1", "ghost", "P2"]

        failed = [r for r in captured_logs() if r["message"] == "report_item_failed"]
        assert failed[0]["item_id"] == "ghost"
        assert failed[0]["error_code"] == "PART_NOT_FOUND"

    def test_data_source_failure_for_one_part(self, facade, store, may_period):
        store.fail_on["get_current_stock"] = (
            lambda part_id: transport_failure() if part_id == "P2" else None
        )

        report = facade.reconcile_stock_for_period(["P1", "P2", "P3"], *may_period)

        assert [r.part_id for r in report.rows] == ["P1", "P3"]
        assert isinstance(report.failures.errors["P2"], DataSourceError)

    def test_invalid_range_before_any_fetch(self, facade, store):
        with pytest.raises(InvalidRangeError):
            facade.reconcile_stock_for_period(None, date(2024, 5, 21), date(2024, 5, 20))

        assert store.total_calls == 0

    def test_after_window_read_once(self, facade, store, may_period):
        facade.reconcile_stock_for_period(["P1", "P2", "P3"], *may_period)

        assert store.calls["get_usage_events_for_parts"] == 1
        # Only the during-window is read per part.
        assert store.calls["get_usage_events_in_range"] == 3

    def test_shared_window_failure_falls_back_per_part(
        self, facade, store, may_period, captured_logs
    ):
        store.fail_on["get_usage_events_for_parts"] = transport_failure()

        report = facade.reconcile_stock_for_period(["P1", "P2"], *may_period)

        assert report.is_complete
        assert [r.end_stock for r in report.rows] == [50, 9]
        assert store.calls["get_usage_events_in_range"] == 4
        assert any(r["message"] == "shared_window_failed" for r in captured_logs())

    def test_integrity_warnings_surface_on_rows(self, facade, store, may_period):
        store.add_part("P4", 1)
        store.events.append(usage("P4", 5, dt(2024, 5, 3), sequence=6))

        report = facade.reconcile_stock_for_period(["P1", "P4"], *may_period)

        assert [r.part_id for r in report.warned_rows] == ["P4"]
        assert report.is_complete

    def test_empty_request(self, facade, store, may_period):
        report = facade.reconcile_stock_for_period([], *may_period)

        assert report.rows == ()
        assert report.summary() == "0/0 parts reconciled"
        assert store.total_calls == 0

    def test_report_is_stamped_by_clock(self, facade, may_period, deterministic_clock):
        report = facade.reconcile_stock_for_period(["P1"], *may_period)

        assert report.generated_at == deterministic_clock.now_utc()
        assert report.period.end == dt(2024, 5, 20, 23, 59, 59, 999999)

    def test_report_id_reaches_worker_logs(self, facade, may_period, captured_logs):
        facade.reconcile_stock_for_period(["P1", "P2"], *may_period)

        logs = captured_logs()
        started = next(r for r in logs if r["message"] == "stock_report_started")
        reconciled = [r for r in logs if r["message"] == "stock_reconciled"]
        assert len(reconciled) == 2
        assert {r["report_id"] for r in reconciled} == {started["report_id"]}


class TestSinglePart:

    def test_nonexistent_part_raises(self, facade, may_period):
        with pytest.raises(PartNotFoundError):
            facade.reconcile_part_for_period("ghost", *may_period)

    def test_single_part(self, facade, may_period):
        result = facade.reconcile_part_for_period("P1", *may_period)

        assert result.begin_stock == 45


@pytest.fixture
def garage(fake_store):
    fake_store.add_vehicle("V1", plate="51A-123.45", brand="Toyota", customer="An")
    fake_store.add_vehicle("V2", plate="29B-888.88", brand="Honda", customer="Binh")
    fake_store.add_vehicle("V3", plate="30C-000.00", brand="Kia")
    fake_store.orders.extend([
        order("V1", "1000000", date(2024, 5, 2)),
        order("V1", "500000", date(2024, 5, 20)),
        order("V2", "300000", date(2024, 4, 15)),
        order("V2", "200000", date(2024, 5, 6)),
    ])
    fake_store.payments.extend([
        payment("V1", "1500000", dt(2024, 5, 21)),
        payment("V2", "100000", dt(2024, 5, 7)),
    ])
    return ReportingFacade.from_store(fake_store, max_workers=2)


class TestDebt:

    def test_settled_vehicle(self, garage):
        debt = garage.compute_vehicle_debt("V1")

        assert debt.total_debt == Decimal("1500000")
        assert debt.remaining_debt == Decimal("0")

    def test_unknown_vehicle_raises(self, garage):
        with pytest.raises(VehicleNotFoundError):
            garage.compute_vehicle_debt("V404")

    def test_reception_window(self, garage):
        debt = garage.compute_vehicle_debt("V2", date(2024, 5, 1), date(2024, 5, 31))

        assert debt.total_debt == Decimal("200000")
        assert debt.remaining_debt == Decimal("100000")

    def test_half_open_reception_window_rejected(self, garage):
        with pytest.raises(InvalidRangeError):
            garage.compute_vehicle_debt("V2", date(2024, 5, 1), None)

    def test_batch_with_unknown_vehicle(self, garage):
        report = garage.compute_vehicle_debts(["V2", "V404", "V1"])

        assert [r.vehicle_id for r in report.rows] == ["V2", "V1"]
        assert report.summary() == "2/3 vehicles reconciled, errors for V404"
        assert report.total_debt == Decimal("2000000")
        assert report.total_paid == Decimal("1600000")
        assert report.total_remaining == Decimal("400000")

    def test_outstanding_debts(self, garage):
        report = garage.list_outstanding_debts()

        assert [r.vehicle_id for r in report.rows] == ["V2"]

    def test_outstanding_debts_search(self, garage):
        assert garage.list_outstanding_debts(search="toyota").rows == ()
        assert [r.vehicle_id for r in garage.list_outstanding_debts(search="binh").rows] == ["V2"]

    def test_outstanding_debts_keep_failures(self, garage, fake_store):
        fake_store.fail_on["get_orders_for_vehicle"] = (
            lambda vehicle_id: transport_failure() if vehicle_id == "V3" else None
        )

        report = garage.list_outstanding_debts()

        assert report.failures.failed_ids == ("V3",)
        assert [r.vehicle_id for r in report.rows] == ["V2"]


@pytest.fixture
def shop(fake_store, deterministic_clock):
    fake_store.add_vehicle("V1", plate="51A-123.45", brand="Toyota")
    fake_store.add_vehicle("V2", plate="29B-888.88", brand="Honda")
    fake_store.orders.extend([
        order("V1", "1000000", date(2024, 5, 2)),
        order("V2", "300000", date(2024, 5, 6), status="pending"),
        order("V2", "200000", date(2024, 4, 15)),
    ])
    fake_store.payments.extend([
        payment("V1", "600000", dt(2024, 5, 3)),
        payment("V2", "100000", dt(2024, 5, 7)),
        payment("V2", "50000", dt(2024, 6, 2)),
    ])
    return ReportingFacade.from_store(fake_store, clock=deterministic_clock)


class TestSalesReport:

    def test_month_summary(self, shop, deterministic_clock):
        report = shop.sales_report(date(2024, 5, 1), date(2024, 5, 31))

        summary = report.summary
        assert (summary.total_orders, summary.completed_orders, summary.pending_orders) == (2, 1, 1)
        assert summary.total_revenue == Decimal("700000")
        assert [(b.brand, b.revenue) for b in summary.brands] == [
            ("Toyota", Decimal("600000")),
            ("Honda", Decimal("100000")),
        ]
        assert report.generated_at == deterministic_clock.now_utc()

    def test_invalid_range_before_any_fetch(self, shop, fake_store):
        with pytest.raises(InvalidRangeError):
            shop.sales_report(date(2024, 6, 1), date(2024, 5, 1))

        assert fake_store.total_calls == 0

    def test_period_without_a_whole_day_reads_nothing(self, shop, fake_store):
        report = shop.sales_report(dt(2024, 5, 2, 8), dt(2024, 5, 2, 18))

        assert report.summary.total_orders == 0
        assert fake_store.total_calls == 0

    def test_storage_failure_propagates(self, shop, fake_store):
        fake_store.fail_on["get_payments_for_vehicles"] = transport_failure()

        with pytest.raises(DataSourceError):
            shop.sales_report(date(2024, 5, 1), date(2024, 5, 31))

    def test_report_is_logged_with_report_id(self, shop, captured_logs):
        shop.sales_report(date(2024, 5, 1), date(2024, 5, 31))

        [done] = [r for r in captured_logs() if r["message"] == "sales_report_completed"]
        assert done["order_count"] == 2
        assert done["total_revenue"] == "700000"
        assert "report_id" in done


class TestInventoryHealth:

    def test_summary(self, facade):
        health = facade.inventory_health()

        assert health.total_parts == 3
        assert health.total_value == Decimal("5080")
        assert [i.part_id for i in health.low_stock_items] == ["P2"]
        assert [i.part_id for i in health.out_of_stock_items] == ["P3"]


@pytest.fixture
def configured_engine():
    yield
    reset_engine()


class TestSqlBackedFacade:

    def test_from_config_end_to_end(self, session, session_factory, deterministic_clock):
        part = SparePartModel(id=uuid4(), name="Spark plug", price=Decimal("45000"),
                              stock_quantity=50)
        session.add(part)
        session.flush()
        session.add_all([
            UsageEventModel(spare_part_id=part.id, quantity_delta=-10,
                            occurred_at=dt(2024, 5, 5), sequence=1),
            UsageEventModel(spare_part_id=part.id, quantity_delta=20,
                            occurred_at=dt(2024, 5, 10), sequence=2),
            UsageEventModel(spare_part_id=part.id, quantity_delta=-5,
                            occurred_at=dt(2024, 5, 15), sequence=3),
        ])
        session.commit()
        config = GarageConfig(
            config_id="test",
            database=DatabaseConfig(url="sqlite://"),
            reporting=ReportingConfig(timezone="UTC", max_workers=1),
        )
        facade = ReportingFacade.from_config(config, session_factory, clock=deterministic_clock)

        report = facade.reconcile_stock_for_period(
            None, date(2024, 5, 1), date(2024, 5, 20)
        )

        [row] = report.rows
        assert (row.begin_stock, row.end_stock, row.used_during_period) == (45, 50, 15)
        assert facade.inventory_health().total_value == Decimal("2250000")

    def test_from_config_opens_configured_database(self, configured_engine):
        config = GarageConfig(
            config_id="test",
            database=DatabaseConfig(url="sqlite://"),
            reporting=ReportingConfig(max_workers=1),
        )

        facade = ReportingFacade.from_config(config)
        create_tables()
        with get_session_factory()() as s:
            s.add(SparePartModel(id=uuid4(), name="Wiper", price=Decimal("30000"),
                                 stock_quantity=4))
            s.commit()

        assert facade.inventory_health().total_value == Decimal("120000")

