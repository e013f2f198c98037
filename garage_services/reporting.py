"""
garage_services.reporting -- Reporting Facade.

Responsibility:
    Composes the Event Log Accessor with the pure engines into report-level
    operations: stock reconciliation for many parts, debt for one or many
    vehicles, the outstanding-debt list, the period sales summary and the
    inventory health summary.

Architecture position:
    Services -- imperative shell.  Owns the fan-out over items and the
    per-item error isolation; owns no arithmetic of its own.

Invariants enforced:
    - InvalidRangeError is raised synchronously before any data access.
    - Batch reports never escalate to total failure: each failing item is
      recorded in a PartialFailure map and the other rows still render.
    - Rows come back in input order; a duplicated id is reconciled once.
    - Items are fetched concurrently but joined by key, never by
      completion order.

Usage:
    facade = ReportingFacade.from_config(get_active_config())
    report = facade.reconcile_stock_for_period(None, date(2024, 5, 1), date(2024, 5, 20))
    print(report.summary())
"""

from __future__ import annotations

import contextvars
from collections.abc import Callable, Iterable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, tzinfo
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import uuid4

from sqlalchemy.orm import Session, sessionmaker

from garage_config.schema import GarageConfig
from garage_engines.debt import DebtAggregator, VehicleDebt, exact_sum, matches_search
from garage_engines.inventory_analytics import InventoryAnalyzer, InventoryHealthReport
from garage_engines.sales import SalesAnalyzer, SalesSummary
from garage_engines.stock_period import StockPeriodReconciler, StockPeriodResult
from garage_kernel.db.engine import get_session_factory, init_engine_from_config
from garage_kernel.domain.clock import Clock, SystemClock
from garage_kernel.domain.period import ReportPeriod
from garage_kernel.domain.dtos import UsageEvent
from garage_kernel.exceptions import DataSourceError, GarageKernelError
from garage_kernel.logging_config import LogContext, configure_logging, get_logger
from garage_services.event_log import EventLogAccessor, EventStore, SqlEventStore

logger = get_logger("services.reporting")

R = TypeVar("R")

# Per-item failures collected into a report.  ValueError covers engine
# rejections of inconsistent store output for a single item.
_ITEM_FAILURES: tuple[type[Exception], ...] = (GarageKernelError, ValueError)


@dataclass(frozen=True)
class PartialFailure:
    """Per-item errors of a batch report, keyed by item id."""

    errors: Mapping[str, Exception]
    attempted: int

    @property
    def failed_ids(self) -> tuple[str, ...]:
        return tuple(self.errors)

    @property
    def succeeded(self) -> int:
        return self.attempted - len(self.errors)

    def __bool__(self) -> bool:
        return bool(self.errors)

    def summary(self, noun: str) -> str:
        text = f"{self.succeeded}/{self.attempted} {noun} reconciled"
        if self.errors:
            text += ", errors for " + ", ".join(self.errors)
        return text


@dataclass(frozen=True)
class _BatchReport(Generic[R]):
    generated_at: datetime
    outcomes: tuple[tuple[str, R | Exception], ...]

    @property
    def rows(self) -> tuple[R, ...]:
        return tuple(o for _, o in self.outcomes if not isinstance(o, Exception))

    @property
    def failures(self) -> PartialFailure:
        return PartialFailure(
            errors={k: o for k, o in self.outcomes if isinstance(o, Exception)},
            attempted=len(self.outcomes),
        )

    @property
    def is_complete(self) -> bool:
        return not self.failures


@dataclass(frozen=True)
class StockPeriodReport(_BatchReport[StockPeriodResult]):
    """Stock reconciliation of many parts over one period."""

    period: ReportPeriod | None = None

    @property
    def warned_rows(self) -> tuple[StockPeriodResult, ...]:
        return tuple(r for r in self.rows if r.data_integrity_warning)

    def summary(self) -> str:
        return self.failures.summary("parts")


@dataclass(frozen=True)
class DebtReport(_BatchReport[VehicleDebt]):
    """Debt of many vehicles, optionally restricted to a reception window."""

    reception_window: ReportPeriod | None = None

    @property
    def total_debt(self) -> Decimal:
        return exact_sum(r.total_debt for r in self.rows)

    @property
    def total_paid(self) -> Decimal:
        return exact_sum(r.total_paid for r in self.rows)

    @property
    def total_remaining(self) -> Decimal:
        return exact_sum(r.remaining_debt for r in self.rows)

    def summary(self) -> str:
        return self.failures.summary("vehicles")


@dataclass(frozen=True)
class SalesReport:
    """Sales summary of one period, stamped with its generation time."""

    generated_at: datetime
    summary: SalesSummary


@dataclass
class ReportingFacade:
    """
    Report-level operations over an EventLogAccessor.

    Single-item operations let errors propagate; batch operations isolate
    them per item.
    """

    accessor: EventLogAccessor
    reconciler: StockPeriodReconciler = field(default_factory=StockPeriodReconciler)
    aggregator: DebtAggregator = field(default_factory=DebtAggregator)
    analyzer: InventoryAnalyzer = field(default_factory=InventoryAnalyzer)
    sales: SalesAnalyzer = field(default_factory=SalesAnalyzer)
    clock: Clock = field(default_factory=SystemClock)
    max_workers: int = 8

    @classmethod
    def from_store(
        cls,
        store: EventStore,
        *,
        tz: tzinfo = UTC,
        **kwargs,
    ) -> ReportingFacade:
        return cls(accessor=EventLogAccessor(store, tz), **kwargs)

    @classmethod
    def from_config(
        cls,
        config: GarageConfig,
        session_factory: sessionmaker[Session] | None = None,
        *,
        clock: Clock | None = None,
    ) -> ReportingFacade:
        """
        Build a SQL-backed facade.

        Without ``session_factory`` the process-wide engine is (re)created
        from ``config.database`` and its session factory is used.
        """
        configure_logging(level=config.logging.level)
        if session_factory is None:
            init_engine_from_config(config.database)
            session_factory = get_session_factory()
        reporting = config.reporting
        return cls(
            accessor=EventLogAccessor(SqlEventStore(session_factory), reporting.tz),
            analyzer=InventoryAnalyzer(
                default_low_stock_threshold=reporting.default_low_stock_threshold,
                top_n=reporting.top_value_parts,
            ),
            clock=clock or SystemClock(),
            max_workers=reporting.max_workers,
        )

    # -----------------------------------------------------------------
    # Stock
    # -----------------------------------------------------------------

    def reconcile_part_for_period(
        self,
        part_id: str,
        from_: date | datetime,
        to: date | datetime,
    ) -> StockPeriodResult:
        """
        Reconcile a single part.  Errors propagate.

        Raises:
            InvalidRangeError: before any fetch when from_ > to.
            PartNotFoundError: if the part does not exist.
            DataSourceError: on storage failure.
        """
        period = self.accessor.period(from_, to)
        return self._reconcile_part(part_id, period, None)

    def reconcile_stock_for_period(
        self,
        part_ids: Iterable[str] | None,
        from_: date | datetime,
        to: date | datetime,
    ) -> StockPeriodReport:
        """
        Reconcile many parts over one period.

        ``part_ids=None`` reconciles every tracked part.  Events after the
        period are read once for all parts (shared window); if that read
        fails each part falls back to its own read.

        Raises:
            InvalidRangeError: before any fetch when from_ > to.
            DataSourceError: only if listing all parts fails.
        """
        period = self.accessor.period(from_, to)
        ids = self.accessor.list_part_ids() if part_ids is None else part_ids
        keys = _unique(ids)

        with LogContext.bind(report_id=str(uuid4())):
            logger.info("stock_report_started", extra={
                "part_count": len(keys),
                **period.describe(),
            })
            shared_after = self._shared_after_window(keys, period)
            outcomes = self._fan_out(
                keys,
                lambda part_id: self._reconcile_part(part_id, period, shared_after),
                kind="part",
            )
            report = StockPeriodReport(
                generated_at=self.clock.now_utc(),
                outcomes=tuple(outcomes.items()),
                period=period,
            )
            logger.info("stock_report_completed", extra={
                "part_count": len(keys),
                "failed_count": len(report.failures.errors),
                "warned_count": len(report.warned_rows),
            })
        return report

    def _shared_after_window(
        self,
        part_ids: list[str],
        period: ReportPeriod,
    ) -> dict[str, tuple[UsageEvent, ...]] | None:
        if not part_ids:
            return None
        try:
            return self.accessor.fetch_usage_events_for_parts(part_ids, period.end)
        except DataSourceError as exc:
            logger.warning("shared_window_failed", extra={
                "part_count": len(part_ids),
                "error": str(exc),
            })
            return None

    def _reconcile_part(
        self,
        part_id: str,
        period: ReportPeriod,
        shared_after: Mapping[str, tuple[UsageEvent, ...]] | None,
    ) -> StockPeriodResult:
        with LogContext.bind(part_id=part_id):
            current = self.accessor.get_current_stock(part_id)
            during = self.accessor.fetch_usage_events(part_id, period.start, period.end)
            if shared_after is not None:
                after = shared_after.get(part_id, ())
            else:
                after = self.accessor.fetch_events_after(part_id, period.end)
            return self.reconciler.reconcile(
                part_id=part_id,
                current_stock=current,
                period=period,
                events_during=during,
                events_after=after,
            )

    # -----------------------------------------------------------------
    # Debt
    # -----------------------------------------------------------------

    def compute_vehicle_debt(
        self,
        vehicle_id: str,
        reception_from: date | datetime | None = None,
        reception_to: date | datetime | None = None,
    ) -> VehicleDebt:
        """
        Debt of a single vehicle.  Errors propagate.

        Raises:
            InvalidRangeError: if only one reception bound is given or from > to.
            VehicleNotFoundError: if the vehicle does not exist.
            DataSourceError: on storage failure.
        """
        window = self._reception_window(reception_from, reception_to)
        return self._vehicle_debt(vehicle_id, window)

    def compute_vehicle_debts(
        self,
        vehicle_ids: Iterable[str],
        reception_from: date | datetime | None = None,
        reception_to: date | datetime | None = None,
    ) -> DebtReport:
        """Debt of many vehicles with per-vehicle error isolation."""
        window = self._reception_window(reception_from, reception_to)
        return self._debt_report(_unique(vehicle_ids), window)

    def list_outstanding_debts(
        self,
        search: str | None = None,
        reception_from: date | datetime | None = None,
        reception_to: date | datetime | None = None,
    ) -> DebtReport:
        """
        Every vehicle that still owes money.

        Vehicles without orders or payments are skipped, then rows are
        filtered by ``search`` and kept only while remaining_debt > 0.
        Failed vehicles stay in the failure map.
        """
        window = self._reception_window(reception_from, reception_to)
        full = self._debt_report(list(self.accessor.list_vehicle_ids()), window)
        kept = tuple(
            (key, outcome)
            for key, outcome in full.outcomes
            if isinstance(outcome, Exception)
            or (
                outcome.has_activity
                and outcome.remaining_debt > 0
                and matches_search(outcome, search)
            )
        )
        return DebtReport(
            generated_at=full.generated_at,
            outcomes=kept,
            reception_window=window,
        )

    def _reception_window(
        self,
        reception_from: date | datetime | None,
        reception_to: date | datetime | None,
    ) -> ReportPeriod | None:
        if reception_from is None and reception_to is None:
            return None
        return self.accessor.period(reception_from, reception_to)

    def _debt_report(self, keys: list[str], window: ReportPeriod | None) -> DebtReport:
        with LogContext.bind(report_id=str(uuid4())):
            outcomes = self._fan_out(
                keys,
                lambda vehicle_id: self._vehicle_debt(vehicle_id, window),
                kind="vehicle",
            )
            report = DebtReport(
                generated_at=self.clock.now_utc(),
                outcomes=tuple(outcomes.items()),
                reception_window=window,
            )
            logger.info("debt_report_completed", extra={
                "vehicle_count": len(keys),
                "failed_count": len(report.failures.errors),
            })
        return report

    def _vehicle_debt(self, vehicle_id: str, window: ReportPeriod | None) -> VehicleDebt:
        with LogContext.bind(vehicle_id=vehicle_id):
            vehicle = self.accessor.get_vehicle(vehicle_id)
            orders, payments = self.accessor.fetch_payments_and_orders(vehicle_id)
            return self.aggregator.aggregate(
                vehicle=vehicle,
                orders=orders,
                payments=payments,
                reception_window=window,
            )

    # -----------------------------------------------------------------
    # Sales
    # -----------------------------------------------------------------

    def sales_report(
        self,
        from_: date | datetime,
        to: date | datetime,
    ) -> SalesReport:
        """
        Orders received and revenue collected over one period.  Errors propagate.

        Raises:
            InvalidRangeError: before any fetch when from_ > to.
            DataSourceError: on storage failure.
        """
        period = self.accessor.period(from_, to)
        with LogContext.bind(report_id=str(uuid4())):
            orders, payments, vehicles = self.accessor.fetch_sales_records(
                period.start, period.end
            )
            summary = self.sales.summarize(
                period=period,
                orders=orders,
                payments=payments,
                vehicles=vehicles,
            )
            logger.info("sales_report_completed", extra={
                "order_count": summary.total_orders,
                "total_revenue": summary.total_revenue,
                **period.describe(),
            })
        return SalesReport(generated_at=self.clock.now_utc(), summary=summary)

    # -----------------------------------------------------------------
    # Inventory
    # -----------------------------------------------------------------

    def inventory_health(self) -> InventoryHealthReport:
        """Stock value and low-stock summary over every tracked part."""
        return self.analyzer.summarize(items=self.accessor.list_inventory_items())

    # -----------------------------------------------------------------
    # Fan-out
    # -----------------------------------------------------------------

    def _fan_out(
        self,
        keys: list[str],
        fn: Callable[[str], R],
        *,
        kind: str,
    ) -> dict[str, R | Exception]:
        """
        Run ``fn`` for every key on a thread pool and join by key.

        Each task runs in a copy of the caller's context so LogContext
        fields reach the worker threads.  Unexpected exceptions cancel the
        pending tasks and propagate.
        """
        if not keys:
            return {}

        pool = ThreadPoolExecutor(
            max_workers=max(1, min(self.max_workers, len(keys))),
            thread_name_prefix="garage-report",
        )
        try:
            futures: dict[str, Future[R]] = {
                key: pool.submit(contextvars.copy_context().run, fn, key)
                for key in keys
            }
            outcomes: dict[str, R | Exception] = {}
            for key, future in futures.items():
                try:
                    outcomes[key] = future.result()
                except _ITEM_FAILURES as exc:
                    logger.warning("report_item_failed", extra={
                        "kind": kind,
                        "item_id": key,
                        "error_type": type(exc).__name__,
                        "error_code": getattr(exc, "code", None),
                        "error": str(exc),
                    })
                    outcomes[key] = exc
            return outcomes
        finally:
            pool.shutdown(wait=True, cancel_futures=True)


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(ids))
