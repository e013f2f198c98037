"""
Module: garage_engines.stock_period
Responsibility:
    Reconstruct historical stock levels of a spare part for a reporting
    period from its live quantity and its dated usage log.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import garage_kernel domain records and exceptions.

Algorithm (backward reconstruction):
    The store keeps only the *current* quantity, never snapshots.  For a
    period ``(start, end]``::

        end_stock   = current_stock - sum(deltas with t > end)
        begin_stock = end_stock     - sum(deltas with start < t <= end)
        used        = |sum(negative deltas in the period)|
        restocked   = sum(positive deltas in the period)

    Totals are sums, so the result does not depend on the order in which
    events are supplied.  Movements are still returned ordered by
    (occurred_at, sequence) so ties render deterministically.

Invariants enforced:
    - end_stock - begin_stock == sum(deltas in the period), exactly.
    - Zero events: begin_stock == end_stock == current_stock, used == 0.
    - Negative reconstructed stock is never clamped.  It is reported as a
      DataIntegrityWarning on the result (begin, end, or the first dip while
      replaying the period / the after-window forward).

Failure modes:
    - ValueError when an event belongs to another part or lies outside the
      window it was passed in.

Usage:
    from garage_engines.stock_period import StockPeriodReconciler
    from garage_kernel.domain import ReportPeriod

    result = StockPeriodReconciler().reconcile_from_log(
        part_id="p1",
        current_stock=50,
        period=ReportPeriod.of(date(2024, 5, 1), date(2024, 5, 20)),
        events=events,
    )
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime

from garage_engines.tracer import traced_engine
from garage_kernel.domain.dtos import UsageEvent
from garage_kernel.domain.period import ReportPeriod
from garage_kernel.exceptions import DataIntegrityWarning
from garage_kernel.logging_config import get_logger

logger = get_logger("engines.stock_period")


@dataclass(frozen=True)
class StockPeriodResult:
    """
    Reconstructed stock figures of one part for one period.

    Guarantees:
        - end_stock == begin_stock + sum(movement deltas).
        - used_during_period >= 0 and restocked_during_period >= 0.
        - movements are ordered by (occurred_at, sequence).
    """

    part_id: str
    period: ReportPeriod
    begin_stock: int
    used_during_period: int
    restocked_during_period: int
    end_stock: int
    current_stock: int
    movements: tuple[UsageEvent, ...] = ()
    integrity_warnings: tuple[DataIntegrityWarning, ...] = ()

    @property
    def net_change(self) -> int:
        return self.end_stock - self.begin_stock

    @property
    def data_integrity_warning(self) -> bool:
        """True when the reconstruction implies an impossible state."""
        return bool(self.integrity_warnings)


def sum_deltas(events: Iterable[UsageEvent]) -> int:
    """Net signed quantity change of a set of events."""
    return sum(event.delta for event in events)


def order_events(events: Iterable[UsageEvent]) -> tuple[UsageEvent, ...]:
    """Order events by timestamp, then insertion sequence (stable)."""
    return tuple(sorted(events, key=lambda e: e.sort_key))


def partition_events(
    events: Iterable[UsageEvent],
    period: ReportPeriod,
) -> tuple[tuple[UsageEvent, ...], tuple[UsageEvent, ...]]:
    """
    Split an event log into (during, after) windows of ``period``.

    Events at or before ``period.start`` are dropped: they are already
    reflected in the begin stock.
    """
    during: list[UsageEvent] = []
    after: list[UsageEvent] = []
    for event in events:
        if period.is_after(event.occurred_at):
            after.append(event)
        elif period.contains(event.occurred_at):
            during.append(event)
    return order_events(during), order_events(after)


class StockPeriodReconciler:
    """
    Pure engine for period stock reconstruction.

    Contract:
        No I/O, no clock access.  The live quantity and the event windows
        are passed in by the caller.
    Guarantees:
        - Identical inputs produce identical results.
        - Each call is independent; instances hold no state and may be
          shared across threads.
    Non-goals:
        - Does not fetch events or stock; see garage_services.event_log.
    """

    @traced_engine(
        "stock_period",
        "1.0",
        fingerprint_fields=("part_id", "current_stock", "period"),
    )
    def reconcile(
        self,
        *,
        part_id: str,
        current_stock: int,
        period: ReportPeriod,
        events_during: Sequence[UsageEvent],
        events_after: Sequence[UsageEvent],
    ) -> StockPeriodResult:
        """
        Reconcile one part from pre-partitioned event windows.

        Args:
            part_id: Spare part identifier.
            current_stock: Live on-hand quantity at query time.
            period: Reporting window ``(start, end]``.
            events_during: Events with start < occurred_at <= end.
            events_after: Events with occurred_at > end.

        Raises:
            ValueError: If an event is for another part or outside its window.
        """
        during = order_events(events_during)
        after = order_events(events_after)
        _check_window(part_id, during, period, "during")
        _check_window(part_id, after, period, "after")

        deltas_after = sum_deltas(after)
        end_stock = current_stock - deltas_after

        deltas_during = sum_deltas(during)
        begin_stock = end_stock - deltas_during

        used = -sum(e.delta for e in during if e.delta < 0)
        restocked = sum(e.delta for e in during if e.delta > 0)

        warnings = _scan_integrity(
            part_id, period, begin_stock, end_stock, current_stock, during, after
        )
        for warning in warnings:
            logger.warning("integrity_warning", extra={
                "part_id": part_id,
                "checkpoint": warning.checkpoint,
                "quantity": warning.quantity,
                "at": warning.at,
            })

        logger.debug("stock_reconciled", extra={
            "part_id": part_id,
            "begin_stock": begin_stock,
            "used_during_period": used,
            "restocked_during_period": restocked,
            "end_stock": end_stock,
            "current_stock": current_stock,
            "events_during": len(during),
            "events_after": len(after),
        })

        return StockPeriodResult(
            part_id=part_id,
            period=period,
            begin_stock=begin_stock,
            used_during_period=used,
            restocked_during_period=restocked,
            end_stock=end_stock,
            current_stock=current_stock,
            movements=during,
            integrity_warnings=tuple(warnings),
        )

    def reconcile_from_log(
        self,
        *,
        part_id: str,
        current_stock: int,
        period: ReportPeriod,
        events: Iterable[UsageEvent],
    ) -> StockPeriodResult:
        """
        Reconcile one part from an unpartitioned event log.

        Events at or before the period start are ignored.
        """
        during, after = partition_events(events, period)
        return self.reconcile(
            part_id=part_id,
            current_stock=current_stock,
            period=period,
            events_during=during,
            events_after=after,
        )


def _check_window(
    part_id: str,
    events: Sequence[UsageEvent],
    period: ReportPeriod,
    window: str,
) -> None:
    for event in events:
        if event.part_id != part_id:
            raise ValueError(
                f"Event for part {event.part_id} passed while reconciling {part_id}"
            )
        in_window = (
            period.contains(event.occurred_at)
            if window == "during"
            else period.is_after(event.occurred_at)
        )
        if not in_window:
            raise ValueError(
                f"Event at {event.occurred_at.isoformat()} is outside the "
                f"'{window}' window of {period.start.isoformat()}.."
                f"{period.end.isoformat()}"
            )


def _scan_integrity(
    part_id: str,
    period: ReportPeriod,
    begin_stock: int,
    end_stock: int,
    current_stock: int,
    during: Sequence[UsageEvent],
    after: Sequence[UsageEvent],
) -> list[DataIntegrityWarning]:
    """Replay both windows forward and record each impossible balance."""
    warnings: list[DataIntegrityWarning] = []

    if current_stock < 0:
        warnings.append(DataIntegrityWarning(part_id, "current", current_stock))
    if begin_stock < 0:
        warnings.append(
            DataIntegrityWarning(part_id, "begin", begin_stock, period.start)
        )

    dip = _first_dip(begin_stock, during)
    if dip is not None and begin_stock >= 0:
        warnings.append(DataIntegrityWarning(part_id, "during", dip[0], dip[1]))

    if end_stock < 0:
        warnings.append(DataIntegrityWarning(part_id, "end", end_stock, period.end))

    dip = _first_dip(end_stock, after)
    if dip is not None and end_stock >= 0:
        warnings.append(DataIntegrityWarning(part_id, "after", dip[0], dip[1]))

    return warnings


def _first_dip(
    opening: int,
    events: Sequence[UsageEvent],
) -> tuple[int, datetime] | None:
    running = opening
    for event in events:
        running += event.delta
        if running < 0:
            return running, event.occurred_at
    return None
