"""
garage_services.event_log -- Event Log Accessor: the I/O boundary of reconciliation.

Responsibility:
    Reads live stock, dated usage events, repair orders, payments and
    vehicles from the persistence collaborator and hands them to the pure
    engines as frozen DTOs.

Architecture position:
    Services -- imperative shell.  ``EventStore`` is the persistence
    contract; ``SqlEventStore`` implements it over the kernel selectors;
    ``EventLogAccessor`` wraps any store with validation, ordering and
    error translation.

Invariants enforced:
    - Range validation happens before any store call (InvalidRangeError).
    - Usage events come back ordered by (occurred_at, sequence) whatever
      order the store used.
    - An empty window is an empty tuple, not an error.
    - NotFoundError only when the referenced part / vehicle does not exist.
    - Storage and transport failures surface as DataSourceError, chained to
      the original exception; partial data is never returned.

Failure modes:
    - InvalidRangeError: from > to or malformed bounds.
    - PartNotFoundError / VehicleNotFoundError: unknown entity.
    - DataSourceError: SQLAlchemyError or OSError raised by the store.

Usage:
    accessor = EventLogAccessor(SqlEventStore(get_session_factory()))
    events = accessor.fetch_usage_events(part_id, date(2024, 5, 1), date(2024, 5, 20))
    orders, payments = accessor.fetch_payments_and_orders(vehicle_id)
    orders, payments, vehicles = accessor.fetch_sales_records(date(2024, 5, 1), date(2024, 5, 31))
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, date, datetime, tzinfo
from typing import TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from garage_engines.stock_period import order_events
from garage_kernel.domain.dtos import (
    InventoryItem,
    Payment,
    RepairOrder,
    UsageEvent,
    VehicleRef,
)
from garage_kernel.domain.period import ReportPeriod
from garage_kernel.exceptions import (
    DataSourceError,
    PartNotFoundError,
    VehicleNotFoundError,
)
from garage_kernel.logging_config import get_logger
from garage_kernel.selectors.inventory_selector import InventorySelector
from garage_kernel.selectors.vehicle_selector import VehicleSelector

logger = get_logger("services.event_log")

T = TypeVar("T")

# Failures of the storage / transport layer.  Anything else is a bug and
# propagates unchanged.
_SOURCE_FAILURES: tuple[type[BaseException], ...] = (SQLAlchemyError, OSError)


class EventStore(ABC):
    """
    Persistence contract consumed by the reconciliation engine.

    Contract:
        - Lookups of a single entity raise PartNotFoundError /
          VehicleNotFoundError when the entity does not exist.
        - Window reads use an exclusive lower bound and an inclusive upper
          bound; ``to_inclusive=None`` means unbounded.
        - Implementations are read-only and safe to call from several
          threads at once.
    """

    @abstractmethod
    def get_current_stock(self, part_id: str) -> int:
        ...

    @abstractmethod
    def get_inventory_item(self, part_id: str) -> InventoryItem:
        ...

    @abstractmethod
    def get_inventory_items(self) -> Sequence[InventoryItem]:
        ...

    @abstractmethod
    def list_part_ids(self) -> Sequence[str]:
        ...

    @abstractmethod
    def get_usage_events_in_range(
        self,
        part_id: str,
        from_exclusive: datetime,
        to_inclusive: datetime | None,
    ) -> Sequence[UsageEvent]:
        ...

    def get_usage_events_for_parts(
        self,
        part_ids: Sequence[str],
        from_exclusive: datetime,
        to_inclusive: datetime | None,
    ) -> Mapping[str, Sequence[UsageEvent]]:
        """Bulk window read.  Unknown parts are simply absent."""
        grouped: dict[str, Sequence[UsageEvent]] = {}
        for part_id in part_ids:
            try:
                grouped[part_id] = self.get_usage_events_in_range(
                    part_id, from_exclusive, to_inclusive
                )
            except PartNotFoundError:
                continue
        return grouped

    @abstractmethod
    def get_vehicle(self, vehicle_id: str) -> VehicleRef:
        ...

    @abstractmethod
    def list_vehicle_ids(self) -> Sequence[str]:
        ...

    @abstractmethod
    def get_orders_for_vehicle(self, vehicle_id: str) -> Sequence[RepairOrder]:
        ...

    @abstractmethod
    def get_payments_for_vehicle(self, vehicle_id: str) -> Sequence[Payment]:
        ...

    @abstractmethod
    def get_orders_received_between(
        self,
        first_day: date,
        last_day: date,
    ) -> Sequence[RepairOrder]:
        """Orders of every vehicle whose reception date is in first_day..last_day."""

    @abstractmethod
    def get_payments_for_vehicles(
        self,
        vehicle_ids: Sequence[str],
        from_exclusive: datetime,
        to_inclusive: datetime,
    ) -> Sequence[Payment]:
        ...

    def get_vehicles(self, vehicle_ids: Sequence[str]) -> Mapping[str, VehicleRef]:
        """Bulk vehicle lookup.  Unknown vehicles are simply absent."""
        found: dict[str, VehicleRef] = {}
        for vehicle_id in vehicle_ids:
            try:
                found[vehicle_id] = self.get_vehicle(vehicle_id)
            except VehicleNotFoundError:
                continue
        return found


class SqlEventStore(EventStore):
    """
    EventStore backed by SQLAlchemy selectors.

    Every call opens its own short-lived session from the factory, so one
    store instance can serve a whole fan-out of worker threads.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def _read(self, query: Callable[[Session], T]) -> T:
        with self._session_factory() as session:
            return query(session)

    def get_current_stock(self, part_id: str) -> int:
        return self.get_inventory_item(part_id).stock_quantity

    def get_inventory_item(self, part_id: str) -> InventoryItem:
        item = self._read(lambda s: InventorySelector(s).get_item(part_id))
        if item is None:
            raise PartNotFoundError(part_id)
        return item

    def get_inventory_items(self) -> Sequence[InventoryItem]:
        return self._read(lambda s: InventorySelector(s).list_items())

    def list_part_ids(self) -> Sequence[str]:
        return self._read(lambda s: InventorySelector(s).list_part_ids())

    def get_usage_events_in_range(
        self,
        part_id: str,
        from_exclusive: datetime,
        to_inclusive: datetime | None,
    ) -> Sequence[UsageEvent]:
        def query(session: Session) -> list[UsageEvent]:
            selector = InventorySelector(session)
            if selector.get_item(part_id) is None:
                raise PartNotFoundError(part_id)
            return selector.usage_events(part_id, from_exclusive, to_inclusive)

        return self._read(query)

    def get_usage_events_for_parts(
        self,
        part_ids: Sequence[str],
        from_exclusive: datetime,
        to_inclusive: datetime | None,
    ) -> Mapping[str, Sequence[UsageEvent]]:
        return self._read(
            lambda s: InventorySelector(s).usage_events_for_parts(
                part_ids, from_exclusive, to_inclusive
            )
        )

    def get_vehicle(self, vehicle_id: str) -> VehicleRef:
        vehicle = self._read(lambda s: VehicleSelector(s).get_vehicle(vehicle_id))
        if vehicle is None:
            raise VehicleNotFoundError(vehicle_id)
        return vehicle

    def list_vehicle_ids(self) -> Sequence[str]:
        return self._read(lambda s: VehicleSelector(s).list_vehicle_ids())

    def get_orders_for_vehicle(self, vehicle_id: str) -> Sequence[RepairOrder]:
        def query(session: Session) -> list[RepairOrder]:
            selector = VehicleSelector(session)
            if selector.get_vehicle(vehicle_id) is None:
                raise VehicleNotFoundError(vehicle_id)
            return selector.orders_for_vehicle(vehicle_id)

        return self._read(query)

    def get_payments_for_vehicle(self, vehicle_id: str) -> Sequence[Payment]:
        def query(session: Session) -> list[Payment]:
            selector = VehicleSelector(session)
            if selector.get_vehicle(vehicle_id) is None:
                raise VehicleNotFoundError(vehicle_id)
            return selector.payments_for_vehicle(vehicle_id)

        return self._read(query)

    def get_orders_received_between(
        self,
        first_day: date,
        last_day: date,
    ) -> Sequence[RepairOrder]:
        return self._read(
            lambda s: VehicleSelector(s).orders_received_between(first_day, last_day)
        )

    def get_payments_for_vehicles(
        self,
        vehicle_ids: Sequence[str],
        from_exclusive: datetime,
        to_inclusive: datetime,
    ) -> Sequence[Payment]:
        return self._read(
            lambda s: VehicleSelector(s).payments_for_vehicles(
                vehicle_ids, from_exclusive, to_inclusive
            )
        )


class EventLogAccessor:
    """
    Validating, ordering, error-translating facade over an EventStore.

    Contract:
        All reads go through ``_call`` which turns storage failures into
        DataSourceError.  Window arguments accept calendar dates (expanded
        in ``tz``) or aware datetimes.
    Guarantees:
        - No store call happens for an invalid range.
        - Event tuples are ordered by (occurred_at, sequence).
    """

    def __init__(self, store: EventStore, tz: tzinfo = UTC):
        self._store = store
        self.tz = tz

    def period(self, from_: date | datetime, to: date | datetime) -> ReportPeriod:
        """Validate and build a reporting window.  Raises InvalidRangeError."""
        return ReportPeriod.of(from_, to, self.tz)

    def _call(self, operation: str, fn: Callable[..., T], *args: object) -> T:
        try:
            return fn(*args)
        except _SOURCE_FAILURES as exc:
            logger.error("data_source_failed", extra={
                "operation": operation,
                "error": str(exc),
            }, exc_info=True)
            raise DataSourceError(operation, str(exc)) from exc

    # -----------------------------------------------------------------
    # Inventory
    # -----------------------------------------------------------------

    def get_current_stock(self, part_id: str) -> int:
        return self._call("get_current_stock", self._store.get_current_stock, part_id)

    def get_inventory_item(self, part_id: str) -> InventoryItem:
        return self._call("get_inventory_item", self._store.get_inventory_item, part_id)

    def list_inventory_items(self) -> tuple[InventoryItem, ...]:
        return tuple(self._call("get_inventory_items", self._store.get_inventory_items))

    def list_part_ids(self) -> tuple[str, ...]:
        return tuple(self._call("list_part_ids", self._store.list_part_ids))

    def fetch_usage_events(
        self,
        part_id: str,
        from_: date | datetime,
        to: date | datetime,
    ) -> tuple[UsageEvent, ...]:
        """
        Usage events of one part inside ``(from_, to]``.

        Raises:
            InvalidRangeError: before any I/O when from_ > to.
            PartNotFoundError: if the part does not exist.
            DataSourceError: on storage failure.
        """
        window = self.period(from_, to)
        events = self._call(
            "get_usage_events_in_range",
            self._store.get_usage_events_in_range,
            part_id,
            window.start,
            window.end,
        )
        ordered = order_events(events)
        logger.debug("usage_events_fetched", extra={
            "part_id": part_id,
            "window": "during",
            "event_count": len(ordered),
        })
        return ordered

    def fetch_events_after(self, part_id: str, moment: datetime) -> tuple[UsageEvent, ...]:
        """Usage events of one part strictly after ``moment``."""
        events = self._call(
            "get_usage_events_in_range",
            self._store.get_usage_events_in_range,
            part_id,
            moment,
            None,
        )
        ordered = order_events(events)
        logger.debug("usage_events_fetched", extra={
            "part_id": part_id,
            "window": "after",
            "event_count": len(ordered),
        })
        return ordered

    def fetch_usage_events_for_parts(
        self,
        part_ids: Iterable[str],
        after: datetime,
        until: datetime | None = None,
    ) -> dict[str, tuple[UsageEvent, ...]]:
        """Shared-window bulk read; parts without events map to ()."""
        ids = list(part_ids)
        grouped = self._call(
            "get_usage_events_for_parts",
            self._store.get_usage_events_for_parts,
            ids,
            after,
            until,
        )
        result = {part_id: order_events(grouped.get(part_id, ())) for part_id in ids}
        logger.debug("usage_events_bulk_fetched", extra={
            "part_count": len(ids),
            "event_count": sum(len(v) for v in result.values()),
        })
        return result

    # -----------------------------------------------------------------
    # Vehicles
    # -----------------------------------------------------------------

    def get_vehicle(self, vehicle_id: str) -> VehicleRef:
        return self._call("get_vehicle", self._store.get_vehicle, vehicle_id)

    def list_vehicle_ids(self) -> tuple[str, ...]:
        return tuple(self._call("list_vehicle_ids", self._store.list_vehicle_ids))

    def fetch_payments_and_orders(
        self,
        vehicle_id: str,
    ) -> tuple[tuple[RepairOrder, ...], tuple[Payment, ...]]:
        """
        All repair orders and payments of a vehicle.

        Raises:
            VehicleNotFoundError: if the vehicle does not exist.
            DataSourceError: on storage failure.
        """
        orders = self._call(
            "get_orders_for_vehicle", self._store.get_orders_for_vehicle, vehicle_id
        )
        payments = self._call(
            "get_payments_for_vehicle", self._store.get_payments_for_vehicle, vehicle_id
        )
        logger.debug("vehicle_records_fetched", extra={
            "vehicle_id": vehicle_id,
            "order_count": len(orders),
            "payment_count": len(payments),
        })
        return (
            tuple(sorted(orders, key=lambda o: (o.reception_date, o.order_id))),
            tuple(sorted(payments, key=lambda p: (p.paid_at, p.payment_id))),
        )

    def fetch_sales_records(
        self,
        from_: date | datetime,
        to: date | datetime,
    ) -> tuple[tuple[RepairOrder, ...], tuple[Payment, ...], dict[str, VehicleRef]]:
        """
        Orders received in ``(from_, to]``, payments made in it by the same
        vehicles, and those vehicles.

        Raises:
            InvalidRangeError: before any I/O when from_ > to.
            DataSourceError: on storage failure.
        """
        window = self.period(from_, to)
        first_day, last_day = window.day_span()
        if first_day > last_day:
            return (), (), {}

        orders = self._call(
            "get_orders_received_between",
            self._store.get_orders_received_between,
            first_day,
            last_day,
        )
        vehicle_ids = sorted({o.vehicle_id for o in orders})
        payments: Sequence[Payment] = ()
        vehicles: Mapping[str, VehicleRef] = {}
        if vehicle_ids:
            payments = self._call(
                "get_payments_for_vehicles",
                self._store.get_payments_for_vehicles,
                vehicle_ids,
                window.start,
                window.end,
            )
            vehicles = self._call("get_vehicles", self._store.get_vehicles, vehicle_ids)

        logger.debug("sales_records_fetched", extra={
            "order_count": len(orders),
            "payment_count": len(payments),
            "vehicle_count": len(vehicles),
        })
        return (
            tuple(sorted(orders, key=lambda o: (o.reception_date, o.order_id))),
            tuple(sorted(payments, key=lambda p: (p.paid_at, p.payment_id))),
            dict(vehicles),
        )
