"""
Inventory query selector.

Provides read-only access to spare parts and their usage log.

Key design decisions:
- Returns DTOs (frozen dataclasses), not ORM models
- Uses the caller's Session, never creates its own
- Usage events come back ordered by (occurred_at, sequence), the stable
  tie-break for events sharing a timestamp
- Window filters follow the reporting convention: lower bound exclusive,
  upper bound inclusive, upper bound optional (open-ended)
"""

from collections.abc import Iterable
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from garage_kernel.domain.dtos import InventoryItem, UsageEvent
from garage_kernel.models.inventory import SparePartModel, UsageEventModel
from garage_kernel.selectors.base import BaseSelector


class InventorySelector(BaseSelector[SparePartModel]):
    """Selector for spare parts and inventory usage events."""

    def __init__(self, session: Session):
        super().__init__(session)

    def _to_item(self, part: SparePartModel) -> InventoryItem:
        return InventoryItem(
            part_id=str(part.id),
            name=part.name,
            stock_quantity=part.stock_quantity,
            min_stock=part.min_stock,
            unit_price=part.price,
        )

    def _to_event(self, row: UsageEventModel) -> UsageEvent:
        return UsageEvent(
            part_id=str(row.spare_part_id),
            delta=row.quantity_delta,
            occurred_at=row.occurred_at,
            repair_order_id=(
                str(row.repair_order_id) if row.repair_order_id is not None else None
            ),
            sequence=row.sequence,
        )

    def get_item(self, part_id: str) -> InventoryItem | None:
        """Return the part, or None if it does not exist."""
        pk = self.parse_id(part_id)
        if pk is None:
            return None
        part = self.session.get(SparePartModel, pk)
        if part is None:
            return None
        return self._to_item(part)

    def list_items(self) -> list[InventoryItem]:
        """All tracked parts, ordered by name then id."""
        rows = self.session.scalars(
            select(SparePartModel).order_by(SparePartModel.name, SparePartModel.id)
        ).all()
        return [self._to_item(part) for part in rows]

    def list_part_ids(self) -> list[str]:
        """Ids of all tracked parts, in the same order as list_items()."""
        rows = self.session.scalars(
            select(SparePartModel.id).order_by(SparePartModel.name, SparePartModel.id)
        ).all()
        return [str(pk) for pk in rows]

    def usage_events(
        self,
        part_id: str,
        after: datetime,
        until: datetime | None = None,
    ) -> list[UsageEvent]:
        """
        Usage events for one part with after < occurred_at <= until.

        Args:
            part_id: Spare part identifier.
            after: Exclusive lower bound.
            until: Inclusive upper bound; None for everything after ``after``.
        """
        pk = self.parse_id(part_id)
        if pk is None:
            return []
        return self.usage_events_for_parts([part_id], after, until).get(str(pk), [])

    def usage_events_for_parts(
        self,
        part_ids: Iterable[str],
        after: datetime,
        until: datetime | None = None,
    ) -> dict[str, list[UsageEvent]]:
        """
        Usage events for many parts in one query, grouped by part id.

        Parts without events (or unknown ids) are absent from the result.
        """
        keys = {pk: str(pk) for pk in map(self.parse_id, part_ids) if pk is not None}
        if not keys:
            return {}

        query = (
            select(UsageEventModel)
            .where(UsageEventModel.spare_part_id.in_(list(keys)))
            .where(UsageEventModel.occurred_at > after)
        )
        if until is not None:
            query = query.where(UsageEventModel.occurred_at <= until)
        query = query.order_by(UsageEventModel.occurred_at, UsageEventModel.sequence)

        grouped: dict[str, list[UsageEvent]] = {}
        for row in self.session.scalars(query):
            event = self._to_event(row)
            grouped.setdefault(event.part_id, []).append(event)
        return grouped
