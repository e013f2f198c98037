"""
Vehicle query selector.

Provides read-only access to vehicles, their repair orders, and payments --
the raw inputs of debt aggregation and sales summaries.  No totals are
computed here; summing is the engines' job.
"""

from collections.abc import Iterable
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from garage_kernel.domain.dtos import Payment, RepairOrder, VehicleRef
from garage_kernel.models.vehicle import (
    CustomerModel,
    PaymentModel,
    RepairOrderModel,
    VehicleModel,
)
from garage_kernel.selectors.base import BaseSelector


class VehicleSelector(BaseSelector[VehicleModel]):
    """Selector for vehicles, repair orders and payments."""

    def __init__(self, session: Session):
        super().__init__(session)

    @staticmethod
    def _to_order(order: RepairOrderModel) -> RepairOrder:
        return RepairOrder(
            order_id=str(order.id),
            vehicle_id=str(order.vehicle_id),
            total_amount=order.total_amount,
            status=order.status,
            reception_date=order.reception_date,
            created_at=order.created_at,
        )

    @staticmethod
    def _to_payment(payment: PaymentModel) -> Payment:
        return Payment(
            payment_id=str(payment.id),
            vehicle_id=str(payment.vehicle_id),
            amount=payment.amount,
            paid_at=payment.paid_at,
            method=payment.payment_method,
        )

    def get_vehicle(self, vehicle_id: str) -> VehicleRef | None:
        """Return the vehicle with its customer contact, or None."""
        pk = self.parse_id(vehicle_id)
        if pk is None:
            return None
        row = self.session.execute(
            select(VehicleModel, CustomerModel)
            .outerjoin(CustomerModel, VehicleModel.customer_id == CustomerModel.id)
            .where(VehicleModel.id == pk)
        ).first()
        if row is None:
            return None
        vehicle, customer = row
        return VehicleRef(
            vehicle_id=str(vehicle.id),
            license_plate=vehicle.license_plate,
            brand=vehicle.brand,
            customer_name=customer.name if customer is not None else None,
            customer_phone=customer.phone if customer is not None else None,
            customer_email=customer.email if customer is not None else None,
        )

    def list_vehicle_ids(self) -> list[str]:
        """All vehicle ids, newest first (matches the debt screen ordering)."""
        rows = self.session.scalars(
            select(VehicleModel.id).order_by(
                VehicleModel.created_at.desc(), VehicleModel.id
            )
        ).all()
        return [str(pk) for pk in rows]

    def orders_for_vehicle(self, vehicle_id: str) -> list[RepairOrder]:
        """Repair orders of a vehicle ordered by reception date then id."""
        pk = self.parse_id(vehicle_id)
        if pk is None:
            return []
        rows = self.session.scalars(
            select(RepairOrderModel)
            .where(RepairOrderModel.vehicle_id == pk)
            .order_by(RepairOrderModel.reception_date, RepairOrderModel.id)
        ).all()
        return [self._to_order(order) for order in rows]

    def orders_received_between(self, first_day: date, last_day: date) -> list[RepairOrder]:
        """Repair orders of every vehicle received on first_day..last_day inclusive."""
        rows = self.session.scalars(
            select(RepairOrderModel)
            .where(RepairOrderModel.reception_date >= first_day)
            .where(RepairOrderModel.reception_date <= last_day)
            .order_by(RepairOrderModel.reception_date, RepairOrderModel.id)
        ).all()
        return [self._to_order(order) for order in rows]

    def payments_for_vehicle(self, vehicle_id: str) -> list[Payment]:
        """Payments of a vehicle ordered by payment time then id."""
        pk = self.parse_id(vehicle_id)
        if pk is None:
            return []
        rows = self.session.scalars(
            select(PaymentModel)
            .where(PaymentModel.vehicle_id == pk)
            .order_by(PaymentModel.paid_at, PaymentModel.id)
        ).all()
        return [self._to_payment(payment) for payment in rows]

    def payments_for_vehicles(
        self,
        vehicle_ids: Iterable[str],
        after: datetime,
        until: datetime,
    ) -> list[Payment]:
        """Payments of the given vehicles with after < paid_at <= until."""
        keys = [pk for pk in map(self.parse_id, vehicle_ids) if pk is not None]
        if not keys:
            return []
        rows = self.session.scalars(
            select(PaymentModel)
            .where(PaymentModel.vehicle_id.in_(keys))
            .where(PaymentModel.paid_at > after)
            .where(PaymentModel.paid_at <= until)
            .order_by(PaymentModel.paid_at, PaymentModel.id)
        ).all()
        return [self._to_payment(payment) for payment in rows]
