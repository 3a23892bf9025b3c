from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..errors import OrderNotFound, StaleStateError, TransportError, ValidationError
from ..services import actors as actor_service
from ..services import orders as order_service
from ..services.events import enqueue_event, order_event_payload
from .base import AssignmentFilter, OrderQuery, OrderStore, RackFilter, TransitionRecord, check_field_update, check_writable_fields

logger = logging.getLogger(__name__)


def _serialize(order: models.Order) -> schemas.OrderOut:
    return schemas.OrderOut.model_validate(order, from_attributes=True)


class SqlOrderStore(OrderStore):
    def __init__(self, db: Session) -> None:
        self.db = db

    def fetch_orders(self, query: Optional[OrderQuery] = None) -> List[schemas.OrderOut]:
        query = query or OrderQuery()
        stmt = select(models.Order).order_by(models.Order.created_at.desc(), models.Order.id.asc())
        if query.statuses is not None:
            stmt = stmt.where(models.Order.status.in_(sorted(query.statuses, key=lambda s: s.name)))
        if query.assigned_to is not None:
            stmt = stmt.where(models.Order.assigned_to == query.assigned_to)
        if query.assignment == AssignmentFilter.assigned:
            stmt = stmt.where(models.Order.assigned_to.is_not(None), models.Order.assigned_to != "")
        elif query.assignment == AssignmentFilter.unassigned:
            stmt = stmt.where((models.Order.assigned_to.is_(None)) | (models.Order.assigned_to == ""))
        if query.rack == RackFilter.racked:
            stmt = stmt.where(models.Order.rack_number.is_not(None), models.Order.rack_number != "")
        elif query.rack == RackFilter.unracked:
            stmt = stmt.where((models.Order.rack_number.is_(None)) | (models.Order.rack_number == ""))
        if query.limit:
            stmt = stmt.limit(query.limit)
        try:
            orders = self.db.scalars(stmt).unique().all()
            return [_serialize(order) for order in orders]
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to fetch orders: {exc}") from exc

    def fetch_order_by_id(self, order_id: str) -> schemas.OrderOut:
        try:
            order = order_service.get_order(self.db, order_id)
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to fetch order {order_id}: {exc}") from exc
        if order is None:
            raise OrderNotFound(order_id)
        return _serialize(order)

    def fetch_order_by_ticket(self, ticket_number: str) -> Optional[schemas.OrderOut]:
        try:
            order = order_service.get_order_by_ticket(self.db, ticket_number)
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to fetch ticket {ticket_number}: {exc}") from exc
        return _serialize(order) if order else None

    def fetch_order_by_tag(self, tag_number: str) -> Optional[schemas.OrderOut]:
        try:
            order = order_service.get_order_by_tag(self.db, tag_number)
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to fetch tag {tag_number}: {exc}") from exc
        return _serialize(order) if order else None

    def create_order(self, payload: schemas.OrderCreate) -> schemas.OrderOut:
        try:
            order = order_service.create_order(self.db, payload)
        except ValueError as exc:
            self.db.rollback()
            raise ValidationError(str(exc)) from exc
        except IntegrityError as exc:
            self.db.rollback()
            raise ValidationError(f"Order conflicts with an existing ticket: {exc.orig}") from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise TransportError(f"Failed to create order: {exc}") from exc
        return _serialize(order)

    def update_order_status(
        self,
        order_id: str,
        expected_status: models.OrderStatus,
        new_status: models.OrderStatus,
        fields: Dict[str, Any],
        record: TransitionRecord,
    ) -> schemas.OrderOut:
        check_writable_fields(fields)
        now = record.created_at or datetime.utcnow()
        stmt = (
            update(models.Order)
            .where(models.Order.id == order_id, models.Order.status == expected_status)
            .values(status=new_status, updated_at=now, **fields)
            .execution_options(synchronize_session=False)
        )
        try:
            result = self.db.execute(stmt)
            if result.rowcount != 1:
                self.db.rollback()
                current = order_service.get_order(self.db, order_id)
                if current is None:
                    raise OrderNotFound(order_id)
                logger.info(
                    "Stale write on order %s: expected %s, found %s",
                    order_id,
                    expected_status.value,
                    current.status.value,
                )
                raise StaleStateError(order_id, expected_status.value, current.status.value)

            self.db.add(
                models.OrderTransition(
                    order_id=order_id,
                    from_status=record.from_status,
                    to_status=record.to_status,
                    role=record.role,
                    actor_id=record.actor_id,
                    actor_name=record.actor_name,
                    override=record.override,
                    reason=record.reason,
                    created_at=now,
                )
            )
            self.db.flush()
            self.db.expire_all()
            order = order_service.get_order(self.db, order_id)
            enqueue_event(
                self.db,
                event_type="order.overridden" if record.override else "order.transitioned",
                payload=order_event_payload(
                    order,
                    from_status=record.from_status.value,
                    role=record.role.value,
                    actor_id=record.actor_id,
                ),
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise TransportError(f"Failed to update order {order_id}: {exc}") from exc
        self.db.refresh(order)
        return _serialize(order)

    def update_order_fields(self, order_id: str, fields: Dict[str, Any]) -> schemas.OrderOut:
        check_field_update(fields)
        try:
            order = order_service.get_order(self.db, order_id)
            if order is None:
                raise OrderNotFound(order_id)
            order = order_service.update_order_fields(self.db, order, fields)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise TransportError(f"Failed to update order {order_id}: {exc}") from exc
        return _serialize(order)

    def list_delivery_actors(self, *, active_only: bool = True) -> List[schemas.DeliveryActorOut]:
        try:
            actors = actor_service.list_delivery_actors(self.db, active_only=active_only)
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to list delivery actors: {exc}") from exc
        return [schemas.DeliveryActorOut.model_validate(actor, from_attributes=True) for actor in actors]

    def list_transitions(self, order_id: str) -> List[schemas.OrderTransitionOut]:
        stmt = (
            select(models.OrderTransition)
            .where(models.OrderTransition.order_id == order_id)
            .order_by(models.OrderTransition.id.asc())
        )
        try:
            rows = self.db.scalars(stmt).all()
        except SQLAlchemyError as exc:
            raise TransportError(f"Failed to list transitions for {order_id}: {exc}") from exc
        return [schemas.OrderTransitionOut.model_validate(row, from_attributes=True) for row in rows]
