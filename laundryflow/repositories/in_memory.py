from __future__ import annotations

import threading
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional

from .. import schemas
from ..errors import OrderNotFound, StaleStateError, ValidationError
from ..models import OrderStatus, new_object_id
from ..services.orders import format_ticket_number, order_total_cents, ticket_day_prefix
from .base import OrderQuery, OrderStore, TransitionRecord, check_field_update, check_writable_fields


class InMemoryOrderStore(OrderStore):
    """Process-local store used by tests and single-session demos."""

    def __init__(self, delivery_actors: Optional[Iterable[schemas.DeliveryActorOut]] = None) -> None:
        self._lock = threading.Lock()
        self._orders: Dict[str, schemas.OrderOut] = {}
        self._transitions: List[schemas.OrderTransitionOut] = []
        self._actors: Dict[str, schemas.DeliveryActorOut] = {}
        for actor in delivery_actors or []:
            self._actors[actor.id] = actor

    def add_delivery_actor(self, actor: schemas.DeliveryActorOut) -> None:
        with self._lock:
            self._actors[actor.id] = actor

    def add_order(self, order: schemas.OrderOut) -> schemas.OrderOut:
        with self._lock:
            self._orders[order.id] = order.model_copy(deep=True)
        return order.model_copy(deep=True)

    def fetch_orders(self, query: Optional[OrderQuery] = None) -> List[schemas.OrderOut]:
        query = query or OrderQuery()
        with self._lock:
            orders = [order.model_copy(deep=True) for order in self._orders.values() if query.matches(order)]
        orders.sort(key=lambda order: order.id)
        orders.sort(key=lambda order: order.created_at, reverse=True)
        if query.limit:
            orders = orders[: query.limit]
        return orders

    def fetch_order_by_id(self, order_id: str) -> schemas.OrderOut:
        with self._lock:
            order = self._orders.get(order_id)
            if order is None:
                raise OrderNotFound(order_id)
            return order.model_copy(deep=True)

    def _find(self, attribute: str, value: str) -> Optional[schemas.OrderOut]:
        with self._lock:
            for order in self._orders.values():
                if getattr(order, attribute) == value:
                    return order.model_copy(deep=True)
        return None

    def fetch_order_by_ticket(self, ticket_number: str) -> Optional[schemas.OrderOut]:
        return self._find("ticket_number", ticket_number)

    def fetch_order_by_tag(self, tag_number: str) -> Optional[schemas.OrderOut]:
        return self._find("tag_number", tag_number)

    def create_order(self, payload: schemas.OrderCreate) -> schemas.OrderOut:
        now = datetime.utcnow()
        with self._lock:
            ticket_number = payload.ticket_number
            if ticket_number is None:
                prefix = ticket_day_prefix(date.today())
                issued = sum(1 for order in self._orders.values() if order.ticket_number.startswith(prefix))
                ticket_number = format_ticket_number(date.today(), issued + 1)
            if any(order.ticket_number == ticket_number for order in self._orders.values()):
                raise ValidationError(f"ticket_number {ticket_number} already exists")
            order = schemas.OrderOut(
                id=new_object_id(),
                ticket_number=ticket_number,
                customer_id=payload.customer_id,
                customer_name=payload.customer_name,
                phone_number=payload.phone_number,
                address=payload.address,
                expected_delivery=payload.expected_delivery,
                status=OrderStatus.received,
                payment_status=payload.payment_status,
                payment_method=payload.payment_method,
                total_amount_cents=order_total_cents(payload.items),
                notes=payload.notes,
                created_at=now,
                updated_at=now,
                items=[
                    schemas.OrderItemOut(position=position, **item.model_dump())
                    for position, item in enumerate(payload.items)
                ],
            )
            self._orders[order.id] = order
            return order.model_copy(deep=True)

    def update_order_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        fields: Dict[str, Any],
        record: TransitionRecord,
    ) -> schemas.OrderOut:
        check_writable_fields(fields)
        now = record.created_at or datetime.utcnow()
        with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                raise OrderNotFound(order_id)
            if current.status != expected_status:
                raise StaleStateError(order_id, expected_status.value, current.status.value)
            updated = current.model_copy(update={**fields, "status": new_status, "updated_at": now}, deep=True)
            self._orders[order_id] = updated
            self._transitions.append(
                schemas.OrderTransitionOut(
                    id=len(self._transitions) + 1,
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
            return updated.model_copy(deep=True)

    def update_order_fields(self, order_id: str, fields: Dict[str, Any]) -> schemas.OrderOut:
        check_field_update(fields)
        with self._lock:
            current = self._orders.get(order_id)
            if current is None:
                raise OrderNotFound(order_id)
            updated = current.model_copy(update={**fields, "updated_at": datetime.utcnow()}, deep=True)
            self._orders[order_id] = updated
            return updated.model_copy(deep=True)

    def list_delivery_actors(self, *, active_only: bool = True) -> List[schemas.DeliveryActorOut]:
        with self._lock:
            actors = [actor for actor in self._actors.values() if actor.active or not active_only]
        return sorted(actors, key=lambda actor: actor.name)

    def list_transitions(self, order_id: str) -> List[schemas.OrderTransitionOut]:
        with self._lock:
            return [row for row in self._transitions if row.order_id == order_id]
