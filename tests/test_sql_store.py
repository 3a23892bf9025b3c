from __future__ import annotations

import json
from datetime import date

import pytest
from sqlalchemy.orm import Session

from laundryflow import models, schemas
from laundryflow.errors import GuardRejection, OrderNotFound, StaleStateError, ValidationError
from laundryflow.repositories import AssignmentFilter, OrderQuery, SqlOrderStore, TransitionRecord
from laundryflow.schemas import TransitionContext
from laundryflow.services import actors, events, orders
from laundryflow.workflow.transitions import TransitionExecutor


def _record(order_id: str, source: models.OrderStatus, target: models.OrderStatus) -> TransitionRecord:
    return TransitionRecord(order_id=order_id, from_status=source, to_status=target, role=models.Role.admin)


def test_ticket_numbers_are_sequential_per_day(db_session: Session, order_payload) -> None:
    today = date.today()
    first = orders.create_order(db_session, order_payload())
    second = orders.create_order(db_session, order_payload(item_count=1))
    assert first.ticket_number == orders.format_ticket_number(today, 1)
    assert second.ticket_number == orders.format_ticket_number(today, 2)
    assert first.total_amount_cents == 15000
    assert [item.position for item in first.items] == [0, 1, 2]
    assert len(first.id) == 24


def test_duplicate_ticket_is_rejected(sql_store: SqlOrderStore, order_payload) -> None:
    sql_store.create_order(order_payload(ticket_number="TKT-20250109-001"))
    with pytest.raises(ValidationError):
        sql_store.create_order(order_payload(ticket_number="TKT-20250109-001"))


def test_conditional_write_and_audit(db_session: Session, sql_store: SqlOrderStore, order_payload) -> None:
    order = sql_store.create_order(order_payload())
    fields = {"sorted_at": None, "sorted_by": "Operations Manager"}
    updated = sql_store.update_order_status(
        order.id,
        models.OrderStatus.received,
        models.OrderStatus.cancelled,
        fields,
        _record(order.id, models.OrderStatus.received, models.OrderStatus.cancelled),
    )
    assert updated.status == models.OrderStatus.cancelled
    assert updated.sorted_by == "Operations Manager"

    with pytest.raises(StaleStateError) as excinfo:
        sql_store.update_order_status(
            order.id,
            models.OrderStatus.received,
            models.OrderStatus.refund,
            {},
            _record(order.id, models.OrderStatus.received, models.OrderStatus.refund),
        )
    assert excinfo.value.actual_status == models.OrderStatus.cancelled.value
    assert sql_store.fetch_order_by_id(order.id).status == models.OrderStatus.cancelled

    history = sql_store.list_transitions(order.id)
    assert len(history) == 1
    assert history[0].to_status == models.OrderStatus.cancelled

    transitioned = events.list_outbox_events(db_session, event_type="order.transitioned", order_id=order.id)
    assert len(transitioned) == 1
    assert json.loads(transitioned[0].payload)["status"] == models.OrderStatus.cancelled.value


def test_missing_order(sql_store: SqlOrderStore) -> None:
    with pytest.raises(OrderNotFound):
        sql_store.fetch_order_by_id("f" * 24)
    with pytest.raises(OrderNotFound):
        sql_store.update_order_status(
            "f" * 24,
            models.OrderStatus.received,
            models.OrderStatus.cancelled,
            {},
            _record("f" * 24, models.OrderStatus.received, models.OrderStatus.cancelled),
        )


def test_field_rules(sql_store: SqlOrderStore, order_payload) -> None:
    order = sql_store.create_order(order_payload())
    with pytest.raises(ValidationError):
        sql_store.update_order_fields(order.id, {"status": models.OrderStatus.delivered})
    with pytest.raises(ValidationError):
        sql_store.update_order_fields(order.id, {"assigned_to": "D1"})
    with pytest.raises(ValidationError):
        sql_store.update_order_fields(order.id, {"rack_number": "A1"})
    updated = sql_store.update_order_fields(order.id, {"notes": "Handle with care"})
    assert updated.notes == "Handle with care"
    assert updated.rack_number is None


def test_query_filters(db_session: Session, sql_store: SqlOrderStore, order_payload) -> None:
    actors.create_delivery_actor(db_session, schemas.DeliveryActorCreate(id="D1", name="Ravi Kumar"))
    waiting = sql_store.create_order(order_payload())
    assigned = sql_store.create_order(order_payload())
    TransitionExecutor(sql_store).apply(
        assigned.id,
        models.Role.frontdesk,
        models.OrderStatus.ready_for_pickup,
        TransitionContext(delivery_actor_id="D1"),
    )

    unassigned = sql_store.fetch_orders(
        OrderQuery.for_statuses([models.OrderStatus.received], assignment=AssignmentFilter.unassigned)
    )
    assert [order.id for order in unassigned] == [waiting.id]

    riders = sql_store.fetch_orders(OrderQuery(assigned_to="D1"))
    assert [order.id for order in riders] == [assigned.id]
    assert riders[0].assigned_to_name == "Ravi Kumar"


def test_executor_rejection_leaves_row_untouched(db_session: Session, sql_store: SqlOrderStore, order_payload) -> None:
    order = sql_store.create_order(order_payload())
    with pytest.raises(GuardRejection):
        TransitionExecutor(sql_store).apply(order.id, models.Role.frontdesk, models.OrderStatus.ready_for_pickup)
    assert sql_store.fetch_order_by_id(order.id).status == models.OrderStatus.received
    assert sql_store.list_transitions(order.id) == []
    assert events.list_outbox_events(db_session, event_type="order.transitioned") == []
