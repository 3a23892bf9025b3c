from __future__ import annotations

import json
from typing import Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from .. import models

ORDER_TOPIC = "laundry.order"


def enqueue_event(
    db: Session,
    *,
    event_type: str,
    topic: str = ORDER_TOPIC,
    payload: dict,
    status: models.OutboxStatus = models.OutboxStatus.pending,
) -> models.OutboxEvent:
    """Stage an event in the caller's transaction; the caller commits."""
    event = models.OutboxEvent(
        event_type=event_type,
        topic=topic,
        order_id=payload.get("order_id"),
        payload=json.dumps(payload, default=str),
        status=status,
    )
    db.add(event)
    return event


def order_event_payload(order: models.Order, **extra: object) -> dict:
    payload = {
        "order_id": order.id,
        "ticket_number": order.ticket_number,
        "status": order.status.value,
        "payment_status": order.payment_status.value,
        "assigned_to": order.assigned_to,
        "rack_number": order.rack_number,
    }
    payload.update(extra)
    return payload


def list_outbox_events(
    db: Session,
    *,
    status: models.OutboxStatus | None = models.OutboxStatus.pending,
    event_type: str | None = None,
    order_id: str | None = None,
    limit: int = 100,
) -> Sequence[models.OutboxEvent]:
    stmt = select(models.OutboxEvent).order_by(models.OutboxEvent.created_at.asc(), models.OutboxEvent.id.asc())
    if status:
        stmt = stmt.where(models.OutboxEvent.status == status)
    if event_type:
        stmt = stmt.where(models.OutboxEvent.event_type == event_type)
    if order_id:
        stmt = stmt.where(models.OutboxEvent.order_id == order_id)
    return db.scalars(stmt.limit(limit)).all()


def get_outbox_event(db: Session, event_id: int) -> models.OutboxEvent | None:
    return db.get(models.OutboxEvent, event_id)


def mark_outbox_event(
    db: Session,
    event: models.OutboxEvent,
    status: models.OutboxStatus,
) -> models.OutboxEvent:
    event.status = status
    if status != models.OutboxStatus.pending:
        event.publish_attempts += 1
    db.add(event)
    db.commit()
    db.refresh(event)
    return event
