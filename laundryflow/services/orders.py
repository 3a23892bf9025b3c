from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from .. import models, schemas
from .events import enqueue_event, order_event_payload

logger = logging.getLogger(__name__)

TICKET_PREFIX = "TKT"


def format_ticket_number(day: date, sequence: int) -> str:
    return f"{TICKET_PREFIX}-{day:%Y%m%d}-{sequence:03d}"


def ticket_day_prefix(day: date) -> str:
    return f"{TICKET_PREFIX}-{day:%Y%m%d}-"


def order_total_cents(items: Iterable[schemas.OrderItemCreate]) -> int:
    return sum(item.unit_price_cents * item.quantity for item in items)


def next_ticket_number(db: Session, day: date | None = None) -> str:
    day = day or date.today()
    prefix = ticket_day_prefix(day)
    stmt = select(func.count(models.Order.id)).where(models.Order.ticket_number.like(f"{prefix}%"))
    issued = db.scalar(stmt) or 0
    return format_ticket_number(day, issued + 1)


def create_order(db: Session, payload: schemas.OrderCreate) -> models.Order:
    ticket_number = payload.ticket_number or next_ticket_number(db)
    if get_order_by_ticket(db, ticket_number) is not None:
        raise ValueError(f"ticket_number {ticket_number} already exists")

    order = models.Order(
        ticket_number=ticket_number,
        customer_id=payload.customer_id,
        customer_name=payload.customer_name,
        phone_number=payload.phone_number,
        address=payload.address,
        expected_delivery=payload.expected_delivery,
        payment_method=payload.payment_method,
        payment_status=payload.payment_status,
        notes=payload.notes,
        status=models.OrderStatus.received,
        total_amount_cents=order_total_cents(payload.items),
    )
    for position, item_payload in enumerate(payload.items):
        order.items.append(
            models.OrderItem(
                position=position,
                description=item_payload.description,
                quantity=item_payload.quantity,
                unit_price_cents=item_payload.unit_price_cents,
                product_id=item_payload.product_id,
                selected_options=item_payload.selected_options,
            )
        )
    db.add(order)
    db.flush()
    enqueue_event(
        db,
        event_type="order.created",
        payload=order_event_payload(order, total_amount_cents=order.total_amount_cents),
    )
    db.commit()
    db.refresh(order)
    logger.info("Created order %s ticket=%s items=%s", order.id, order.ticket_number, len(order.items))
    return order


def list_orders(
    db: Session,
    *,
    statuses: Iterable[models.OrderStatus] | None = None,
    limit: int | None = None,
) -> Sequence[models.Order]:
    stmt = select(models.Order).order_by(models.Order.created_at.desc())
    if statuses is not None:
        stmt = stmt.where(models.Order.status.in_(list(statuses)))
    if limit:
        stmt = stmt.limit(limit)
    return db.scalars(stmt).unique().all()


def search_orders(db: Session, query: str) -> Sequence[models.Order]:
    pattern = f"%{query}%"
    stmt = (
        select(models.Order)
        .where(
            or_(
                models.Order.ticket_number.ilike(pattern),
                models.Order.customer_id.ilike(pattern),
                models.Order.customer_name.ilike(pattern),
                models.Order.phone_number.ilike(pattern),
            )
        )
        .order_by(models.Order.created_at.desc())
    )
    return db.scalars(stmt).unique().all()


def get_order(db: Session, order_id: str) -> models.Order | None:
    return db.get(models.Order, order_id)


def get_order_by_ticket(db: Session, ticket_number: str) -> models.Order | None:
    return db.scalars(select(models.Order).where(models.Order.ticket_number == ticket_number)).first()


def get_order_by_tag(db: Session, tag_number: str) -> models.Order | None:
    return db.scalars(select(models.Order).where(models.Order.tag_number == tag_number)).first()


def update_order_fields(db: Session, order: models.Order, fields: dict) -> models.Order:
    for key, value in fields.items():
        setattr(order, key, value)
    order.updated_at = datetime.utcnow()
    db.add(order)
    enqueue_event(
        db,
        event_type="order.updated",
        payload=order_event_payload(order, fields=sorted(fields)),
    )
    db.commit()
    db.refresh(order)
    return order
