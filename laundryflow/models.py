from __future__ import annotations

import enum
import secrets
from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .database import Base


def new_object_id() -> str:
    """24 hex characters, the id shape printed on receipts and QR links."""
    return secrets.token_hex(12)


class OrderStatus(str, enum.Enum):
    received = "Received"
    ready_for_pickup = "Ready for Pickup"
    received_in_workshop = "Received in Workshop"
    tag_printed = "Tag Printed"
    ready_for_processing = "Ready for Processing"
    sorting = "Sorting"
    spotting = "Spotting"
    dry_cleaning = "Dry Cleaning"
    ironing = "Ironing"
    quality_check = "Quality Check"
    packing = "Packing"
    out_for_delivery = "Out for Delivery"
    delivered = "Delivered"
    returned = "Return"
    refund = "Refund"
    cancelled = "Cancelled"


class Role(str, enum.Enum):
    frontdesk = "frontdesk"
    backoffice = "backoffice"
    operations = "operations"
    drycleaner = "drycleaner"
    linentracker = "linentracker"
    delivery = "delivery"
    admin = "admin"
    manager = "manager"


class PaymentStatus(str, enum.Enum):
    pending = "Pending"
    paid = "Paid"
    partial = "Partial"


class PaymentMethod(str, enum.Enum):
    cash = "Cash"
    card = "Card"
    upi = "UPI"
    online = "Online"


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(24), primary_key=True, default=new_object_id)
    ticket_number: Mapped[str] = mapped_column(String(32), nullable=False, unique=True, index=True)
    tag_number: Mapped[str | None] = mapped_column(String(32), unique=True, index=True)
    customer_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    customer_name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str] = mapped_column(String(32), nullable=False)
    address: Mapped[str | None] = mapped_column(Text)
    expected_delivery: Mapped[datetime | None] = mapped_column(DateTime)
    status: Mapped[OrderStatus] = mapped_column(
        Enum(OrderStatus), default=OrderStatus.received, nullable=False, index=True
    )
    payment_status: Mapped[PaymentStatus] = mapped_column(
        Enum(PaymentStatus), default=PaymentStatus.pending, nullable=False
    )
    payment_method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod), default=PaymentMethod.cash, nullable=False
    )
    total_amount_cents: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)

    assigned_to: Mapped[str | None] = mapped_column(String(64), index=True)
    assigned_to_name: Mapped[str | None] = mapped_column(String(255))
    assigned_at: Mapped[datetime | None] = mapped_column(DateTime)
    rack_number: Mapped[str | None] = mapped_column(String(3))

    # Audit stamps, one pair per stage the order has entered.
    picked_up_at: Mapped[datetime | None] = mapped_column(DateTime)
    picked_up_by: Mapped[str | None] = mapped_column(String(255))
    tag_printed_at: Mapped[datetime | None] = mapped_column(DateTime)
    tag_printed_by: Mapped[str | None] = mapped_column(String(255))
    processing_ready_at: Mapped[datetime | None] = mapped_column(DateTime)
    processing_ready_by: Mapped[str | None] = mapped_column(String(255))
    sorted_at: Mapped[datetime | None] = mapped_column(DateTime)
    sorted_by: Mapped[str | None] = mapped_column(String(255))
    spotted_at: Mapped[datetime | None] = mapped_column(DateTime)
    spotted_by: Mapped[str | None] = mapped_column(String(255))
    returned_at: Mapped[datetime | None] = mapped_column(DateTime)
    returned_by: Mapped[str | None] = mapped_column(String(255))
    dry_cleaned_at: Mapped[datetime | None] = mapped_column(DateTime)
    dry_cleaned_by: Mapped[str | None] = mapped_column(String(255))
    ironed_at: Mapped[datetime | None] = mapped_column(DateTime)
    ironed_by: Mapped[str | None] = mapped_column(String(255))
    quality_checked_at: Mapped[datetime | None] = mapped_column(DateTime)
    quality_checked_by: Mapped[str | None] = mapped_column(String(255))
    qc_passed_at: Mapped[datetime | None] = mapped_column(DateTime)
    qc_passed_by: Mapped[str | None] = mapped_column(String(255))
    rework_at: Mapped[datetime | None] = mapped_column(DateTime)
    rework_by: Mapped[str | None] = mapped_column(String(255))
    rework_reason: Mapped[str | None] = mapped_column(Text)
    packed_at: Mapped[datetime | None] = mapped_column(DateTime)
    packed_by: Mapped[str | None] = mapped_column(String(255))
    rack_assigned_at: Mapped[datetime | None] = mapped_column(DateTime)
    rack_assigned_by: Mapped[str | None] = mapped_column(String(255))
    dispatched_at: Mapped[datetime | None] = mapped_column(DateTime)
    dispatched_by: Mapped[str | None] = mapped_column(String(255))
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime)
    delivered_by: Mapped[str | None] = mapped_column(String(255))
    delivered_to: Mapped[str | None] = mapped_column(String(255))
    delivery_notes: Mapped[str | None] = mapped_column(Text)
    payment_collected_at: Mapped[datetime | None] = mapped_column(DateTime)
    payment_collected_by: Mapped[str | None] = mapped_column(String(255))
    overridden_at: Mapped[datetime | None] = mapped_column(DateTime)
    overridden_by: Mapped[str | None] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    items: Mapped[list["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
    )
    transitions: Mapped[list["OrderTransition"]] = relationship(
        "OrderTransition",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderTransition.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        UniqueConstraint("order_id", "position", name="uq_order_item_position"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    order_id: Mapped[str] = mapped_column(String(24), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    unit_price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[str | None] = mapped_column(String(64))
    selected_options: Mapped[dict | None] = mapped_column(JSON)

    order: Mapped[Order] = relationship("Order", back_populates="items")


class DeliveryActor(Base):
    __tablename__ = "delivery_actors"

    id: Mapped[str] = mapped_column(String(64), primary_key=True, default=new_object_id)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(32))
    active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)


class OrderTransition(Base):
    __tablename__ = "order_transitions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    order_id: Mapped[str] = mapped_column(
        String(24), ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True
    )
    from_status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), nullable=False)
    to_status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus), nullable=False)
    role: Mapped[Role] = mapped_column(Enum(Role), nullable=False)
    actor_id: Mapped[str | None] = mapped_column(String(64))
    actor_name: Mapped[str | None] = mapped_column(String(255))
    override: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    order: Mapped[Order] = relationship("Order", back_populates="transitions")


class OutboxStatus(str, enum.Enum):
    pending = "pending"
    published = "published"
    failed = "failed"


class OutboxEvent(Base):
    __tablename__ = "outbox_events"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    event_type: Mapped[str] = mapped_column(String(128), nullable=False)
    topic: Mapped[str] = mapped_column(String(128), nullable=False)
    order_id: Mapped[str | None] = mapped_column(String(24), index=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[OutboxStatus] = mapped_column(
        Enum(OutboxStatus), default=OutboxStatus.pending, nullable=False
    )
    publish_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    available_at: Mapped[datetime | None] = mapped_column(DateTime)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
