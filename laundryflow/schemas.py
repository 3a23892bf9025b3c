from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .models import OrderStatus, OutboxStatus, PaymentMethod, PaymentStatus, Role
from .workflow.registry import RACK_NUMBER_PATTERN, QCOutcome
from .workflow.verification import VerificationSet


def _normalize_rack(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip().upper()
    return value or None


class OrderItemCreate(BaseModel):
    description: str = Field(..., min_length=1, max_length=255)
    quantity: int = Field(1, ge=1)
    unit_price_cents: int = Field(..., ge=0)
    product_id: Optional[str] = Field(None, max_length=64)
    selected_options: Optional[Dict[str, str]] = None


class OrderItemOut(BaseModel):
    id: Optional[int] = None
    position: int
    description: str
    quantity: int
    unit_price_cents: int
    product_id: Optional[str] = None
    selected_options: Optional[Dict[str, str]] = None

    class Config:
        from_attributes = True


class OrderCreate(BaseModel):
    ticket_number: Optional[str] = Field(
        None, max_length=32, description="Generated as TKT-YYYYMMDD-NNN when omitted."
    )
    customer_id: str = Field(..., max_length=64)
    customer_name: str = Field(..., max_length=255)
    phone_number: str = Field(..., max_length=32)
    address: Optional[str] = None
    expected_delivery: Optional[datetime] = None
    payment_method: PaymentMethod = PaymentMethod.cash
    payment_status: PaymentStatus = PaymentStatus.pending
    notes: Optional[str] = None
    items: List[OrderItemCreate] = Field(..., min_length=1)


class OrderFieldsUpdate(BaseModel):
    """Non-workflow fields. Status only ever moves through the engine."""

    customer_name: Optional[str] = Field(None, max_length=255)
    phone_number: Optional[str] = Field(None, max_length=32)
    address: Optional[str] = None
    expected_delivery: Optional[datetime] = None
    payment_method: Optional[PaymentMethod] = None
    payment_status: Optional[PaymentStatus] = None
    notes: Optional[str] = None

    class Config:
        extra = "forbid"


class OrderOut(BaseModel):
    id: str
    ticket_number: str
    tag_number: Optional[str] = None
    customer_id: str
    customer_name: str
    phone_number: str
    address: Optional[str] = None
    expected_delivery: Optional[datetime] = None
    status: OrderStatus
    payment_status: PaymentStatus
    payment_method: PaymentMethod
    total_amount_cents: int
    notes: Optional[str] = None

    assigned_to: Optional[str] = None
    assigned_to_name: Optional[str] = None
    assigned_at: Optional[datetime] = None
    rack_number: Optional[str] = None

    picked_up_at: Optional[datetime] = None
    picked_up_by: Optional[str] = None
    tag_printed_at: Optional[datetime] = None
    tag_printed_by: Optional[str] = None
    processing_ready_at: Optional[datetime] = None
    processing_ready_by: Optional[str] = None
    sorted_at: Optional[datetime] = None
    sorted_by: Optional[str] = None
    spotted_at: Optional[datetime] = None
    spotted_by: Optional[str] = None
    returned_at: Optional[datetime] = None
    returned_by: Optional[str] = None
    dry_cleaned_at: Optional[datetime] = None
    dry_cleaned_by: Optional[str] = None
    ironed_at: Optional[datetime] = None
    ironed_by: Optional[str] = None
    quality_checked_at: Optional[datetime] = None
    quality_checked_by: Optional[str] = None
    qc_passed_at: Optional[datetime] = None
    qc_passed_by: Optional[str] = None
    rework_at: Optional[datetime] = None
    rework_by: Optional[str] = None
    rework_reason: Optional[str] = None
    packed_at: Optional[datetime] = None
    packed_by: Optional[str] = None
    rack_assigned_at: Optional[datetime] = None
    rack_assigned_by: Optional[str] = None
    dispatched_at: Optional[datetime] = None
    dispatched_by: Optional[str] = None
    delivered_at: Optional[datetime] = None
    delivered_by: Optional[str] = None
    delivered_to: Optional[str] = None
    delivery_notes: Optional[str] = None
    payment_collected_at: Optional[datetime] = None
    payment_collected_by: Optional[str] = None
    overridden_at: Optional[datetime] = None
    overridden_by: Optional[str] = None

    created_at: datetime
    updated_at: datetime
    items: List[OrderItemOut] = Field(default_factory=list)

    class Config:
        from_attributes = True


class TransitionContext(BaseModel):
    """Inputs collected by a dashboard dialog before it asks for a transition."""

    actor_id: Optional[str] = Field(None, max_length=64)
    actor_name: Optional[str] = Field(None, max_length=255)
    verified_items: List[int] = Field(
        default_factory=list, description="Indices of the items the operator ticked."
    )
    rack_number: Optional[str] = None
    delivery_actor_id: Optional[str] = Field(None, max_length=64)
    qc_outcome: Optional[QCOutcome] = None
    payment_collected: bool = False
    acknowledge_warnings: bool = Field(
        False, description="Proceed past soft warnings such as uncollected COD payment."
    )
    delivered_to: Optional[str] = Field(None, max_length=255)
    delivery_notes: Optional[str] = None

    @field_validator("rack_number", mode="before")
    @classmethod
    def normalize_rack(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_rack(value)

    def verification(self) -> VerificationSet:
        return VerificationSet(self.verified_items)


class TransitionRequest(BaseModel):
    role: Role
    to_status: OrderStatus
    context: TransitionContext = Field(default_factory=TransitionContext)


class OverrideRequest(BaseModel):
    role: Role
    to_status: OrderStatus
    reason: str = Field(..., min_length=1)
    actor_id: Optional[str] = Field(None, max_length=64)
    actor_name: Optional[str] = Field(None, max_length=255)


class OrderTransitionOut(BaseModel):
    id: int
    order_id: str
    from_status: OrderStatus
    to_status: OrderStatus
    role: Role
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    override: bool
    reason: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class EdgeOut(BaseModel):
    source: OrderStatus
    target: OrderStatus
    action: str
    roles: List[Role]
    guards: List[str]
    racked: Optional[bool] = None


class StatusOut(BaseModel):
    status: OrderStatus
    terminal: bool
    next_statuses: List[OrderStatus]


class StageOut(BaseModel):
    role: Role
    stage: str
    label: str
    statuses: List[OrderStatus]
    next_status: Optional[OrderStatus] = None
    view_only: bool
    count: int = 0


class DeliveryActorCreate(BaseModel):
    id: Optional[str] = Field(None, max_length=64)
    name: str = Field(..., max_length=255)
    phone_number: Optional[str] = Field(None, max_length=32)
    active: bool = True


class DeliveryActorOut(BaseModel):
    id: str
    name: str
    phone_number: Optional[str] = None
    active: bool

    class Config:
        from_attributes = True


class NotificationOut(BaseModel):
    order_id: str
    ticket_number: str
    customer_name: str
    status: OrderStatus
    address: Optional[str] = None
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationFeedOut(BaseModel):
    role: Role
    stage: str
    unread_count: int
    visible: bool
    entries: List[NotificationOut] = Field(default_factory=list)


class VisibilityUpdate(BaseModel):
    visible: bool


class ScanRequest(BaseModel):
    raw: str = Field(..., min_length=1)


class ScanResultOut(BaseModel):
    kind: str
    raw: str
    order_id: Optional[str] = None
    ticket_number: Optional[str] = None
    tag_number: Optional[str] = None
    order: Optional[OrderOut] = None


class OutboxEventOut(BaseModel):
    id: int
    event_type: str
    topic: str
    order_id: Optional[str] = None
    payload: Dict[str, Any]
    status: OutboxStatus
    publish_attempts: int
    available_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
