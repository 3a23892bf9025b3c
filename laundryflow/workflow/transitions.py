from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from .. import schemas
from ..errors import GuardRejection, RoleNotPermitted, TransitionNotAllowed, ValidationError
from ..models import OrderStatus, PaymentStatus, Role
from ..repositories.base import OrderStore, TransitionRecord
from ..services.scanning import generate_tag_number
from . import guards
from .registry import PRIVILEGED_ROLES, REWORK_REASON, ROLE_LABELS, Edge, Effect, GuardKind, find_edge

logger = logging.getLogger(__name__)

DEFAULT_DELIVERY_NAME = "Delivery Boy"

Clock = Callable[[], datetime]


class TransitionExecutor:
    """Validates and applies one guarded status change per call.

    Each call re-reads the order, so the expected pre-state is whatever the
    store holds at that moment. The write is conditional on that pre-state;
    a concurrent winner surfaces here as ``StaleStateError``.
    """

    def __init__(self, store: OrderStore, clock: Optional[Clock] = None) -> None:
        self.store = store
        self.clock = clock or datetime.utcnow

    def apply(
        self,
        order_id: str,
        role: Role,
        to_status: OrderStatus,
        context: Optional[schemas.TransitionContext] = None,
    ) -> schemas.OrderOut:
        role = Role(role)
        to_status = OrderStatus(to_status)
        context = context or schemas.TransitionContext()

        order = self.store.fetch_order_by_id(order_id)
        from_status = order.status

        actor_names: Optional[Dict[str, str]] = None
        edge_hint = find_edge(from_status, to_status, order)
        if edge_hint is not None and GuardKind.delivery_person_selected in edge_hint.guards:
            actor_names = {actor.id: actor.name for actor in self.store.list_delivery_actors()}

        result = guards.evaluate(
            role,
            order,
            from_status,
            to_status,
            context,
            delivery_actor_ids=actor_names.keys() if actor_names is not None else None,
        )
        if not result.ok:
            logger.info(
                "Rejected %s -> %s for order %s role=%s reason=%s",
                from_status.value,
                to_status.value,
                order_id,
                role.value,
                result.reason,
            )
            if result.reason == guards.TRANSITION_NOT_ALLOWED:
                raise TransitionNotAllowed(from_status.value, to_status.value)
            if result.reason == guards.ROLE_NOT_PERMITTED:
                raise RoleNotPermitted(role.value, from_status.value, to_status.value)
            raise GuardRejection(result.reason)
        if result.warnings and not context.acknowledge_warnings:
            raise GuardRejection(result.warnings[0], soft=True)

        now = self.clock()
        actor_label = context.actor_name or ROLE_LABELS[role]
        fields = self._edge_fields(result.edge, order, context, actor_label, actor_names or {}, now)
        record = TransitionRecord(
            order_id=order_id,
            from_status=from_status,
            to_status=to_status,
            role=role,
            actor_id=context.actor_id,
            actor_name=actor_label,
            created_at=now,
        )
        updated = self.store.update_order_status(order_id, from_status, to_status, fields, record)
        logger.info(
            "Order %s %s -> %s by %s (%s)",
            updated.ticket_number,
            from_status.value,
            to_status.value,
            actor_label,
            result.edge.action,
        )
        return updated

    def override(
        self,
        order_id: str,
        role: Role,
        to_status: OrderStatus,
        reason: str,
        *,
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None,
    ) -> schemas.OrderOut:
        """Force a status outside the graph. Admin and manager only."""
        role = Role(role)
        to_status = OrderStatus(to_status)
        if role not in PRIVILEGED_ROLES:
            order = self.store.fetch_order_by_id(order_id)
            raise RoleNotPermitted(role.value, order.status.value, to_status.value)
        if not reason or not reason.strip():
            raise ValidationError("An override requires a reason")

        order = self.store.fetch_order_by_id(order_id)
        if order.status == to_status:
            raise ValidationError(f"Order {order_id} is already in status {to_status.value!r}")

        now = self.clock()
        actor_label = actor_name or ROLE_LABELS[role]
        record = TransitionRecord(
            order_id=order_id,
            from_status=order.status,
            to_status=to_status,
            role=role,
            actor_id=actor_id,
            actor_name=actor_label,
            override=True,
            reason=reason.strip(),
            created_at=now,
        )
        updated = self.store.update_order_status(
            order_id,
            order.status,
            to_status,
            {"overridden_at": now, "overridden_by": actor_label},
            record,
        )
        logger.warning(
            "Override on order %s %s -> %s by %s: %s",
            updated.ticket_number,
            order.status.value,
            to_status.value,
            actor_label,
            record.reason,
        )
        return updated

    def _edge_fields(
        self,
        edge: Edge,
        order: schemas.OrderOut,
        context: schemas.TransitionContext,
        actor_label: str,
        actor_names: Dict[str, str],
        now: datetime,
    ) -> Dict[str, Any]:
        fields: Dict[str, Any] = {}
        for stamp in edge.stamps:
            fields[f"{stamp}_at"] = now
            fields[f"{stamp}_by"] = actor_label

        for effect in edge.effects:
            if effect == Effect.assign_delivery:
                fields["assigned_to"] = context.delivery_actor_id
                fields["assigned_to_name"] = actor_names.get(context.delivery_actor_id) or DEFAULT_DELIVERY_NAME
                fields["assigned_at"] = now
            elif effect == Effect.print_tag:
                fields["tag_number"] = order.tag_number or generate_tag_number(order.ticket_number)
            elif effect == Effect.assign_rack:
                fields["rack_number"] = context.rack_number
            elif effect == Effect.rework:
                fields["rework_reason"] = REWORK_REASON
            elif effect == Effect.complete_delivery:
                fields["delivered_to"] = context.delivered_to or order.customer_name
                if context.delivery_notes:
                    fields["delivery_notes"] = context.delivery_notes
                if context.payment_collected and order.payment_status != PaymentStatus.paid:
                    fields["payment_status"] = PaymentStatus.paid
                    fields["payment_collected_at"] = now
                    fields["payment_collected_by"] = actor_label
        return fields
