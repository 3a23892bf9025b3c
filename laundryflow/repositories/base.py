from __future__ import annotations

import enum
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterable, List, Optional

from .. import schemas
from ..errors import ValidationError
from ..models import OrderStatus, Role
from ..workflow.registry import RACK_NUMBER_PATTERN

_RACK_RE = re.compile(RACK_NUMBER_PATTERN)

# Columns the engine and the field-update path are allowed to write.
WRITABLE_FIELDS: FrozenSet[str] = frozenset(
    name
    for name in schemas.OrderOut.model_fields
    if name not in {"id", "ticket_number", "status", "created_at", "updated_at", "items", "total_amount_cents"}
)


class AssignmentFilter(str, enum.Enum):
    any = "any"
    assigned = "assigned"
    unassigned = "unassigned"


class RackFilter(str, enum.Enum):
    any = "any"
    racked = "racked"
    unracked = "unracked"


@dataclass(frozen=True)
class OrderQuery:
    """Status + assignment predicate, shared by listing, stats and polling."""

    statuses: Optional[FrozenSet[OrderStatus]] = None
    assignment: AssignmentFilter = AssignmentFilter.any
    rack: RackFilter = RackFilter.any
    assigned_to: Optional[str] = None
    limit: Optional[int] = None

    @classmethod
    def for_statuses(cls, statuses: Iterable[OrderStatus], **kwargs: Any) -> "OrderQuery":
        return cls(statuses=frozenset(OrderStatus(s) for s in statuses), **kwargs)

    def matches(self, order: Any) -> bool:
        if self.statuses is not None and order.status not in self.statuses:
            return False
        if self.assigned_to is not None and order.assigned_to != self.assigned_to:
            return False
        if self.assignment == AssignmentFilter.assigned and not order.assigned_to:
            return False
        if self.assignment == AssignmentFilter.unassigned and order.assigned_to:
            return False
        if self.rack == RackFilter.racked and not order.rack_number:
            return False
        if self.rack == RackFilter.unracked and order.rack_number:
            return False
        return True


@dataclass(frozen=True)
class TransitionRecord:
    order_id: str
    from_status: OrderStatus
    to_status: OrderStatus
    role: Role
    actor_id: Optional[str] = None
    actor_name: Optional[str] = None
    override: bool = False
    reason: Optional[str] = None
    created_at: Optional[datetime] = None


def check_writable_fields(fields: Dict[str, Any]) -> None:
    unknown = set(fields) - WRITABLE_FIELDS
    if unknown:
        raise ValidationError(f"Fields not writable: {', '.join(sorted(unknown))}")
    assignment_keys = ("assigned_to", "assigned_to_name", "assigned_at")
    present = [key for key in assignment_keys if key in fields]
    if present:
        values = [fields.get(key) for key in assignment_keys]
        cleared = [value is None for value in values]
        if len(present) != len(assignment_keys) or (any(cleared) and not all(cleared)):
            raise ValidationError("assigned_to, assigned_to_name and assigned_at must be set or cleared together")
    rack = fields.get("rack_number")
    if rack is not None and not _RACK_RE.match(rack):
        raise ValidationError(f"Rack number {rack!r} must be a letter followed by one or two digits")


# Written only by the pack-and-rack edge.
TRANSITION_ONLY_FIELDS: FrozenSet[str] = frozenset({"rack_number"})


def check_field_update(fields: Dict[str, Any]) -> None:
    check_writable_fields(fields)
    locked = set(fields) & TRANSITION_ONLY_FIELDS
    if locked:
        raise ValidationError(f"Fields only set by a status transition: {', '.join(sorted(locked))}")


class OrderStore(ABC):
    """
    The order collection as the engine sees it. Every call is a fresh read
    or a single write; nothing returned here is cached by callers.
    """

    @abstractmethod
    def fetch_orders(self, query: Optional[OrderQuery] = None) -> List[schemas.OrderOut]:
        raise NotImplementedError

    @abstractmethod
    def fetch_order_by_id(self, order_id: str) -> schemas.OrderOut:
        """Raises ``OrderNotFound`` when the id is unknown."""
        raise NotImplementedError

    @abstractmethod
    def fetch_order_by_ticket(self, ticket_number: str) -> Optional[schemas.OrderOut]:
        raise NotImplementedError

    @abstractmethod
    def fetch_order_by_tag(self, tag_number: str) -> Optional[schemas.OrderOut]:
        raise NotImplementedError

    @abstractmethod
    def create_order(self, payload: schemas.OrderCreate) -> schemas.OrderOut:
        raise NotImplementedError

    @abstractmethod
    def update_order_status(
        self,
        order_id: str,
        expected_status: OrderStatus,
        new_status: OrderStatus,
        fields: Dict[str, Any],
        record: TransitionRecord,
    ) -> schemas.OrderOut:
        """
        Conditional write: applies ``new_status`` and ``fields`` and stores
        ``record`` only while the stored status equals ``expected_status``.
        Raises ``StaleStateError`` otherwise.
        """
        raise NotImplementedError

    @abstractmethod
    def update_order_fields(self, order_id: str, fields: Dict[str, Any]) -> schemas.OrderOut:
        raise NotImplementedError

    @abstractmethod
    def list_delivery_actors(self, *, active_only: bool = True) -> List[schemas.DeliveryActorOut]:
        raise NotImplementedError

    @abstractmethod
    def list_transitions(self, order_id: str) -> List[schemas.OrderTransitionOut]:
        raise NotImplementedError
