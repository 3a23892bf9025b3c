"""Business rules that must hold before an order may cross an edge.

``evaluate`` never raises for a failed rule; it reports the first hard
failure as ``reason`` and collects soft failures in ``warnings`` so the
executor can decide whether the caller acknowledged them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Optional

from ..models import OrderStatus, PaymentStatus, Role
from ..schemas import TransitionContext
from .registry import RACK_NUMBER_PATTERN, Edge, GuardKind, find_edge

UNVERIFIED_ITEMS = "unverified-items"
INVALID_RACK_FORMAT = "invalid-rack-format"
NO_DELIVERY_PERSON = "no-delivery-person"
UNKNOWN_DELIVERY_PERSON = "unknown-delivery-person"
PAYMENT_NOT_COLLECTED = "payment-not-collected"
MISSING_QC_OUTCOME = "missing-qc-outcome"
QC_OUTCOME_MISMATCH = "qc-outcome-mismatch"
TRANSITION_NOT_ALLOWED = "transition-not-allowed"
ROLE_NOT_PERMITTED = "role-not-permitted"

_RACK_RE = re.compile(RACK_NUMBER_PATTERN)


@dataclass
class GuardResult:
    ok: bool = True
    reason: Optional[str] = None
    warnings: List[str] = field(default_factory=list)
    edge: Optional[Edge] = None

    @classmethod
    def reject(cls, reason: str, edge: Optional[Edge] = None) -> "GuardResult":
        return cls(ok=False, reason=reason, edge=edge)


def is_valid_rack(rack_number: Optional[str]) -> bool:
    return bool(rack_number) and _RACK_RE.match(rack_number) is not None


def _check_items(order: Any, context: TransitionContext) -> Optional[str]:
    items = getattr(order, "items", None) or []
    if not context.verification().all_verified(len(items)):
        return UNVERIFIED_ITEMS
    return None


def _check_rack(order: Any, context: TransitionContext) -> Optional[str]:
    if not is_valid_rack(context.rack_number):
        return INVALID_RACK_FORMAT
    return None


def _check_delivery_person(
    context: TransitionContext, delivery_actor_ids: Optional[Iterable[str]]
) -> Optional[str]:
    if not context.delivery_actor_id:
        return NO_DELIVERY_PERSON
    if delivery_actor_ids is not None and context.delivery_actor_id not in set(delivery_actor_ids):
        return UNKNOWN_DELIVERY_PERSON
    return None


def _check_qc_outcome(edge: Edge, context: TransitionContext) -> Optional[str]:
    if context.qc_outcome is None:
        return MISSING_QC_OUTCOME
    if edge.qc_outcome is not None and context.qc_outcome != edge.qc_outcome:
        return QC_OUTCOME_MISMATCH
    return None


def _payment_warning(order: Any, context: TransitionContext) -> Optional[str]:
    if getattr(order, "payment_status", None) == PaymentStatus.paid or context.payment_collected:
        return None
    return PAYMENT_NOT_COLLECTED


def check_edge(
    edge: Edge,
    order: Any,
    context: TransitionContext,
    *,
    delivery_actor_ids: Optional[Iterable[str]] = None,
) -> GuardResult:
    result = GuardResult(edge=edge)
    for guard in edge.guards:
        if guard == GuardKind.items_fully_verified:
            reason = _check_items(order, context)
        elif guard == GuardKind.valid_rack_format:
            reason = _check_rack(order, context)
        elif guard == GuardKind.delivery_person_selected:
            reason = _check_delivery_person(context, delivery_actor_ids)
        elif guard == GuardKind.qc_outcome_branch:
            reason = _check_qc_outcome(edge, context)
        elif guard == GuardKind.payment_acknowledged:
            warning = _payment_warning(order, context)
            if warning:
                result.warnings.append(warning)
            continue
        else:
            raise ValueError(f"Unhandled guard {guard!r}")
        if reason:
            return GuardResult(ok=False, reason=reason, warnings=result.warnings, edge=edge)
    return result


def evaluate(
    role: Role,
    order: Any,
    from_status: OrderStatus,
    to_status: OrderStatus,
    context: Optional[TransitionContext] = None,
    *,
    delivery_actor_ids: Optional[Iterable[str]] = None,
) -> GuardResult:
    """Check graph membership, role permission and the edge's guards."""
    context = context or TransitionContext()
    edge = find_edge(from_status, to_status, order)
    if edge is None:
        return GuardResult.reject(TRANSITION_NOT_ALLOWED)
    if not edge.permits(Role(role)):
        return GuardResult.reject(ROLE_NOT_PERMITTED, edge)
    return check_edge(edge, order, context, delivery_actor_ids=delivery_actor_ids)
