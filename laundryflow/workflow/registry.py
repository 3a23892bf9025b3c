"""Fixed lifecycle graph of a laundry order.

Every status an order can hold, every edge between them, which roles may
walk each edge, which guards protect it and which audit stamps it writes.
Nothing here mutates; the tables are built once at import.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from ..models import OrderStatus, Role

PRIVILEGED_ROLES: FrozenSet[Role] = frozenset({Role.admin, Role.manager})

TERMINAL_STATUSES: FrozenSet[OrderStatus] = frozenset(
    {OrderStatus.delivered, OrderStatus.refund, OrderStatus.cancelled}
)

ROLE_LABELS: Dict[Role, str] = {
    Role.frontdesk: "Front Desk",
    Role.backoffice: "Back Office",
    Role.operations: "Operations Manager",
    Role.drycleaner: "Dry Cleaner",
    Role.linentracker: "Linen Tracker",
    Role.delivery: "Delivery",
    Role.admin: "Admin",
    Role.manager: "Manager",
}

REWORK_REASON = "Quality Check Failed"

# Letter followed by one or two digits, e.g. A1, B2, D10.
RACK_NUMBER_PATTERN = r"^[A-Z][0-9]{1,2}$"


class GuardKind(str, enum.Enum):
    items_fully_verified = "ItemsFullyVerified"
    valid_rack_format = "ValidRackFormat"
    delivery_person_selected = "DeliveryPersonSelected"
    payment_acknowledged = "PaymentAcknowledged"
    qc_outcome_branch = "QCOutcomeBranch"


class Effect(str, enum.Enum):
    assign_delivery = "assign_delivery"
    print_tag = "print_tag"
    assign_rack = "assign_rack"
    rework = "rework"
    complete_delivery = "complete_delivery"


class QCOutcome(str, enum.Enum):
    passed = "pass"
    failed = "fail"


@dataclass(frozen=True)
class Edge:
    source: OrderStatus
    target: OrderStatus
    action: str
    roles: FrozenSet[Role]
    guards: Tuple[GuardKind, ...] = ()
    stamps: Tuple[str, ...] = ()
    effects: Tuple[Effect, ...] = ()
    # ``Ready for Pickup`` is reused for two stages. None means the edge does
    # not care; True/False require a rack number to be present/absent.
    racked: Optional[bool] = None
    qc_outcome: Optional[QCOutcome] = None

    def permits(self, role: Role) -> bool:
        return role in self.roles

    def applies_to(self, order: Any) -> bool:
        if self.racked is None or order is None:
            return True
        return bool(getattr(order, "rack_number", None)) == self.racked


def _edge(
    source: OrderStatus,
    target: OrderStatus,
    action: str,
    roles: Iterable[Role],
    **kwargs: Any,
) -> Edge:
    return Edge(
        source=source,
        target=target,
        action=action,
        roles=frozenset(roles) | PRIVILEGED_ROLES,
        **kwargs,
    )


S = OrderStatus
G = GuardKind

EDGES: Tuple[Edge, ...] = (
    _edge(
        S.received, S.ready_for_pickup, "assign_pickup", [Role.frontdesk],
        guards=(G.delivery_person_selected,), effects=(Effect.assign_delivery,),
    ),
    _edge(
        S.ready_for_pickup, S.received_in_workshop, "confirm_pickup", [Role.delivery],
        guards=(G.items_fully_verified,), stamps=("picked_up",), racked=False,
    ),
    _edge(
        S.received_in_workshop, S.tag_printed, "print_tags", [Role.backoffice],
        stamps=("tag_printed",), effects=(Effect.print_tag,),
    ),
    _edge(
        S.tag_printed, S.ready_for_processing, "release_to_processing", [Role.backoffice],
        stamps=("processing_ready",),
    ),
    _edge(
        S.ready_for_processing, S.sorting, "start_sorting", [Role.operations],
        guards=(G.items_fully_verified,), stamps=("sorted",),
    ),
    _edge(
        S.sorting, S.spotting, "start_spotting", [Role.operations],
        guards=(G.items_fully_verified,), stamps=("spotted",),
    ),
    _edge(S.sorting, S.returned, "mark_return", [Role.operations], stamps=("returned",)),
    _edge(
        S.spotting, S.dry_cleaning, "start_dry_cleaning", [Role.drycleaner],
        guards=(G.items_fully_verified,), stamps=("dry_cleaned",),
    ),
    _edge(
        S.dry_cleaning, S.ironing, "start_ironing", [Role.drycleaner],
        guards=(G.items_fully_verified,), stamps=("ironed",),
    ),
    _edge(
        S.ironing, S.quality_check, "start_quality_check", [Role.drycleaner],
        guards=(G.items_fully_verified,), stamps=("quality_checked",),
    ),
    _edge(
        S.quality_check, S.packing, "pass_quality_check", [Role.drycleaner],
        guards=(G.items_fully_verified, G.qc_outcome_branch), stamps=("qc_passed",),
        qc_outcome=QCOutcome.passed,
    ),
    _edge(
        S.quality_check, S.spotting, "fail_quality_check", [Role.drycleaner],
        guards=(G.items_fully_verified, G.qc_outcome_branch), stamps=("rework",),
        effects=(Effect.rework,), qc_outcome=QCOutcome.failed,
    ),
    _edge(
        S.packing, S.ready_for_pickup, "pack_and_rack", [Role.linentracker],
        guards=(G.items_fully_verified, G.valid_rack_format),
        stamps=("packed", "rack_assigned"), effects=(Effect.assign_rack,),
    ),
    _edge(
        S.ready_for_pickup, S.out_for_delivery, "dispatch", [Role.linentracker],
        guards=(G.delivery_person_selected,), stamps=("dispatched",),
        effects=(Effect.assign_delivery,), racked=True,
    ),
    _edge(
        S.returned, S.out_for_delivery, "dispatch_return", [Role.frontdesk],
        guards=(G.delivery_person_selected,), stamps=("dispatched",),
        effects=(Effect.assign_delivery,),
    ),
    _edge(
        S.out_for_delivery, S.delivered, "complete_delivery", [Role.delivery],
        guards=(G.items_fully_verified, G.payment_acknowledged), stamps=("delivered",),
        effects=(Effect.complete_delivery,),
    ),
)

del S, G

_EDGES_BY_SOURCE: Dict[OrderStatus, List[Edge]] = {}
for _e in EDGES:
    _EDGES_BY_SOURCE.setdefault(_e.source, []).append(_e)
del _e


def edges_from(status: OrderStatus) -> List[OrderStatus]:
    """Distinct destinations reachable from ``status``, in declaration order."""
    targets: List[OrderStatus] = []
    for edge in _EDGES_BY_SOURCE.get(OrderStatus(status), []):
        if edge.target not in targets:
            targets.append(edge.target)
    return targets


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def outgoing_edges(status: OrderStatus, order: Any = None) -> List[Edge]:
    return [edge for edge in _EDGES_BY_SOURCE.get(OrderStatus(status), []) if edge.applies_to(order)]


def find_edge(source: OrderStatus, target: OrderStatus, order: Any = None) -> Optional[Edge]:
    for edge in outgoing_edges(source, order):
        if edge.target == OrderStatus(target):
            return edge
    return None


def edges_for_role(role: Role) -> List[Edge]:
    return [edge for edge in EDGES if edge.permits(Role(role))]


def is_valid_transition(source: OrderStatus, target: OrderStatus) -> bool:
    return OrderStatus(target) in edges_from(source)
