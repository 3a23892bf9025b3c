"""Which orders each dashboard tab shows, and where its action button goes.

Stage definitions mirror the operator dashboards: one entry per tab, with
the statuses it lists, the assignment/rack predicate that splits an
overloaded status, and the status its primary action moves orders to.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from ..errors import ValidationError
from ..models import OrderStatus, Role
from ..repositories.base import AssignmentFilter, OrderQuery, RackFilter
from .registry import PRIVILEGED_ROLES, QCOutcome

S = OrderStatus


@dataclass(frozen=True)
class Stage:
    name: str
    label: str
    statuses: Tuple[OrderStatus, ...]
    next_status: Optional[OrderStatus] = None
    assignment: AssignmentFilter = AssignmentFilter.any
    rack: RackFilter = RackFilter.any
    # Only the QC tab branches; keyed by outcome.
    outcomes: Optional[Dict[QCOutcome, OrderStatus]] = None

    @property
    def view_only(self) -> bool:
        return self.next_status is None and not self.outcomes

    def query(self, actor_id: Optional[str] = None) -> OrderQuery:
        return OrderQuery.for_statuses(
            self.statuses,
            assignment=self.assignment,
            rack=self.rack,
            assigned_to=actor_id,
        )


STAGES: Dict[Role, Tuple[Stage, ...]] = {
    Role.frontdesk: (
        Stage("neworders", "New Orders", (S.received,), S.ready_for_pickup, assignment=AssignmentFilter.unassigned),
        Stage(
            "assigned",
            "Assigned for Pickup",
            (S.ready_for_pickup,),
            assignment=AssignmentFilter.assigned,
            rack=RackFilter.unracked,
        ),
        Stage("pickedup", "Picked Up", (S.received_in_workshop,)),
        Stage("returns", "Returns", (S.returned,), S.out_for_delivery, assignment=AssignmentFilter.unassigned),
    ),
    Role.delivery: (
        Stage(
            "pickup",
            "Pickups",
            (S.ready_for_pickup,),
            S.received_in_workshop,
            assignment=AssignmentFilter.assigned,
            rack=RackFilter.unracked,
        ),
        Stage("out", "Out for Delivery", (S.out_for_delivery,), S.delivered),
        Stage("delivered", "Delivered", (S.delivered,)),
    ),
    Role.backoffice: (
        Stage("received", "Received in Workshop", (S.received_in_workshop,), S.tag_printed),
        Stage("tagging", "Tag Printed", (S.tag_printed,), S.ready_for_processing),
        Stage("readyforprocessing", "Ready for Processing", (S.ready_for_processing,)),
    ),
    Role.operations: (
        Stage("received", "Ready for Processing", (S.ready_for_processing,), S.sorting),
        Stage("sorting", "Sorting", (S.sorting,), S.spotting),
        Stage("spotting", "Spotting", (S.spotting,)),
    ),
    Role.drycleaner: (
        Stage("spotting", "Spotting", (S.spotting,), S.dry_cleaning),
        Stage("drycleaning", "Dry Cleaning", (S.dry_cleaning,), S.ironing),
        Stage("ironing", "Ironing", (S.ironing,), S.quality_check),
        Stage(
            "qualitycheck",
            "Quality Check",
            (S.quality_check,),
            outcomes={QCOutcome.passed: S.packing, QCOutcome.failed: S.spotting},
        ),
        Stage("packing", "Packing", (S.packing,)),
    ),
    Role.linentracker: (
        Stage("packing", "Packing", (S.packing,), S.ready_for_pickup),
        Stage(
            "rackassignment",
            "Rack Assignment",
            (S.ready_for_pickup,),
            S.out_for_delivery,
            rack=RackFilter.racked,
        ),
        Stage("readyfordelivery", "Ready for Delivery", (S.out_for_delivery,)),
    ),
}

_ALL_STAGE = Stage("all", "All Orders", tuple(OrderStatus))

for _role in PRIVILEGED_ROLES:
    STAGES[_role] = (_ALL_STAGE,)
del _role, S


def stages_for(role: Role) -> Tuple[Stage, ...]:
    try:
        return STAGES[Role(role)]
    except (KeyError, ValueError) as exc:
        raise ValidationError(f"Unknown role {role!r}") from exc


def get_stage(role: Role, stage: str) -> Stage:
    for candidate in stages_for(role):
        if candidate.name == stage:
            return candidate
    raise ValidationError(f"Unknown stage {stage!r} for role {Role(role).value!r}")


def filter_for(role: Role, stage: str, actor_id: Optional[str] = None) -> OrderQuery:
    """Query for one tab. ``actor_id`` narrows delivery tabs to one rider."""
    definition = get_stage(role, stage)
    if actor_id is not None and Role(role) != Role.delivery:
        actor_id = None
    return definition.query(actor_id)


def next_status(role: Role, stage: str, outcome: Optional[QCOutcome] = None) -> Optional[OrderStatus]:
    definition = get_stage(role, stage)
    if definition.outcomes:
        if outcome is None:
            return None
        return definition.outcomes[QCOutcome(outcome)]
    return definition.next_status


def relevant_statuses(role: Role) -> List[OrderStatus]:
    """Union of every status the role's tabs list, in lifecycle order."""
    wanted = {status for stage in stages_for(role) for status in stage.statuses}
    return [status for status in OrderStatus if status in wanted]
