from __future__ import annotations

from typing import Dict

from ..models import OrderStatus, Role
from ..repositories.base import OrderQuery, OrderStore
from . import stages

IN_PROCESS_STATUSES = (
    OrderStatus.sorting,
    OrderStatus.spotting,
    OrderStatus.dry_cleaning,
    OrderStatus.ironing,
    OrderStatus.quality_check,
    OrderStatus.packing,
)


def counts_by_stage(store: OrderStore, role: Role) -> Dict[str, int]:
    """Tab badge counts, from a single fetch of everything the role can see."""
    definitions = stages.stages_for(role)
    orders = store.fetch_orders(OrderQuery.for_statuses(stages.relevant_statuses(role)))
    counts = {definition.name: 0 for definition in definitions}
    for definition in definitions:
        query = definition.query()
        counts[definition.name] = sum(1 for order in orders if query.matches(order))
    return counts


def counts_by_status(store: OrderStore) -> Dict[str, int]:
    orders = store.fetch_orders()
    counts = {status.value: 0 for status in OrderStatus}
    for order in orders:
        counts[order.status.value] += 1
    counts["in_process"] = sum(counts[status.value] for status in IN_PROCESS_STATUSES)
    counts["total"] = len(orders)
    return counts
