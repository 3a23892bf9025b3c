from __future__ import annotations

from typing import AsyncIterator, Dict, List, Optional

from .. import schemas
from ..models import OrderStatus, Role
from ..repositories.base import OrderStore
from . import stages, stats
from .notifier import NotificationCenter, NotificationEntry
from .transitions import Clock, TransitionExecutor


class WorkflowEngine:
    """What a dashboard talks to: stage listings, transitions and alerts."""

    def __init__(
        self,
        store: OrderStore,
        notifications: Optional[NotificationCenter] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        self.store = store
        self.notifications = notifications
        self.executor = TransitionExecutor(store, clock=clock)

    def list_stage_orders(self, role: Role, stage: str, actor_id: Optional[str] = None) -> List[schemas.OrderOut]:
        return self.store.fetch_orders(stages.filter_for(role, stage, actor_id))

    def attempt_transition(
        self,
        role: Role,
        order_id: str,
        to_status: OrderStatus,
        context: Optional[schemas.TransitionContext] = None,
    ) -> schemas.OrderOut:
        return self.executor.apply(order_id, role, to_status, context)

    def override_status(
        self,
        role: Role,
        order_id: str,
        to_status: OrderStatus,
        reason: str,
        *,
        actor_id: Optional[str] = None,
        actor_name: Optional[str] = None,
    ) -> schemas.OrderOut:
        return self.executor.override(
            order_id, role, to_status, reason, actor_id=actor_id, actor_name=actor_name
        )

    def stage_counts(self, role: Role) -> Dict[str, int]:
        return stats.counts_by_stage(self.store, role)

    def status_counts(self) -> Dict[str, int]:
        return stats.counts_by_status(self.store)

    def subscribe_notifications(self, role: Role, stage: str) -> AsyncIterator[NotificationEntry]:
        if self.notifications is None:
            raise RuntimeError("WorkflowEngine was created without a NotificationCenter")
        return self.notifications.subscribe(role, stage)
