from __future__ import annotations

import json

from .. import models, schemas
from ..workflow.notifier import ChangeDetectionNotifier, NotificationEntry
from ..workflow.registry import Edge, edges_from, is_terminal
from ..workflow.stages import Stage


def outbox_event(event: models.OutboxEvent) -> schemas.OutboxEventOut:
    payload = json.loads(event.payload)
    return schemas.OutboxEventOut(
        id=event.id,
        event_type=event.event_type,
        topic=event.topic,
        order_id=event.order_id,
        payload=payload,
        status=event.status,
        publish_attempts=event.publish_attempts,
        available_at=event.available_at,
        created_at=event.created_at,
        updated_at=event.updated_at,
    )


def edge(edge: Edge) -> schemas.EdgeOut:
    return schemas.EdgeOut(
        source=edge.source,
        target=edge.target,
        action=edge.action,
        roles=sorted(edge.roles, key=lambda role: role.value),
        guards=[guard.value for guard in edge.guards],
        racked=edge.racked,
    )


def status(value: models.OrderStatus) -> schemas.StatusOut:
    return schemas.StatusOut(status=value, terminal=is_terminal(value), next_statuses=edges_from(value))


def stage(role: models.Role, definition: Stage, count: int = 0) -> schemas.StageOut:
    return schemas.StageOut(
        role=role,
        stage=definition.name,
        label=definition.label,
        statuses=list(definition.statuses),
        next_status=definition.next_status,
        view_only=definition.view_only,
        count=count,
    )


def notification(entry: NotificationEntry) -> schemas.NotificationOut:
    return schemas.NotificationOut.model_validate(entry, from_attributes=True)


def notification_feed(notifier: ChangeDetectionNotifier) -> schemas.NotificationFeedOut:
    return schemas.NotificationFeedOut(
        role=notifier.role,
        stage=notifier.stage,
        unread_count=notifier.unread_count,
        visible=notifier.visible,
        entries=[notification(entry) for entry in notifier.entries],
    )
