from __future__ import annotations

import json

from fastapi import APIRouter, HTTPException, status
from fastapi.responses import StreamingResponse

from .. import models, schemas
from ..errors import WorkflowError
from ..workflow.notifier import ChangeDetectionNotifier
from . import serializers
from .dependencies import Notifications
from .errors import to_http_exception

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _notifier(center, role: models.Role, stage: str) -> ChangeDetectionNotifier:
    try:
        return center.notifier(role, stage)
    except WorkflowError as exc:
        raise to_http_exception(exc) from exc


@router.get("/{role}/{stage}", response_model=schemas.NotificationFeedOut)
async def get_feed(role: models.Role, stage: str, center: Notifications):
    return serializers.notification_feed(_notifier(center, role, stage))


@router.post("/{role}/{stage}/poll", response_model=schemas.NotificationFeedOut)
async def poll_now(role: models.Role, stage: str, center: Notifications):
    notifier = _notifier(center, role, stage)
    await notifier.tick()
    return serializers.notification_feed(notifier)


@router.post("/{role}/{stage}/read/{order_id}", response_model=schemas.NotificationFeedOut)
async def mark_read(role: models.Role, stage: str, order_id: str, center: Notifications):
    notifier = _notifier(center, role, stage)
    if not notifier.mark_read(order_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No unread notification for that order")
    return serializers.notification_feed(notifier)


@router.post("/{role}/{stage}/read", response_model=schemas.NotificationFeedOut)
async def mark_all_read(role: models.Role, stage: str, center: Notifications):
    notifier = _notifier(center, role, stage)
    notifier.mark_all_read()
    return serializers.notification_feed(notifier)


@router.delete("/{role}/{stage}", response_model=schemas.NotificationFeedOut)
async def clear_all(role: models.Role, stage: str, center: Notifications):
    notifier = _notifier(center, role, stage)
    notifier.clear_all()
    return serializers.notification_feed(notifier)


@router.put("/{role}/{stage}/visibility", response_model=schemas.NotificationFeedOut)
async def set_visibility(role: models.Role, stage: str, payload: schemas.VisibilityUpdate, center: Notifications):
    notifier = _notifier(center, role, stage)
    notifier.set_visible(payload.visible)
    return serializers.notification_feed(notifier)


@router.get("/{role}/{stage}/stream")
async def stream(role: models.Role, stage: str, center: Notifications):
    _notifier(center, role, stage)
    entries = center.subscribe(role, stage)

    async def events():
        async for entry in entries:
            body = serializers.notification(entry).model_dump(mode="json")
            yield f"event: notification\ndata: {json.dumps(body)}\n\n"

    return StreamingResponse(events(), media_type="text/event-stream")
