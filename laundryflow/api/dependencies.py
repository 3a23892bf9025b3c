from __future__ import annotations

from typing import Annotated, List

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .. import schemas
from ..core.config import get_settings
from ..database import SessionLocal, get_db
from ..repositories.base import OrderQuery, OrderStore
from ..repositories.sql import SqlOrderStore
from ..workflow.engine import WorkflowEngine
from ..workflow.notifier import LoggingNotificationChannel, NotificationCenter, WebhookNotificationChannel

DbSession = Annotated[Session, Depends(get_db)]


def get_store(db: DbSession) -> OrderStore:
    return SqlOrderStore(db)


Store = Annotated[OrderStore, Depends(get_store)]


def fetch_orders_in_new_session(query: OrderQuery) -> List[schemas.OrderOut]:
    db = SessionLocal()
    try:
        return SqlOrderStore(db).fetch_orders(query)
    finally:
        db.close()


def build_notification_center() -> NotificationCenter:
    settings = get_settings()
    channels = [LoggingNotificationChannel()]
    if settings.NOTIFY_WEBHOOK_URL:
        channels.append(
            WebhookNotificationChannel(
                url=settings.NOTIFY_WEBHOOK_URL,
                timeout=settings.WEBHOOK_TIMEOUT_SECONDS,
                max_attempts=settings.WEBHOOK_MAX_ATTEMPTS,
            )
        )
    return NotificationCenter(
        fetch_orders_in_new_session,
        interval=settings.NOTIFIER_POLL_INTERVAL_SECONDS,
        max_entries=settings.NOTIFIER_MAX_ENTRIES,
        channels=channels,
    )


def get_notification_center(request: Request) -> NotificationCenter:
    center = getattr(request.app.state, "notifications", None)
    if center is None:
        center = build_notification_center()
        request.app.state.notifications = center
    return center


Notifications = Annotated[NotificationCenter, Depends(get_notification_center)]


def get_engine(store: Store, notifications: Notifications) -> WorkflowEngine:
    return WorkflowEngine(store, notifications)


Engine = Annotated[WorkflowEngine, Depends(get_engine)]
