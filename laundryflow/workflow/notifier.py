"""Polling change detection behind the dashboard notification bell.

A notifier remembers the ids it saw on the previous poll and raises one
entry for every id that newly shows up in its role's relevant set. The very
first poll only seeds that memory, so opening a dashboard does not flood the
operator with alerts for orders that were already waiting.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import AsyncIterator, Callable, Dict, Iterable, List, Optional, Protocol, Sequence, Set, Tuple

import anyio
import httpx

from .. import schemas
from ..errors import NotifierFault, WorkflowError
from ..models import OrderStatus, Role
from ..repositories.base import OrderQuery
from . import stages
from .registry import ROLE_LABELS

logger = logging.getLogger(__name__)

FetchRelevantOrders = Callable[[], Iterable[schemas.OrderOut]]
FetchOrders = Callable[[OrderQuery], Iterable[schemas.OrderOut]]


@dataclass
class NotificationEntry:
    order_id: str
    ticket_number: str
    customer_name: str
    status: OrderStatus
    address: Optional[str] = None
    read: bool = False
    created_at: datetime = field(default_factory=datetime.utcnow)

    @classmethod
    def from_order(cls, order: schemas.OrderOut, created_at: Optional[datetime] = None) -> "NotificationEntry":
        return cls(
            order_id=order.id,
            ticket_number=order.ticket_number,
            customer_name=order.customer_name,
            status=order.status,
            address=order.address,
            created_at=created_at or datetime.utcnow(),
        )


def batch_title(count: int, dashboard: str) -> str:
    if count == 1:
        return f"New Order - {dashboard}"
    return f"{count} New Orders - {dashboard}"


class NotificationChannel(Protocol):
    name: str

    async def send(self, title: str, entries: Sequence[NotificationEntry]) -> None:
        ...


@dataclass
class LoggingNotificationChannel:
    name: str = "log"

    async def send(self, title: str, entries: Sequence[NotificationEntry]) -> None:
        logger.info(
            "Notify via %s title=%r tickets=%s",
            self.name,
            title,
            [entry.ticket_number for entry in entries],
        )


@dataclass
class WebhookNotificationChannel:
    url: str
    timeout: float = 3.0
    max_attempts: int = 3
    backoff: float = 0.5
    name: str = "webhook"

    async def send(self, title: str, entries: Sequence[NotificationEntry]) -> None:
        payload = {
            "title": title,
            "entries": [
                {**asdict(entry), "status": entry.status.value, "created_at": entry.created_at.isoformat()}
                for entry in entries
            ],
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for attempt in range(1, self.max_attempts + 1):
                try:
                    resp = await client.post(self.url, json=payload)
                    if resp.is_success:
                        return
                    logger.warning("Webhook %s answered %s (attempt %s)", self.url, resp.status_code, attempt)
                except httpx.RequestError as exc:
                    logger.warning("Webhook %s failed (attempt %s): %s", self.url, attempt, exc)
                if attempt < self.max_attempts:
                    await anyio.sleep(self.backoff * attempt)
        raise NotifierFault(f"Webhook {self.url} gave up after {self.max_attempts} attempts")


class ChangeDetectionNotifier:
    def __init__(
        self,
        role: Role,
        stage: str,
        fetch_relevant_orders: FetchRelevantOrders,
        *,
        interval: float = 15.0,
        channels: Iterable[NotificationChannel] = (),
        max_entries: int = 15,
        dashboard: Optional[str] = None,
    ) -> None:
        self.role = Role(role)
        self.stage = stage
        self.fetch_relevant_orders = fetch_relevant_orders
        self.interval = interval
        self.channels = list(channels)
        self.max_entries = max_entries
        self.dashboard = dashboard or ROLE_LABELS[self.role]

        self.previous_ids: Set[str] = set()
        self.entries: List[NotificationEntry] = []
        self.unread_count = 0
        self.visible = True
        self.ticks = 0

        self._first_tick = True
        self._in_flight = False
        self._wake = asyncio.Event()
        self._task: Optional[asyncio.Task] = None
        self._subscribers: List[asyncio.Queue] = []

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def tick(self) -> List[NotificationEntry]:
        """Poll once. Returns the entries this tick created."""
        if self._in_flight:
            return []
        self._in_flight = True
        try:
            try:
                orders = await anyio.to_thread.run_sync(lambda: list(self.fetch_relevant_orders()))
            except WorkflowError as exc:
                logger.warning("Notifier %s/%s skipped a tick: %s", self.role.value, self.stage, exc)
                return []
            except Exception:
                logger.exception("Notifier %s/%s fetch failed; skipping tick", self.role.value, self.stage)
                return []
            self.ticks += 1

            current = {order.id: order for order in orders}
            new_ids = [order_id for order_id in current if order_id not in self.previous_ids]
            first = self._first_tick
            self._first_tick = False
            self.previous_ids = set(current)
            if first or not new_ids:
                return []

            created = [NotificationEntry.from_order(current[order_id]) for order_id in new_ids]
            self.entries = (created + self.entries)[: self.max_entries]
            self.unread_count += len(created)
            for queue in list(self._subscribers):
                for entry in created:
                    queue.put_nowait(entry)
            await self._fire(created)
            return created
        finally:
            self._in_flight = False

    async def _fire(self, created: Sequence[NotificationEntry]) -> None:
        title = batch_title(len(created), self.dashboard)
        for channel in self.channels:
            try:
                await channel.send(title, created)
            except NotifierFault as exc:
                logger.warning("Channel %s failed: %s", channel.name, exc)
            except Exception:
                logger.exception("Channel %s raised while sending %r", channel.name, title)

    async def run(self) -> None:
        while True:
            if not self.visible:
                await self._wake.wait()
                self._wake.clear()
                continue
            try:
                await self.tick()
            except Exception:
                logger.exception("Notifier %s/%s tick raised", self.role.value, self.stage)
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._wake.wait(), timeout=self.interval)
            self._wake.clear()

    def start(self) -> "ChangeDetectionNotifier":
        if not self.running:
            self._task = asyncio.get_running_loop().create_task(self.run())
            logger.info("Notifier started for %s/%s every %ss", self.role.value, self.stage, self.interval)
        return self

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None
        logger.info("Notifier stopped for %s/%s", self.role.value, self.stage)

    def set_visible(self, visible: bool) -> None:
        """Hidden notifiers stop polling; becoming visible polls right away."""
        self.visible = visible
        self._wake.set()

    def mark_read(self, order_id: str) -> bool:
        for entry in self.entries:
            if entry.order_id == order_id and not entry.read:
                entry.read = True
                self.unread_count = max(0, self.unread_count - 1)
                return True
        return False

    def mark_all_read(self) -> None:
        for entry in self.entries:
            entry.read = True
        self.unread_count = 0

    def clear_all(self) -> None:
        self.entries = []
        self.unread_count = 0

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        with contextlib.suppress(ValueError):
            self._subscribers.remove(queue)

    async def stream(self) -> AsyncIterator[NotificationEntry]:
        queue = self.subscribe()
        try:
            while True:
                yield await queue.get()
        finally:
            self.unsubscribe(queue)


async def start(
    role: Role,
    stage: str,
    fetch_relevant_orders: FetchRelevantOrders,
    interval: float,
    **kwargs,
) -> ChangeDetectionNotifier:
    return ChangeDetectionNotifier(role, stage, fetch_relevant_orders, interval=interval, **kwargs).start()


async def stop(handle: ChangeDetectionNotifier) -> None:
    await handle.stop()


class NotificationCenter:
    """One notifier per (role, stage), created on first use."""

    def __init__(
        self,
        fetch_orders: FetchOrders,
        *,
        interval: float = 15.0,
        max_entries: int = 15,
        channels: Iterable[NotificationChannel] = (),
    ) -> None:
        self.fetch_orders = fetch_orders
        self.interval = interval
        self.max_entries = max_entries
        self.channels = list(channels)
        self._notifiers: Dict[Tuple[Role, str], ChangeDetectionNotifier] = {}
        self._running = False

    def notifier(self, role: Role, stage: str) -> ChangeDetectionNotifier:
        role = Role(role)
        key = (role, stage)
        existing = self._notifiers.get(key)
        if existing is not None:
            return existing
        query = stages.filter_for(role, stage)
        created = ChangeDetectionNotifier(
            role,
            stage,
            lambda: self.fetch_orders(query),
            interval=self.interval,
            channels=self.channels,
            max_entries=self.max_entries,
        )
        self._notifiers[key] = created
        if self._running:
            created.start()
        return created

    def notifiers(self) -> List[ChangeDetectionNotifier]:
        return list(self._notifiers.values())

    async def start(self) -> None:
        self._running = True
        for item in self._notifiers.values():
            item.start()

    async def stop(self) -> None:
        self._running = False
        for item in self._notifiers.values():
            await item.stop()

    def subscribe(self, role: Role, stage: str) -> AsyncIterator[NotificationEntry]:
        return self.notifier(role, stage).stream()
