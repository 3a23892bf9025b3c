from __future__ import annotations

import asyncio
from typing import List

import httpx
import pytest

from laundryflow.errors import NotifierFault, TransportError
from laundryflow.models import OrderStatus, Role
from laundryflow.workflow.notifier import (
    ChangeDetectionNotifier,
    NotificationCenter,
    NotificationEntry,
    WebhookNotificationChannel,
    batch_title,
)


class RecordingChannel:
    name = "recording"

    def __init__(self) -> None:
        self.sent: List[tuple] = []

    async def send(self, title, entries) -> None:
        self.sent.append((title, [entry.order_id for entry in entries]))


class BrokenChannel:
    name = "broken"

    async def send(self, title, entries) -> None:
        raise NotifierFault("push service down")


def _snapshots(make_order, *sets):
    orders = {name: make_order(customer_name=f"Customer {name}") for name in {n for s in sets for n in s}}
    frames = [[orders[name] for name in sorted(names)] for names in sets]
    return orders, iter(frames)


def test_emits_only_on_first_membership_after_seed(make_order) -> None:
    orders, frames = _snapshots(make_order, set(), {"A"}, {"A"}, {"A", "B"})
    channel = RecordingChannel()
    notifier = ChangeDetectionNotifier(Role.frontdesk, "neworders", lambda: next(frames), channels=[channel])

    async def scenario():
        return [await notifier.tick() for _ in range(4)]

    created = asyncio.run(scenario())
    assert [[entry.order_id for entry in batch] for batch in created] == [
        [],
        [orders["A"].id],
        [],
        [orders["B"].id],
    ]
    assert notifier.unread_count == 2
    assert [entry.order_id for entry in notifier.entries] == [orders["B"].id, orders["A"].id]
    assert channel.sent == [
        ("New Order - Front Desk", [orders["A"].id]),
        ("New Order - Front Desk", [orders["B"].id]),
    ]


def test_first_poll_never_notifies(make_order) -> None:
    orders, frames = _snapshots(make_order, {"A", "B"}, {"A", "B"})
    notifier = ChangeDetectionNotifier(Role.operations, "received", lambda: next(frames))

    async def scenario():
        await notifier.tick()
        await notifier.tick()

    asyncio.run(scenario())
    assert notifier.entries == []
    assert notifier.unread_count == 0


def test_reentry_after_leaving_notifies_again(make_order) -> None:
    orders, frames = _snapshots(make_order, set(), {"A"}, set(), {"A"})
    notifier = ChangeDetectionNotifier(Role.drycleaner, "spotting", lambda: next(frames))

    async def scenario():
        for _ in range(4):
            await notifier.tick()

    asyncio.run(scenario())
    assert notifier.unread_count == 2


def test_entries_are_capped_and_read_state_tracked(make_order) -> None:
    seed = [make_order()]
    batch = [make_order() for _ in range(4)]
    frames = iter([seed, seed + batch])
    notifier = ChangeDetectionNotifier(Role.frontdesk, "neworders", lambda: next(frames), max_entries=3)

    asyncio.run(notifier.tick())
    created = asyncio.run(notifier.tick())
    assert len(created) == 4
    assert len(notifier.entries) == 3
    assert notifier.unread_count == 4

    assert notifier.mark_read(notifier.entries[0].order_id)
    assert not notifier.mark_read(notifier.entries[0].order_id)
    assert notifier.unread_count == 3

    notifier.clear_all()
    assert notifier.entries == []
    assert notifier.unread_count == 0


def test_batch_title() -> None:
    assert batch_title(1, "Operations Manager") == "New Order - Operations Manager"
    assert batch_title(3, "Dry Cleaner") == "3 New Orders - Dry Cleaner"


def test_fetch_failure_skips_tick(make_order) -> None:
    order = make_order()
    calls = {"count": 0}

    def flaky():
        calls["count"] += 1
        if calls["count"] == 2:
            raise TransportError("store unreachable")
        return [order] if calls["count"] > 2 else []

    notifier = ChangeDetectionNotifier(Role.frontdesk, "neworders", flaky)

    async def scenario():
        for _ in range(3):
            await notifier.tick()

    asyncio.run(scenario())
    assert notifier.ticks == 2
    assert [entry.order_id for entry in notifier.entries] == [order.id]


def test_channel_fault_does_not_propagate(make_order) -> None:
    orders, frames = _snapshots(make_order, set(), {"A"})
    recorder = RecordingChannel()
    notifier = ChangeDetectionNotifier(
        Role.frontdesk, "neworders", lambda: next(frames), channels=[BrokenChannel(), recorder]
    )

    async def scenario():
        await notifier.tick()
        return await notifier.tick()

    created = asyncio.run(scenario())
    assert len(created) == 1
    assert len(recorder.sent) == 1


def test_in_flight_tick_suppresses_overlap() -> None:
    notifier = ChangeDetectionNotifier(Role.frontdesk, "neworders", lambda: [])
    notifier._in_flight = True
    assert asyncio.run(notifier.tick()) == []
    assert notifier.ticks == 0


def test_unexpected_fetch_error_keeps_loop_running(make_order) -> None:
    order = make_order()
    calls = {"count": 0}

    def flaky():
        calls["count"] += 1
        if calls["count"] == 2:
            raise ConnectionError("network blip")
        return [order] if calls["count"] > 2 else []

    notifier = ChangeDetectionNotifier(Role.frontdesk, "neworders", flaky, interval=0.01)

    async def scenario():
        notifier.start()
        await _wait_until(lambda: calls["count"] >= 4)
        assert notifier.running
        await notifier.stop()

    asyncio.run(scenario())
    assert not notifier.running
    assert [entry.order_id for entry in notifier.entries] == [order.id]


async def _wait_until(predicate, timeout: float = 2.0) -> None:
    async def poll():
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(poll(), timeout=timeout)


def test_polling_pauses_while_hidden() -> None:
    notifier = ChangeDetectionNotifier(Role.frontdesk, "neworders", lambda: [], interval=60)

    async def scenario():
        notifier.start()
        await _wait_until(lambda: notifier.ticks == 1)
        notifier.set_visible(False)
        await asyncio.sleep(0.05)
        assert notifier.ticks == 1
        notifier.set_visible(True)
        await _wait_until(lambda: notifier.ticks == 2, timeout=1.0)
        await notifier.stop()
        assert not notifier.running

    asyncio.run(scenario())


def test_center_fans_out_to_subscribers(store, make_order) -> None:
    center = NotificationCenter(store.fetch_orders, interval=60)

    async def scenario():
        notifier = center.notifier(Role.frontdesk, "neworders")
        assert center.notifier(Role.frontdesk, "neworders") is notifier
        stream = center.subscribe(Role.frontdesk, "neworders")
        await notifier.tick()
        order = make_order()
        pending = asyncio.ensure_future(stream.__anext__())
        await asyncio.sleep(0)
        await notifier.tick()
        entry = await asyncio.wait_for(pending, timeout=1)
        await stream.aclose()
        return order, entry

    order, entry = asyncio.run(scenario())
    assert entry.order_id == order.id
    assert entry.status == OrderStatus.received


def test_webhook_channel_retries_then_faults(monkeypatch, make_order) -> None:
    attempts = {"count": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        attempts["count"] += 1
        return httpx.Response(503)

    transport = httpx.MockTransport(handler)
    real_client = httpx.AsyncClient

    def client_factory(*args, **kwargs):
        kwargs["transport"] = transport
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    channel = WebhookNotificationChannel(url="http://push.invalid/hook", max_attempts=2, backoff=0)
    order = make_order()
    with pytest.raises(NotifierFault):
        asyncio.run(channel.send("New Order - Front Desk", [NotificationEntry.from_order(order)]))
    assert attempts["count"] == 2
