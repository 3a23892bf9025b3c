from __future__ import annotations

ORDER = {
    "customer_id": "CUST-001",
    "customer_name": "Meera Shah",
    "phone_number": "+91-90000-11111",
    "address": "14 MG Road, Bengaluru",
    "items": [
        {"description": "Silk saree", "unit_price_cents": 45000},
        {"description": "Wool blazer", "unit_price_cents": 30000},
    ],
}


def _create_order(client, **overrides) -> dict:
    res = client.post("/orders", json={**ORDER, **overrides})
    assert res.status_code == 201, res.text
    return res.json()


def _transition(client, order_id: str, role: str, to_status: str, **context):
    return client.post(
        f"/workflow/orders/{order_id}/transitions",
        json={"role": role, "to_status": to_status, "context": context},
    )


def test_health(client) -> None:
    res = client.get("/")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_create_and_fetch_order(client) -> None:
    order = _create_order(client, ticket_number="TKT-20250109-001")
    assert order["status"] == "Received"
    assert order["total_amount_cents"] == 75000

    res = client.get(f"/orders/{order['id']}")
    assert res.status_code == 200
    assert res.json()["ticket_number"] == "TKT-20250109-001"

    assert client.get("/orders/" + "0" * 24).status_code == 404
    assert client.post("/orders", json={**ORDER, "items": []}).status_code == 422


def test_transition_error_mapping(client) -> None:
    order = _create_order(client)

    res = _transition(client, order["id"], "frontdesk", "Ready for Pickup")
    assert res.status_code == 422
    assert res.json()["detail"]["reason"] == "no-delivery-person"

    res = _transition(client, order["id"], "drycleaner", "Ready for Pickup", delivery_actor_id="D1")
    assert res.status_code == 403

    res = _transition(client, order["id"], "frontdesk", "Delivered")
    assert res.status_code == 422
    assert res.json()["detail"]["reason"] == "transition-not-allowed"


def test_assignment_flow_and_stage_views(client) -> None:
    res = client.post("/delivery-actors", json={"id": "D1", "name": "Ravi Kumar"})
    assert res.status_code == 201
    order = _create_order(client)

    stages = client.get("/workflow/roles/frontdesk/stages").json()
    assert {stage["stage"]: stage["count"] for stage in stages}["neworders"] == 1

    res = _transition(client, order["id"], "frontdesk", "Ready for Pickup", delivery_actor_id="D1")
    assert res.status_code == 200, res.text
    assert res.json()["assigned_to_name"] == "Ravi Kumar"

    pickups = client.get("/workflow/roles/delivery/stages/pickup/orders", params={"actor_id": "D1"}).json()
    assert [item["id"] for item in pickups] == [order["id"]]
    assert client.get("/workflow/roles/delivery/stages/bogus/orders").status_code == 422

    history = client.get(f"/orders/{order['id']}/transitions").json()
    assert [(row["from_status"], row["to_status"]) for row in history] == [("Received", "Ready for Pickup")]

    events = client.get("/events/outbox", params={"order_id": order["id"]}).json()
    assert [event["event_type"] for event in events] == ["order.created", "order.transitioned"]


def test_override_endpoint(client) -> None:
    order = _create_order(client)
    res = client.post(
        f"/workflow/orders/{order['id']}/override",
        json={"role": "admin", "to_status": "Cancelled", "reason": "Duplicate ticket"},
    )
    assert res.status_code == 200
    assert res.json()["overridden_by"] == "Admin"

    res = client.post(
        f"/workflow/orders/{order['id']}/override",
        json={"role": "operations", "to_status": "Refund", "reason": "no"},
    )
    assert res.status_code == 403

    stats = client.get("/workflow/stats").json()
    assert stats["Cancelled"] == 1
    assert stats["total"] == 1


def test_patch_cannot_set_rack(client) -> None:
    order = _create_order(client)
    assert client.patch(f"/orders/{order['id']}", json={"rack_number": "C7"}).status_code == 422
    res = client.patch(f"/orders/{order['id']}", json={"notes": "Starch collars"})
    assert res.status_code == 200
    assert res.json()["rack_number"] is None
    assert res.json()["notes"] == "Starch collars"


def test_scan_resolves_ticket(client) -> None:
    order = _create_order(client, ticket_number="TKT-20250109-004")
    res = client.post("/scan", json={"raw": "TKT-20250109-004"})
    assert res.status_code == 200
    assert res.json()["order"]["id"] == order["id"]
    assert client.post("/scan", json={"raw": "GT-0000-000"}).status_code == 404


def test_notification_feed(client) -> None:
    first = client.post("/notifications/frontdesk/neworders/poll").json()
    assert first["unread_count"] == 0

    order = _create_order(client)
    feed = client.post("/notifications/frontdesk/neworders/poll").json()
    assert feed["unread_count"] == 1
    assert feed["entries"][0]["order_id"] == order["id"]

    feed = client.post(f"/notifications/frontdesk/neworders/read/{order['id']}").json()
    assert feed["unread_count"] == 0
    assert feed["entries"][0]["read"] is True

    feed = client.put("/notifications/frontdesk/neworders/visibility", json={"visible": False}).json()
    assert feed["visible"] is False

    assert client.delete("/notifications/frontdesk/neworders").json()["entries"] == []
    assert client.get("/notifications/frontdesk/nope").status_code == 422
