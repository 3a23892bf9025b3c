from __future__ import annotations

from types import SimpleNamespace

from laundryflow.models import OrderStatus, Role
from laundryflow.workflow import registry


def test_main_line_and_branches() -> None:
    assert registry.edges_from(OrderStatus.received) == [OrderStatus.ready_for_pickup]
    assert registry.edges_from(OrderStatus.sorting) == [OrderStatus.spotting, OrderStatus.returned]
    assert registry.edges_from(OrderStatus.quality_check) == [OrderStatus.packing, OrderStatus.spotting]
    assert registry.edges_from(OrderStatus.returned) == [OrderStatus.out_for_delivery]
    assert registry.edges_from(OrderStatus.out_for_delivery) == [OrderStatus.delivered]


def test_terminal_statuses_have_no_exits() -> None:
    for status in (OrderStatus.delivered, OrderStatus.refund, OrderStatus.cancelled):
        assert registry.is_terminal(status)
        assert registry.edges_from(status) == []
    assert not registry.is_terminal(OrderStatus.packing)


def test_every_edge_targets_a_registry_status() -> None:
    for edge in registry.EDGES:
        assert edge.target in registry.edges_from(edge.source)
        assert registry.PRIVILEGED_ROLES <= edge.roles


def test_ready_for_pickup_is_split_by_rack_presence() -> None:
    unracked = SimpleNamespace(rack_number=None)
    racked = SimpleNamespace(rack_number="D3")

    pickup = registry.find_edge(OrderStatus.ready_for_pickup, OrderStatus.received_in_workshop, unracked)
    assert pickup is not None and pickup.action == "confirm_pickup"
    assert registry.find_edge(OrderStatus.ready_for_pickup, OrderStatus.received_in_workshop, racked) is None

    dispatch = registry.find_edge(OrderStatus.ready_for_pickup, OrderStatus.out_for_delivery, racked)
    assert dispatch is not None and dispatch.permits(Role.linentracker)
    assert registry.find_edge(OrderStatus.ready_for_pickup, OrderStatus.out_for_delivery, unracked) is None


def test_edges_for_role() -> None:
    backoffice = {(edge.source, edge.target) for edge in registry.edges_for_role(Role.backoffice)}
    assert backoffice == {
        (OrderStatus.received_in_workshop, OrderStatus.tag_printed),
        (OrderStatus.tag_printed, OrderStatus.ready_for_processing),
    }
    assert len(registry.edges_for_role(Role.admin)) == len(registry.EDGES)
