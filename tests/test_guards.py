from __future__ import annotations

from laundryflow.models import OrderStatus, PaymentStatus, Role
from laundryflow.schemas import TransitionContext
from laundryflow.workflow import guards
from laundryflow.workflow.registry import QCOutcome


def _order(make_order, status: OrderStatus, **fields):
    return make_order().model_copy(update={"status": status, **fields})


def test_unverified_items_rejected(make_order) -> None:
    order = _order(make_order, OrderStatus.ready_for_processing)
    result = guards.evaluate(
        Role.operations, order, order.status, OrderStatus.sorting, TransitionContext(verified_items=[0, 1])
    )
    assert not result.ok
    assert result.reason == guards.UNVERIFIED_ITEMS


def test_out_of_range_indices_do_not_count(make_order) -> None:
    order = _order(make_order, OrderStatus.ready_for_processing)
    result = guards.evaluate(
        Role.operations, order, order.status, OrderStatus.sorting, TransitionContext(verified_items=[0, 1, 7])
    )
    assert result.reason == guards.UNVERIFIED_ITEMS


def test_all_items_verified_passes(make_order) -> None:
    order = _order(make_order, OrderStatus.ready_for_processing)
    result = guards.evaluate(
        Role.operations, order, order.status, OrderStatus.sorting, TransitionContext(verified_items=[0, 1, 2])
    )
    assert result.ok
    assert result.edge.action == "start_sorting"


def test_rack_format(make_order) -> None:
    order = _order(make_order, OrderStatus.packing)

    def attempt(rack):
        return guards.evaluate(
            Role.linentracker,
            order,
            order.status,
            OrderStatus.ready_for_pickup,
            TransitionContext(verified_items=[0, 1, 2], rack_number=rack),
        )

    assert attempt("B2").ok
    assert attempt(" d10 ").ok
    assert attempt("B").reason == guards.INVALID_RACK_FORMAT
    assert attempt("2B").reason == guards.INVALID_RACK_FORMAT
    assert attempt("B123").reason == guards.INVALID_RACK_FORMAT
    assert attempt(None).reason == guards.INVALID_RACK_FORMAT


def test_delivery_person_required_and_known(make_order) -> None:
    order = make_order()
    missing = guards.evaluate(Role.frontdesk, order, order.status, OrderStatus.ready_for_pickup, TransitionContext())
    assert missing.reason == guards.NO_DELIVERY_PERSON

    unknown = guards.evaluate(
        Role.frontdesk,
        order,
        order.status,
        OrderStatus.ready_for_pickup,
        TransitionContext(delivery_actor_id="ghost"),
        delivery_actor_ids=["D1", "D2"],
    )
    assert unknown.reason == guards.UNKNOWN_DELIVERY_PERSON

    chosen = guards.evaluate(
        Role.frontdesk,
        order,
        order.status,
        OrderStatus.ready_for_pickup,
        TransitionContext(delivery_actor_id="D1"),
        delivery_actor_ids=["D1", "D2"],
    )
    assert chosen.ok


def test_qc_outcome_branch(make_order) -> None:
    order = _order(make_order, OrderStatus.quality_check)
    verified = [0, 1, 2]

    missing = guards.evaluate(
        Role.drycleaner, order, order.status, OrderStatus.packing, TransitionContext(verified_items=verified)
    )
    assert missing.reason == guards.MISSING_QC_OUTCOME

    mismatch = guards.evaluate(
        Role.drycleaner,
        order,
        order.status,
        OrderStatus.packing,
        TransitionContext(verified_items=verified, qc_outcome=QCOutcome.failed),
    )
    assert mismatch.reason == guards.QC_OUTCOME_MISMATCH

    rework = guards.evaluate(
        Role.drycleaner,
        order,
        order.status,
        OrderStatus.spotting,
        TransitionContext(verified_items=verified, qc_outcome=QCOutcome.failed),
    )
    assert rework.ok


def test_unpaid_delivery_is_a_warning(make_order) -> None:
    order = _order(make_order, OrderStatus.out_for_delivery)
    result = guards.evaluate(
        Role.delivery, order, order.status, OrderStatus.delivered, TransitionContext(verified_items=[0, 1, 2])
    )
    assert result.ok
    assert result.warnings == [guards.PAYMENT_NOT_COLLECTED]

    paid = order.model_copy(update={"payment_status": PaymentStatus.paid})
    result = guards.evaluate(
        Role.delivery, paid, paid.status, OrderStatus.delivered, TransitionContext(verified_items=[0, 1, 2])
    )
    assert result.warnings == []


def test_graph_and_role_checks(make_order) -> None:
    order = make_order()
    assert guards.evaluate(Role.frontdesk, order, order.status, OrderStatus.delivered).reason == (
        guards.TRANSITION_NOT_ALLOWED
    )
    assert guards.evaluate(
        Role.drycleaner, order, order.status, OrderStatus.ready_for_pickup, TransitionContext(delivery_actor_id="D1")
    ).reason == guards.ROLE_NOT_PERMITTED
    assert guards.evaluate(
        Role.manager, order, order.status, OrderStatus.ready_for_pickup, TransitionContext(delivery_actor_id="D1")
    ).ok


def test_order_without_items_is_trivially_verified(make_order) -> None:
    order = _order(make_order, OrderStatus.ready_for_processing, items=[])
    result = guards.evaluate(Role.operations, order, order.status, OrderStatus.sorting, TransitionContext())
    assert result.ok
