"""
Regression tests — marked with @pytest.mark.regression.
These must never break.
"""
import threading

import pytest
from datetime import timedelta
from decimal import Decimal
from refund_workflow.engine.eligibility import evaluate
from refund_workflow.errors import DuplicateRequest, InvalidState, NotEligibleOrder, OfferExpired
from refund_workflow.models.order import PaymentStatus
from refund_workflow.models.refund import ACTIVE_STATUSES, EligibilityType, RefundStatus
from refund_workflow.repository.store import store
from tests.helpers import VALID_REASON


pytestmark = pytest.mark.regression


def test_scenario_a_fresh_order_gets_full_refund_suggestion(manager):
    outcome = manager.create_request("ORD-FULL-001", VALID_REASON, learner_id="USR-100")
    assert outcome.outcome == "PENDING"
    assert outcome.request.status == RefundStatus.PENDING
    assert outcome.request.eligibility_type == EligibilityType.FULL
    assert outcome.request.suggested_refund_amount == Decimal("1000000")
    assert store.get_order("ORD-FULL-001").payment_status == PaymentStatus.REFUND_PENDING


def test_scenario_b_high_progress_is_rejected_with_explanation(manager):
    outcome = manager.create_request("ORD-HIGH-PROGRESS-001", VALID_REASON, learner_id="USR-100")
    assert outcome.auto_rejected is True
    assert outcome.request.status == RefundStatus.REJECTED
    assert outcome.request.admin_notes
    assert store.get_order("ORD-HIGH-PROGRESS-001").payment_status == PaymentStatus.PAID


def test_scenario_c_offer_expires_after_window(manager, clock):
    request = manager.create_request("ORD-FULL-001", VALID_REASON).request
    offered = manager.issue_offer(request.id, Decimal("600000"), admin_id="ADM-001")
    assert offered.offer_expires_at == clock.now() + timedelta(hours=48)

    clock.advance(hours=49)
    with pytest.raises(OfferExpired):
        manager.accept_offer(offered.id)

    result = manager.sweep_expired_offers()
    assert store.get_request(offered.id).status == RefundStatus.EXPIRED
    assert store.get_order("ORD-FULL-001").payment_status == PaymentStatus.PAID
    # Already expired by the failed accept
    assert result.expired_count == 0


def test_scenario_c_sweep_expires_untouched_offer(manager, clock):
    request = manager.create_request("ORD-FULL-001", VALID_REASON).request
    offered = manager.issue_offer(request.id, Decimal("600000"))
    clock.advance(hours=49)
    result = manager.sweep_expired_offers()
    assert result.expired_request_ids == [offered.id]
    assert store.get_request(offered.id).status == RefundStatus.EXPIRED
    assert store.get_order("ORD-FULL-001").payment_status == PaymentStatus.PAID


def test_scenario_d_concurrent_creates_yield_one_request(manager):
    """Two simultaneous submissions for one order: exactly one succeeds."""
    barrier = threading.Barrier(2)
    results, errors = [], []

    def submit():
        barrier.wait()
        try:
            results.append(manager.create_request("ORD-PARTIAL-001", VALID_REASON))
        except DuplicateRequest as exc:
            errors.append(exc)

    threads = [threading.Thread(target=submit) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 1
    assert len(errors) == 1
    assert results[0].request.status == RefundStatus.PENDING
    assert store.get_order("ORD-PARTIAL-001").payment_status == PaymentStatus.REFUND_PENDING


def test_concurrent_accept_and_reject_settle_once(manager):
    request = manager.create_request("ORD-FULL-001", VALID_REASON).request
    offered = manager.issue_offer(request.id, Decimal("1000000"))
    barrier = threading.Barrier(2)
    outcomes = []

    def decide(action):
        barrier.wait()
        try:
            outcomes.append(getattr(manager, action)(offered.id).status)
        except InvalidState:
            outcomes.append("INVALID_STATE")

    threads = [threading.Thread(target=decide, args=(a,)) for a in ("accept_offer", "reject_offer")]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes.count("INVALID_STATE") == 1
    final = store.get_request(offered.id)
    assert final.status in (RefundStatus.COMPLETED, RefundStatus.REJECTED)
    expected = PaymentStatus.REFUNDED if final.status == RefundStatus.COMPLETED else PaymentStatus.PAID
    assert store.get_order("ORD-FULL-001").payment_status == expected


def test_late_accept_racing_sweep_expires_once(manager, clock, notifier):
    request = manager.create_request("ORD-FULL-001", VALID_REASON).request
    offered = manager.issue_offer(request.id, Decimal("600000"))
    clock.advance(hours=48)
    barrier = threading.Barrier(2)
    outcomes, sweeps = [], []

    def accept():
        barrier.wait()
        try:
            outcomes.append(manager.accept_offer(offered.id).status)
        except (OfferExpired, InvalidState) as exc:
            outcomes.append(type(exc).__name__)

    def sweep():
        barrier.wait()
        sweeps.append(manager.sweep_expired_offers())

    threads = [threading.Thread(target=accept), threading.Thread(target=sweep)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert outcomes == ["OfferExpired"]
    assert sweeps[0].expired_count in (0, 1)
    assert store.get_request(offered.id).status == RefundStatus.EXPIRED
    assert store.get_order("ORD-FULL-001").payment_status == PaymentStatus.PAID
    entries = store.get_audit_log(refund_request_id=offered.id)
    assert [e.action for e in entries] == ["REQUEST_CREATED", "OFFER_ISSUED", "OFFER_EXPIRED"]
    assert [event for event, _, _ in notifier.events].count("REFUND_OFFER_EXPIRED") == 1


def test_sweep_is_idempotent(manager, clock):
    for order_id in ["ORD-FULL-001", "ORD-PARTIAL-001", "ORD-NO-ENROLLMENT-001"]:
        request = manager.create_request(order_id, VALID_REASON).request
        manager.issue_offer(request.id, Decimal("1000"))
    clock.advance(hours=48)

    first = manager.sweep_expired_offers()
    snapshot = {r.id: (r.status, r.version) for r in store.list_requests()}
    audit_count = len(store.get_audit_log())
    second = manager.sweep_expired_offers()

    assert first.expired_count == 3
    assert second.expired_count == 0
    assert {r.id: (r.status, r.version) for r in store.list_requests()} == snapshot
    assert len(store.get_audit_log()) == audit_count


def test_at_most_one_active_request_per_order(manager, clock):
    """Drive every scenario order through repeated create/resolve cycles."""
    for cycle in range(3):
        for order in store.list_orders():
            if order.user_id != "USR-100":
                continue
            try:
                outcome = manager.create_request(order.id, VALID_REASON)
            except (DuplicateRequest, NotEligibleOrder):
                continue
            if outcome.request.is_active and cycle % 2 == 0:
                manager.cancel_request(outcome.request.id)
        clock.advance(hours=1)

    active = {}
    for request in store.list_requests():
        if request.status in ACTIVE_STATUSES:
            assert request.order_id not in active
            active[request.order_id] = request.id


@pytest.mark.parametrize("age", [0, 3, 10, 30])
@pytest.mark.parametrize("progress", [50, 55, 80, 100])
def test_half_progress_never_eligible(age, progress):
    result = evaluate(age, progress, Decimal("1000000"))
    assert result.eligible is False
    assert result.suggested_amount is None


@pytest.mark.parametrize("price", ["0", "1", "999", "999.5", "199000", "1000000.9", "1500000", "123456789"])
@pytest.mark.parametrize("progress", ["0", "5", "5.01", "12.5", "33.33", "49.99"])
@pytest.mark.parametrize("age", [0, 7, 8, 30])
def test_suggested_amount_within_price(price, progress, age):
    result = evaluate(age, Decimal(progress), Decimal(price))
    assert result.eligible is True
    assert Decimal("0") <= result.suggested_amount <= Decimal(price)


def test_accept_on_pending_changes_nothing(manager):
    request = manager.create_request("ORD-PARTIAL-001", VALID_REASON).request
    audit_before = len(store.get_audit_log())
    with pytest.raises(InvalidState):
        manager.accept_offer(request.id)
    assert store.get_request(request.id) == request
    assert store.get_order("ORD-PARTIAL-001").payment_status == PaymentStatus.REFUND_PENDING
    assert len(store.get_audit_log()) == audit_before


def test_seeded_orders_all_get_a_verdict(manager):
    """Every seeded paid order either gets a request or a policy rejection, never a crash."""
    for order in store.list_orders():
        if order.payment_status not in (PaymentStatus.PAID, PaymentStatus.REFUND_FAILED):
            continue
        outcome = manager.create_request(order.id, VALID_REASON)
        if outcome.auto_rejected:
            assert outcome.request.status == RefundStatus.REJECTED
        else:
            assert outcome.request.suggested_refund_amount <= order.final_price
