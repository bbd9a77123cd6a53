"""Unit tests for refund_workflow/repository/store.py."""
import pytest
from datetime import timedelta
from decimal import Decimal
from pydantic import ValidationError
from refund_workflow.errors import DuplicateRequest, TransientStoreError, VersionConflict
from refund_workflow.models.order import Enrollment, PaymentStatus
from refund_workflow.models.refund import EligibilityType, RefundRequest, RefundStatus
from refund_workflow.repository.store import InMemoryStore
from tests.helpers import NOW


def _request(request_id="RR-1", order_id="ORD-1", **overrides) -> RefundRequest:
    fields = dict(
        id=request_id,
        order_id=order_id,
        learner_id="USR-1",
        reason="The course content does not match the description.",
        status=RefundStatus.PENDING,
        eligibility_type=EligibilityType.FULL,
        policy_suggested_amount=Decimal("100"),
        suggested_refund_amount=Decimal("100"),
        progress_percentage=Decimal("0"),
        order_age_days=1,
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return RefundRequest(**fields)


@pytest.fixture
def fresh():
    return InMemoryStore()


def test_second_active_request_for_order_rejected(fresh):
    fresh.insert_request(_request("RR-1"))
    with pytest.raises(DuplicateRequest) as exc_info:
        fresh.insert_request(_request("RR-2"))
    assert exc_info.value.details["existing_request_id"] == "RR-1"
    assert fresh.get_request("RR-2") is None


def test_inactive_requests_do_not_count_as_duplicates(fresh):
    rejected = _request(
        "RR-1",
        status=RefundStatus.REJECTED,
        eligibility_type=None,
        policy_suggested_amount=None,
        suggested_refund_amount=None,
        resolved_at=NOW,
    )
    fresh.insert_request(rejected)
    fresh.insert_request(_request("RR-2"))
    assert fresh.find_active_by_order("ORD-1").id == "RR-2"
    assert fresh.find_latest_by_order("ORD-1").id == "RR-2"


def test_update_bumps_version_and_releases_active_slot(fresh):
    fresh.insert_request(_request())
    updated = fresh.update_request(
        "RR-1", {"status": RefundStatus.CANCELLED, "resolved_at": NOW}, expected_version=1
    )
    assert updated.version == 2
    assert fresh.find_active_by_order("ORD-1") is None
    fresh.insert_request(_request("RR-2"))


def test_stale_update_raises_version_conflict(fresh):
    fresh.insert_request(_request())
    fresh.update_request("RR-1", {"admin_notes": "first"}, expected_version=1)
    with pytest.raises(VersionConflict) as exc_info:
        fresh.update_request("RR-1", {"admin_notes": "second"}, expected_version=1)
    assert isinstance(exc_info.value, TransientStoreError)
    assert exc_info.value.actual == 2
    assert fresh.get_request("RR-1").admin_notes == "first"


def test_update_cannot_store_illegal_state(fresh):
    fresh.insert_request(_request())
    # APPROVED without an offer deadline
    with pytest.raises(ValidationError):
        fresh.update_request("RR-1", {"status": RefundStatus.APPROVED}, expected_version=1)
    assert fresh.get_request("RR-1").status == RefundStatus.PENDING
    assert fresh.get_request("RR-1").version == 1


def test_find_expired_offers_includes_deadline_instant(fresh):
    deadline = NOW + timedelta(hours=48)
    fresh.insert_request(_request("RR-1", "ORD-1", status=RefundStatus.APPROVED, offer_expires_at=deadline))
    fresh.insert_request(_request(
        "RR-2", "ORD-2", status=RefundStatus.APPROVED, offer_expires_at=deadline + timedelta(seconds=1)
    ))
    fresh.insert_request(_request("RR-3", "ORD-3"))
    assert [r.id for r in fresh.find_expired_offers(deadline)] == ["RR-1"]
    assert fresh.find_expired_offers(deadline - timedelta(seconds=1)) == []


def test_progress_defaults_to_zero_without_enrollment(fresh):
    assert fresh.get_progress("USR-1", "CRS-1") == Decimal("0")
    fresh.save_enrollment(Enrollment(user_id="USR-1", course_id="CRS-1", progress_percentage=Decimal("42")))
    assert fresh.get_progress("USR-1", "CRS-1") == Decimal("42")


def test_revoke_enrollment(fresh):
    assert fresh.revoke_enrollment("USR-1", "CRS-1") is None
    fresh.save_enrollment(Enrollment(user_id="USR-1", course_id="CRS-1", progress_percentage=Decimal("10")))
    revoked = fresh.revoke_enrollment("USR-1", "CRS-1")
    assert revoked.active is False
    assert revoked.progress_percentage == Decimal("10")


def test_set_order_status_returns_updated_order():
    from seed_data import load_seed_data
    target = InMemoryStore()
    load_seed_data(target, now=NOW)
    updated = target.set_order_status("ORD-FULL-001", PaymentStatus.REFUND_PENDING)
    assert updated.payment_status == PaymentStatus.REFUND_PENDING
    assert target.get_order("ORD-FULL-001") == updated


def test_reset_clears_everything(fresh):
    fresh.insert_request(_request())
    fresh.reset()
    assert fresh.list_requests() == []
    assert fresh.find_active_by_order("ORD-1") is None
    fresh.insert_request(_request())
