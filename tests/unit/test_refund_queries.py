"""Unit tests for refund_workflow/services/refund_queries.py."""
import pytest
from datetime import date, timedelta
from decimal import Decimal
from refund_workflow.errors import NotRequestOwner, OrderNotFound, RefundRequestNotFound
from refund_workflow.models.refund import RefundStatus
from refund_workflow.repository.store import store
from refund_workflow.services.refund_queries import (
    get_latest_for_order,
    get_request_for_actor,
    list_all_requests,
    list_learner_requests,
)
from tests.helpers import VALID_REASON


@pytest.fixture
def requests(manager, clock):
    """Four requests an hour apart: two for USR-100, one auto-rejected, one for USR-001."""
    created = []
    for order_id in ["ORD-FULL-001", "ORD-PARTIAL-001", "ORD-HIGH-PROGRESS-001", "ORD-001"]:
        created.append(manager.create_request(order_id, VALID_REASON).request)
        clock.advance(hours=1)
    return created


def test_learner_sees_only_own_requests_newest_first(requests):
    page = list_learner_requests(store, "USR-100")
    assert [r.order_id for r in page.items] == ["ORD-HIGH-PROGRESS-001", "ORD-PARTIAL-001", "ORD-FULL-001"]
    assert page.pagination.total == 3


def test_learner_listing_filters_by_status(requests):
    page = list_learner_requests(store, "USR-100", status=RefundStatus.REJECTED)
    assert [r.order_id for r in page.items] == ["ORD-HIGH-PROGRESS-001"]


def test_learner_listing_paginates(requests):
    page = list_learner_requests(store, "USR-100", page=2, limit=2)
    assert [r.order_id for r in page.items] == ["ORD-FULL-001"]
    assert page.pagination.total_pages == 2


def test_admin_listing_defaults_to_oldest_first(requests):
    page = list_all_requests(store)
    assert [r.id for r in page.items] == [r.id for r in requests]


def test_admin_listing_sorts_by_order_price(requests):
    page = list_all_requests(store, sort="amount_desc")
    # Equal prices keep the later request first
    assert [r.order_id for r in page.items] == [
        "ORD-PARTIAL-001", "ORD-HIGH-PROGRESS-001", "ORD-FULL-001", "ORD-001",
    ]


def test_admin_listing_filters_by_amount_and_status(requests):
    page = list_all_requests(store, status=RefundStatus.PENDING, min_amount=Decimal("1000000"))
    assert {r.order_id for r in page.items} == {"ORD-FULL-001", "ORD-PARTIAL-001"}
    page = list_all_requests(store, max_amount=Decimal("300000"))
    assert [r.order_id for r in page.items] == ["ORD-001"]


def test_admin_listing_filters_by_creation_day(requests, clock):
    today = requests[0].created_at.date()
    assert list_all_requests(store, start_date=today, end_date=today).pagination.total == 4
    assert list_all_requests(store, start_date=today + timedelta(days=1)).pagination.total == 0
    assert list_all_requests(store, end_date=date(2020, 1, 1)).items == []


def test_learner_cannot_read_another_learners_request(requests):
    with pytest.raises(NotRequestOwner):
        get_request_for_actor(store, requests[3].id, "USR-100")
    assert get_request_for_actor(store, requests[3].id, "ADM-001", is_admin=True).order_id == "ORD-001"


def test_unknown_request(requests):
    with pytest.raises(RefundRequestNotFound):
        get_request_for_actor(store, "RR-MISSING", "USR-100")


def test_latest_request_for_order(manager, requests):
    manager.cancel_request(requests[0].id)
    again = manager.create_request("ORD-FULL-001", VALID_REASON).request
    assert get_latest_for_order(store, "ORD-FULL-001", "USR-100").id == again.id


def test_latest_request_for_order_without_any():
    with pytest.raises(RefundRequestNotFound):
        get_latest_for_order(store, "ORD-FREE-001", "USR-100")
    with pytest.raises(OrderNotFound):
        get_latest_for_order(store, "ORD-NONEXISTENT")
    with pytest.raises(NotRequestOwner):
        get_latest_for_order(store, "ORD-001", "USR-100")
