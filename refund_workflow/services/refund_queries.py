"""
Read-side queries over refund requests: learner and admin listings,
single-request lookups with authorization. Nothing here writes.
"""
import math
from datetime import date
from decimal import Decimal
from typing import Literal, Optional

from pydantic import BaseModel

from refund_workflow.errors import RefundRequestNotFound
from refund_workflow.models.refund import RefundRequest, RefundStatus
from refund_workflow.repository.store import InMemoryStore
from refund_workflow.validators.refund_validator import (
    validate_order_exists,
    validate_order_owner,
    validate_request_exists,
    validate_request_owner,
)

SortOrder = Literal["oldest", "newest", "amount_asc", "amount_desc"]


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class RefundRequestPage(BaseModel):
    items: list[RefundRequest]
    pagination: Pagination


def list_learner_requests(
    store: InMemoryStore,
    learner_id: str,
    status: Optional[RefundStatus] = None,
    page: int = 1,
    limit: int = 10,
) -> RefundRequestPage:
    """A learner's own requests, newest first."""
    requests = [r for r in store.list_requests() if r.learner_id == learner_id]
    if status is not None:
        requests = [r for r in requests if r.status == status]
    requests.sort(key=lambda r: r.created_at, reverse=True)
    return _paginate(requests, page, limit)


def list_all_requests(
    store: InMemoryStore,
    status: Optional[RefundStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    sort: SortOrder = "oldest",
    page: int = 1,
    limit: int = 10,
) -> RefundRequestPage:
    """
    Admin listing across all learners.

    Args:
        status: Only requests in this status.
        start_date: Created on or after this day.
        end_date: Created on or before this day (whole day included).
        min_amount: Order final price at least this much.
        max_amount: Order final price at most this much.
        sort: oldest (default), newest, amount_asc or amount_desc by order price.
    """
    prices = {order.id: order.final_price for order in store.list_orders()}
    requests = store.list_requests()

    if status is not None:
        requests = [r for r in requests if r.status == status]
    if start_date is not None:
        requests = [r for r in requests if r.created_at.date() >= start_date]
    if end_date is not None:
        requests = [r for r in requests if r.created_at.date() <= end_date]
    if min_amount is not None:
        requests = [r for r in requests if prices.get(r.order_id, Decimal("0")) >= min_amount]
    if max_amount is not None:
        requests = [r for r in requests if prices.get(r.order_id, Decimal("0")) <= max_amount]

    if sort in ("amount_asc", "amount_desc"):
        requests.sort(
            key=lambda r: (prices.get(r.order_id, Decimal("0")), r.created_at),
            reverse=sort == "amount_desc",
        )
    else:
        requests.sort(key=lambda r: r.created_at, reverse=sort == "newest")
    return _paginate(requests, page, limit)


def get_request_for_actor(
    store: InMemoryStore,
    request_id: str,
    actor_id: str,
    is_admin: bool = False,
) -> RefundRequest:
    """Fetch a request visible to its learner or to any admin."""
    request = validate_request_exists(store, request_id)
    if not is_admin:
        validate_request_owner(request, actor_id)
    return request


def get_latest_for_order(
    store: InMemoryStore,
    order_id: str,
    learner_id: Optional[str] = None,
) -> RefundRequest:
    """Most recent request of any status for an order."""
    order = validate_order_exists(store, order_id)
    validate_order_owner(order, learner_id)
    request = store.find_latest_by_order(order_id)
    if request is None:
        raise RefundRequestNotFound(f"Order {order_id} has no refund request")
    return request


def _paginate(requests: list[RefundRequest], page: int, limit: int) -> RefundRequestPage:
    page = max(page, 1)
    limit = max(limit, 1)
    start = (page - 1) * limit
    return RefundRequestPage(
        items=requests[start:start + limit],
        pagination=Pagination(
            page=page,
            limit=limit,
            total=len(requests),
            total_pages=math.ceil(len(requests) / limit),
        ),
    )
