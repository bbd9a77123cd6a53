"""Learner refund endpoints — eligibility preview, submission, offer decisions, cancellation."""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from refund_workflow.models.refund import RefundRequestCreate, RefundStatus
from refund_workflow.security.auth import require_api_key, require_user_id
from refund_workflow.services.refund_lifecycle import lifecycle
from refund_workflow.services.refund_queries import (
    get_latest_for_order,
    get_request_for_actor,
    list_learner_requests,
)

router = APIRouter(prefix="/api/v1", tags=["refunds"], dependencies=[Depends(require_api_key)])


def _envelope(data, request: Request, **meta) -> dict:
    return {
        "data": data,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": getattr(request.state, "request_id", "unknown"),
            **meta,
        },
    }


@router.get("/orders/{order_id}/refund-eligibility")
async def get_refund_eligibility(
    order_id: str,
    request: Request,
    user_id: str = Depends(require_user_id),
) -> dict:
    """Preview whether an order can be refunded and the suggested amount, without creating a request."""
    result = lifecycle.get_eligibility(order_id, learner_id=user_id)
    return _envelope(result.model_dump(mode="json"), request)


@router.get("/orders/{order_id}/refund-request")
async def get_order_refund_request(
    order_id: str,
    request: Request,
    user_id: str = Depends(require_user_id),
) -> dict:
    """Most recent refund request for one of the caller's orders."""
    result = get_latest_for_order(lifecycle.store, order_id, learner_id=user_id)
    return _envelope(result.model_dump(mode="json"), request)


@router.post("/refund-requests", status_code=status.HTTP_201_CREATED)
async def create_refund_request(
    body: RefundRequestCreate,
    request: Request,
    user_id: str = Depends(require_user_id),
) -> dict:
    """Submit a refund request.

    An order the policy declines still gets a request, created as REJECTED
    with `outcome` AUTO_REJECTED and the explanation in `message`.
    """
    outcome = lifecycle.create_request(
        body.order_id, body.reason, body.reason_type, learner_id=user_id
    )
    return _envelope(outcome.model_dump(mode="json"), request)


@router.get("/refund-requests")
async def list_my_refund_requests(
    request: Request,
    status_filter: Optional[RefundStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    user_id: str = Depends(require_user_id),
) -> dict:
    """List the caller's refund requests, newest first."""
    result = list_learner_requests(lifecycle.store, user_id, status=status_filter, page=page, limit=limit)
    return _envelope(
        [r.model_dump(mode="json") for r in result.items],
        request,
        pagination=result.pagination.model_dump(),
    )


@router.get("/refund-requests/{request_id}")
async def get_my_refund_request(
    request_id: str,
    request: Request,
    user_id: str = Depends(require_user_id),
) -> dict:
    """Retrieve one of the caller's refund requests."""
    result = get_request_for_actor(lifecycle.store, request_id, user_id)
    return _envelope(result.model_dump(mode="json"), request)


@router.post("/refund-requests/{request_id}/accept-offer")
async def accept_refund_offer(
    request_id: str,
    request: Request,
    user_id: str = Depends(require_user_id),
) -> dict:
    """Accept the admin's refund offer before it expires."""
    result = lifecycle.accept_offer(request_id, learner_id=user_id)
    return _envelope(result.model_dump(mode="json"), request)


@router.post("/refund-requests/{request_id}/reject-offer")
async def reject_refund_offer(
    request_id: str,
    request: Request,
    user_id: str = Depends(require_user_id),
) -> dict:
    """Decline the admin's refund offer; the order stays paid."""
    result = lifecycle.reject_offer(request_id, learner_id=user_id)
    return _envelope(result.model_dump(mode="json"), request)


@router.post("/refund-requests/{request_id}/cancel")
async def cancel_refund_request(
    request_id: str,
    request: Request,
    user_id: str = Depends(require_user_id),
) -> dict:
    """Withdraw a refund request that is still waiting for an admin."""
    result = lifecycle.cancel_request(request_id, learner_id=user_id)
    return _envelope(result.model_dump(mode="json"), request)
