"""Admin refund endpoints — review queue, counter-offers, rejection, offer expiry sweep."""
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request
from refund_workflow.models.refund import AdminRejection, OfferCreate, RefundStatus
from refund_workflow.security.auth import require_admin_key, require_api_key, require_user_id
from refund_workflow.services.refund_lifecycle import lifecycle
from refund_workflow.services.refund_queries import SortOrder, get_request_for_actor, list_all_requests

router = APIRouter(
    prefix="/api/v1/admin/refund-requests",
    tags=["admin"],
    dependencies=[Depends(require_api_key), Depends(require_admin_key)],
)


def _envelope(data, request: Request, **meta) -> dict:
    return {
        "data": data,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": getattr(request.state, "request_id", "unknown"),
            **meta,
        },
    }


@router.get("")
async def list_refund_requests(
    request: Request,
    status_filter: Optional[RefundStatus] = Query(None, alias="status"),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    min_amount: Optional[Decimal] = Query(None, ge=0),
    max_amount: Optional[Decimal] = Query(None, ge=0),
    sort: SortOrder = "oldest",
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
) -> dict:
    """List refund requests across all learners. Oldest first by default."""
    result = list_all_requests(
        lifecycle.store,
        status=status_filter,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        max_amount=max_amount,
        sort=sort,
        page=page,
        limit=limit,
    )
    return _envelope(
        [r.model_dump(mode="json") for r in result.items],
        request,
        pagination=result.pagination.model_dump(),
    )


@router.post("/sweep")
async def sweep_expired_offers(request: Request) -> dict:
    """Expire every offer whose decision window has closed. Safe to call repeatedly."""
    result = lifecycle.sweep_expired_offers()
    return _envelope(result.model_dump(mode="json"), request)


@router.get("/{request_id}")
async def get_refund_request(
    request_id: str,
    request: Request,
    admin_id: str = Depends(require_user_id),
) -> dict:
    result = get_request_for_actor(lifecycle.store, request_id, admin_id, is_admin=True)
    return _envelope(result.model_dump(mode="json"), request)


@router.post("/{request_id}/offer")
async def issue_refund_offer(
    request_id: str,
    body: OfferCreate,
    request: Request,
    admin_id: str = Depends(require_user_id),
) -> dict:
    """Approve a pending request with a refund offer the learner has a limited time to accept."""
    result = lifecycle.issue_offer(request_id, body.amount, body.notes, admin_id=admin_id)
    return _envelope(result.model_dump(mode="json"), request)


@router.post("/{request_id}/reject")
async def reject_refund_request(
    request_id: str,
    body: AdminRejection,
    request: Request,
    admin_id: str = Depends(require_user_id),
) -> dict:
    """Reject a pending request; the order stays paid."""
    result = lifecycle.reject_request(request_id, body.notes, admin_id=admin_id)
    return _envelope(result.model_dump(mode="json"), request)
