"""Audit endpoints — GET /api/v1/audit"""
from datetime import datetime, timezone
from typing import Optional
from fastapi import APIRouter, Depends, Request
from refund_workflow.services.audit_service import get_audit_entries
from refund_workflow.services.refund_lifecycle import lifecycle
from refund_workflow.security.auth import require_admin_key, require_api_key

router = APIRouter(prefix="/api/v1/audit", tags=["audit"])


def _envelope(data, request: Request) -> dict:
    return {
        "data": data,
        "meta": {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": getattr(request.state, "request_id", "unknown"),
        },
    }


@router.get("")
async def get_audit(
    request: Request,
    order_id: Optional[str] = None,
    refund_request_id: Optional[str] = None,
    _: str = Depends(require_api_key),
    __: str = Depends(require_admin_key),
) -> dict:
    """Retrieve audit log entries, optionally filtered by order_id or refund_request_id."""
    entries = get_audit_entries(lifecycle.store, order_id=order_id, refund_request_id=refund_request_id)
    return _envelope([e.model_dump(mode="json") for e in entries], request)
