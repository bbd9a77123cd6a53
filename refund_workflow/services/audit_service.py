"""
Audit service — append-only log of refund request lifecycle actions.

Every transition (creation, auto-rejection, offer, decision, expiry) is
recorded here. Entries are never modified or deleted.
"""
import uuid
from datetime import datetime
from typing import Optional

from refund_workflow.models.audit import AuditAction, AuditEntry
from refund_workflow.models.refund import RefundRequest
from refund_workflow.repository.store import InMemoryStore

# Actor recorded for transitions made by the scheduled sweep.
SYSTEM_ACTOR = "system"


def record_transition(
    store: InMemoryStore,
    request: RefundRequest,
    action: AuditAction,
    actor_id: Optional[str],
    timestamp: datetime,
    currency: str,
    from_status: Optional[str] = None,
) -> AuditEntry:
    """
    Record a lifecycle action for a refund request.

    Args:
        store: Store holding the audit log.
        request: The request as it stands after the action.
        action: What happened.
        actor_id: Learner or admin who acted; None for the system.
        timestamp: When it happened, from the manager's clock.
        currency: Currency of the recorded amount.
        from_status: Status before the action; None on creation.

    Returns:
        The created AuditEntry.
    """
    entry = AuditEntry(
        id=str(uuid.uuid4()),
        timestamp=timestamp,
        refund_request_id=request.id,
        order_id=request.order_id,
        actor_id=actor_id or SYSTEM_ACTOR,
        action=action,
        from_status=from_status,
        to_status=request.status.value,
        reasoning=_build_reasoning(request, action, currency),
        detail=_serialize_request(request),
        amount=request.suggested_refund_amount,
        currency=currency if request.suggested_refund_amount is not None else None,
    )
    store.append_audit(entry)
    return entry


def get_audit_entries(
    store: InMemoryStore,
    order_id: Optional[str] = None,
    refund_request_id: Optional[str] = None,
) -> list[AuditEntry]:
    """Retrieve audit entries in chronological order, optionally filtered."""
    return store.get_audit_log(order_id=order_id, refund_request_id=refund_request_id)


def _build_reasoning(request: RefundRequest, action: AuditAction, currency: str) -> str:
    """Build a human-readable explanation of the action."""
    amount = f"{request.suggested_refund_amount} {currency}"
    if action == "REQUEST_CREATED":
        return (
            f"Refund request created for order {request.order_id}. "
            f"{request.eligibility_type.value} refund suggested: {amount} "
            f"at {request.progress_percentage}% progress, {request.order_age_days} days after payment."
        )
    if action == "REQUEST_AUTO_REJECTED":
        return f"Refund request for order {request.order_id} rejected by policy. {request.admin_notes}"
    if action == "OFFER_ISSUED":
        return (
            f"Refund offer of {amount} issued for order {request.order_id}; "
            f"learner must decide before {request.offer_expires_at.isoformat()}."
        )
    if action == "OFFER_ACCEPTED":
        return f"Learner accepted the refund offer of {amount} for order {request.order_id}."
    if action == "OFFER_REJECTED":
        return f"Learner declined the refund offer of {amount} for order {request.order_id}."
    if action == "REQUEST_REJECTED":
        return f"Refund request for order {request.order_id} rejected by admin. Notes: {request.admin_notes}"
    if action == "REQUEST_CANCELLED":
        return f"Learner cancelled the refund request for order {request.order_id}."
    return (
        f"Refund offer for order {request.order_id} expired at "
        f"{request.offer_expires_at.isoformat()} without a learner decision."
    )


def _serialize_request(request: RefundRequest) -> dict:
    """Snapshot of the fields an auditor needs, as plain strings."""
    return {
        "status": request.status.value,
        "eligibility_type": request.eligibility_type.value if request.eligibility_type else None,
        "policy_suggested_amount": (
            str(request.policy_suggested_amount) if request.policy_suggested_amount is not None else None
        ),
        "suggested_refund_amount": (
            str(request.suggested_refund_amount) if request.suggested_refund_amount is not None else None
        ),
        "progress_percentage": str(request.progress_percentage),
        "order_age_days": request.order_age_days,
        "offer_expires_at": request.offer_expires_at.isoformat() if request.offer_expires_at else None,
        "version": request.version,
    }
