"""
Business rule validation for refund requests.

Validators read from the repository but never write to it — no side effects.
Each rule raises the matching error from refund_workflow.errors, so the
lifecycle manager can run them all before its first write.
"""
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from refund_workflow.engine.eligibility import RefundPolicy
from refund_workflow.engine.money import ZERO, refund_ceiling, to_minor_units
from refund_workflow.errors import (
    DuplicateRequest,
    InvalidAmount,
    InvalidReason,
    InvalidState,
    NotEligibleOrder,
    NotRequestOwner,
    OfferExpired,
    OrderNotFound,
    RefundRequestNotFound,
)
from refund_workflow.models.order import Order, REFUNDABLE_PAYMENT_STATUSES
from refund_workflow.models.refund import RefundRequest, RefundStatus
from refund_workflow.repository.store import InMemoryStore


def validate_reason(reason: str, policy: RefundPolicy) -> str:
    """Rule 1: Reason text must be within the policy's length bounds. Returns it stripped."""
    text = (reason or "").strip()
    if not policy.reason_min_length <= len(text) <= policy.reason_max_length:
        raise InvalidReason(
            f"Reason must be between {policy.reason_min_length} and "
            f"{policy.reason_max_length} characters (got {len(text)})",
            details={
                "length": len(text),
                "min_length": policy.reason_min_length,
                "max_length": policy.reason_max_length,
            },
        )
    return text


def validate_order_exists(store: InMemoryStore, order_id: str) -> Order:
    """Rule 2: Order must exist."""
    order = store.get_order(order_id)
    if order is None:
        raise OrderNotFound(f"Order {order_id} not found")
    return order


def validate_order_owner(order: Order, learner_id: Optional[str]) -> None:
    """Rule 3: A learner may only act on their own orders."""
    if learner_id is not None and order.user_id != learner_id:
        raise NotRequestOwner(f"Order {order.id} does not belong to user {learner_id}")


def validate_no_active_request(store: InMemoryStore, order_id: str) -> None:
    """Rule 4: At most one PENDING or APPROVED request per order."""
    existing = store.find_active_by_order(order_id)
    if existing is not None:
        raise DuplicateRequest(
            f"A refund request is already {existing.status.value} for order {order_id}",
            details={
                "existing_request_id": existing.id,
                "status": existing.status.value,
            },
        )


def validate_order_refundable(order: Order) -> None:
    """Rule 5: Only PAID or REFUND_FAILED orders with a payment time can be refunded."""
    if order.payment_status not in REFUNDABLE_PAYMENT_STATUSES:
        raise NotEligibleOrder(
            f"Order {order.id} cannot be refunded: payment status is {order.payment_status.value}. "
            "Only paid orders can be refunded.",
            details={"payment_status": order.payment_status.value},
        )
    if order.paid_at is None:
        raise NotEligibleOrder(
            f"Order {order.id} cannot be refunded: it has no recorded payment time.",
            details={"payment_status": order.payment_status.value},
        )


def validate_request_exists(store: InMemoryStore, request_id: str) -> RefundRequest:
    request = store.get_request(request_id)
    if request is None:
        raise RefundRequestNotFound(f"Refund request {request_id} not found")
    return request


def validate_request_owner(request: RefundRequest, learner_id: Optional[str]) -> None:
    if learner_id is not None and request.learner_id != learner_id:
        raise NotRequestOwner(f"Refund request {request.id} does not belong to user {learner_id}")


def validate_transition(request: RefundRequest, allowed: Iterable[RefundStatus], action: str) -> None:
    """Rule 6: The attempted action must be legal from the current status."""
    allowed = frozenset(allowed)
    if request.status not in allowed:
        raise InvalidState(
            f"Cannot {action} refund request {request.id}: status is {request.status.value} "
            f"(requires {' or '.join(sorted(s.value for s in allowed))}).",
            details={
                "status": request.status.value,
                "allowed_statuses": sorted(s.value for s in allowed),
            },
        )


def offer_has_expired(request: RefundRequest, now: datetime) -> bool:
    return request.offer_expires_at is not None and now >= request.offer_expires_at


def validate_offer_open(request: RefundRequest, now: datetime) -> None:
    """Rule 7: Learner decisions must arrive strictly before the offer deadline."""
    if offer_has_expired(request, now):
        raise OfferExpired(
            f"The refund offer for request {request.id} expired at "
            f"{request.offer_expires_at.isoformat()}.",
            details={"offer_expires_at": request.offer_expires_at.isoformat()},
        )


def validate_offer_amount(amount, order: Order, policy: RefundPolicy) -> Decimal:
    """
    Rule 8: Offered amount must lie in [0, final price], compared in minor units.

    The amount rounds half-up; the price ceiling rounds down, so an offer can
    never exceed what the learner paid.
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmount(f"Invalid refund amount: {amount!r}") from exc
    if not value.is_finite():
        raise InvalidAmount(f"Invalid refund amount: {amount!r}")

    decimals = policy.currency_decimals
    minor = to_minor_units(value, decimals)
    ceiling = to_minor_units(refund_ceiling(order.final_price, decimals), decimals)
    if minor < to_minor_units(ZERO, decimals) or minor > ceiling:
        raise InvalidAmount(
            f"Refund amount {value} {policy.currency} must be between 0 and the order price "
            f"{order.final_price} {policy.currency}.",
            details={
                "amount": str(value),
                "final_price": str(order.final_price),
            },
        )
    return Decimal(minor).scaleb(-decimals)
