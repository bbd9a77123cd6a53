"""
Refund request lifecycle — the only code allowed to change a request's status.

    (none)   --create (eligible)-----> PENDING      order → REFUND_PENDING
    (none)   --create (ineligible)---> REJECTED     auto, admin_notes = policy message
    PENDING  --issue_offer-----------> APPROVED     offer_expires_at = now + offer window
    PENDING  --reject_request--------> REJECTED     order → PAID
    PENDING  --cancel_request--------> CANCELLED    order → PAID
    APPROVED --accept_offer----------> COMPLETED    order → REFUNDED / PARTIALLY_REFUNDED
    APPROVED --reject_offer----------> REJECTED     order → PAID
    APPROVED --expiry----------------> EXPIRED      order → PAID

Flow of every operation: lock → validate → write request → write order →
audit → notify. All validation happens before the first write.

Transitions of one request run under a per-request lock and are written with
an optimistic version check; creation runs under a per-order lock on top of
the store's atomic insert.
"""
import logging
import threading
import uuid
from datetime import timedelta
from decimal import Decimal
from typing import Optional

from refund_workflow.clock import SystemClock, days_between
from refund_workflow.config import load_policy
from refund_workflow.engine.eligibility import RefundPolicy, DEFAULT_POLICY, clamp_progress, evaluate
from refund_workflow.engine.money import amounts_equal, refund_ceiling
from refund_workflow.errors import NotEligibleOrder, OfferExpired
from refund_workflow.models.order import Order, PaymentStatus
from refund_workflow.models.refund import (
    CreateOutcome,
    EligibilityResult,
    RefundReasonType,
    RefundRequest,
    RefundStatus,
    SweepResult,
)
from refund_workflow.repository.store import InMemoryStore, store
from refund_workflow.services.audit_service import record_transition
from refund_workflow.services.notifications import LoggingNotifier
from refund_workflow.validators.refund_validator import (
    offer_has_expired,
    validate_no_active_request,
    validate_offer_amount,
    validate_offer_open,
    validate_order_exists,
    validate_order_owner,
    validate_order_refundable,
    validate_reason,
    validate_request_exists,
    validate_request_owner,
    validate_transition,
)

logger = logging.getLogger(__name__)


class _StripedLocks:
    """
    Fixed pool of mutexes; a key always maps to the same one.

    Memory stays bounded however many ids callers send. Unrelated keys may
    share a stripe, so a holder must never take a second lock from the same pool.
    """

    def __init__(self, stripes: int = 64):
        self._locks = tuple(threading.Lock() for _ in range(stripes))

    def __len__(self) -> int:
        return len(self._locks)

    def get(self, key: str) -> threading.Lock:
        return self._locks[hash(key) % len(self._locks)]


class RefundLifecycleManager:

    def __init__(
        self,
        store: InMemoryStore,
        clock=None,
        policy: Optional[RefundPolicy] = None,
        notifier=None,
    ):
        self.store = store
        self.clock = clock or SystemClock()
        self.policy = policy or DEFAULT_POLICY
        self.notifier = notifier or LoggingNotifier()
        self._request_locks = _StripedLocks()
        self._order_locks = _StripedLocks()

    # ── Read-only preview ──────────────────────────────────────────────────

    def get_eligibility(self, order_id: str, learner_id: Optional[str] = None) -> EligibilityResult:
        """
        Preview the policy verdict for an order without creating a request.

        An order that cannot be refunded at all (wrong payment status, no
        payment time) yields an ineligible result carrying the explanation.

        Raises:
            OrderNotFound: If the order does not exist.
            NotRequestOwner: If `learner_id` is given and does not own the order.
        """
        order = validate_order_exists(self.store, order_id)
        validate_order_owner(order, learner_id)
        progress = clamp_progress(self.store.get_progress(order.user_id, order.course_id))

        try:
            validate_order_refundable(order)
        except NotEligibleOrder as exc:
            return EligibilityResult(eligible=False, message=exc.message, progress_percentage=progress)

        order_age_days = days_between(order.paid_at, self.clock.now())
        return evaluate(order_age_days, progress, order.final_price, self.policy)

    # ── Learner submission ─────────────────────────────────────────────────

    def create_request(
        self,
        order_id: str,
        reason: str,
        reason_type: RefundReasonType = RefundReasonType.OTHER,
        learner_id: Optional[str] = None,
    ) -> CreateOutcome:
        """
        Submit a refund request for an order.

        The policy runs synchronously on a snapshot of the learner's progress
        and the order age. An ineligible order still produces a request, stored
        directly as REJECTED with the policy's explanation; that outcome is
        returned, not raised.

        Raises:
            InvalidReason: If the reason length is outside the policy bounds.
            OrderNotFound: If the order does not exist.
            NotRequestOwner: If `learner_id` does not own the order.
            DuplicateRequest: If the order already has a PENDING or APPROVED request.
            NotEligibleOrder: If the order is not PAID or REFUND_FAILED.
        """
        text = validate_reason(reason, self.policy)

        with self._order_locks.get(order_id):
            order = validate_order_exists(self.store, order_id)
            validate_order_owner(order, learner_id)
            validate_no_active_request(self.store, order_id)
            validate_order_refundable(order)

            now = self.clock.now()
            progress = clamp_progress(self.store.get_progress(order.user_id, order.course_id))
            order_age_days = days_between(order.paid_at, now)
            verdict = evaluate(order_age_days, progress, order.final_price, self.policy)

            fields = dict(
                id=f"RR-{uuid.uuid4().hex[:12].upper()}",
                order_id=order.id,
                learner_id=order.user_id,
                reason=text,
                reason_type=reason_type,
                progress_percentage=progress,
                order_age_days=order_age_days,
                created_at=now,
                updated_at=now,
            )

            if not verdict.eligible:
                request = self.store.insert_request(
                    RefundRequest(
                        status=RefundStatus.REJECTED,
                        admin_notes=verdict.message,
                        resolved_at=now,
                        **fields,
                    )
                )
                record_transition(
                    self.store, request, "REQUEST_AUTO_REJECTED", order.user_id, now, self.policy.currency
                )
                logger.info("Refund request %s for order %s auto-rejected: %s", request.id, order.id, verdict.message)
                self._notify("REFUND_AUTO_REJECTED", request, order)
                return CreateOutcome(outcome="AUTO_REJECTED", request=request, message=verdict.message)

            request = self.store.insert_request(
                RefundRequest(
                    status=RefundStatus.PENDING,
                    eligibility_type=verdict.type,
                    policy_suggested_amount=verdict.suggested_amount,
                    suggested_refund_amount=verdict.suggested_amount,
                    **fields,
                )
            )
            order = self.store.set_order_status(order.id, PaymentStatus.REFUND_PENDING)
            record_transition(self.store, request, "REQUEST_CREATED", order.user_id, now, self.policy.currency)

        logger.info(
            "Refund request %s created for order %s: %s %s",
            request.id, order.id, verdict.type.value, verdict.suggested_amount,
        )
        self._notify("REFUND_REQUESTED", request, order)
        return CreateOutcome(outcome="PENDING", request=request, message=verdict.message)

    # ── Admin actions ──────────────────────────────────────────────────────

    def issue_offer(
        self,
        request_id: str,
        amount: Decimal,
        notes: Optional[str] = None,
        admin_id: Optional[str] = None,
    ) -> RefundRequest:
        """
        Approve a PENDING request with a counter-offer the learner must accept.

        The offer opens the decision window even when `amount` equals the
        policy's suggestion: no APPROVED request completes without the learner.

        Raises:
            RefundRequestNotFound: If the request does not exist.
            InvalidState: If the request is not PENDING.
            InvalidAmount: If `amount` is outside [0, order final price].
        """
        with self._request_locks.get(request_id):
            request = validate_request_exists(self.store, request_id)
            validate_transition(request, {RefundStatus.PENDING}, "issue an offer on")
            order = validate_order_exists(self.store, request.order_id)
            offered = validate_offer_amount(amount, order, self.policy)

            now = self.clock.now()
            updated = self._apply(request, {
                "status": RefundStatus.APPROVED,
                "suggested_refund_amount": offered,
                "admin_notes": notes,
                "offer_expires_at": now + timedelta(hours=self.policy.offer_window_hours),
                "processed_by": admin_id,
                "processed_at": now,
                "updated_at": now,
            })
            record_transition(
                self.store, updated, "OFFER_ISSUED", admin_id, now, self.policy.currency,
                from_status=request.status.value,
            )

        logger.info(
            "Refund offer %s %s issued on request %s (expires %s)",
            offered, self.policy.currency, updated.id, updated.offer_expires_at.isoformat(),
        )
        self._notify("REFUND_OFFER_ISSUED", updated, order)
        return updated

    def reject_request(
        self,
        request_id: str,
        notes: Optional[str] = None,
        admin_id: Optional[str] = None,
    ) -> RefundRequest:
        """
        Reject a PENDING request outright; the order goes back to PAID.

        Raises:
            RefundRequestNotFound: If the request does not exist.
            InvalidState: If the request is not PENDING.
        """
        with self._request_locks.get(request_id):
            request = validate_request_exists(self.store, request_id)
            validate_transition(request, {RefundStatus.PENDING}, "reject")

            now = self.clock.now()
            updated = self._apply(request, {
                "status": RefundStatus.REJECTED,
                "admin_notes": notes or "Rejected by admin",
                "processed_by": admin_id,
                "processed_at": now,
                "resolved_at": now,
                "updated_at": now,
            })
            order = self.store.set_order_status(updated.order_id, PaymentStatus.PAID)
            record_transition(
                self.store, updated, "REQUEST_REJECTED", admin_id, now, self.policy.currency,
                from_status=request.status.value,
            )

        logger.info("Refund request %s rejected by admin %s", updated.id, admin_id)
        self._notify("REFUND_REJECTED", updated, order)
        return updated

    # ── Learner decisions ──────────────────────────────────────────────────

    def accept_offer(self, request_id: str, learner_id: Optional[str] = None) -> RefundRequest:
        """
        Accept an open offer. The order becomes REFUNDED when the offer equals
        the final price rounded down to the minor unit, PARTIALLY_REFUNDED
        otherwise. The learner's enrollment is revoked.

        Raises:
            RefundRequestNotFound, NotRequestOwner, InvalidState,
            OfferExpired: If the deadline has passed. The request is moved to
                EXPIRED before the error is raised.
        """
        return self._decide_offer(request_id, learner_id, accept=True)

    def reject_offer(self, request_id: str, learner_id: Optional[str] = None) -> RefundRequest:
        """Decline an open offer; the order goes back to PAID. Fails like accept_offer."""
        return self._decide_offer(request_id, learner_id, accept=False)

    def cancel_request(self, request_id: str, learner_id: Optional[str] = None) -> RefundRequest:
        """
        Withdraw a PENDING request; the order goes back to PAID.

        Raises:
            RefundRequestNotFound, NotRequestOwner,
            InvalidState: If the request is not PENDING.
        """
        with self._request_locks.get(request_id):
            request = validate_request_exists(self.store, request_id)
            validate_request_owner(request, learner_id)
            validate_transition(request, {RefundStatus.PENDING}, "cancel")

            now = self.clock.now()
            updated = self._apply(request, {
                "status": RefundStatus.CANCELLED,
                "resolved_at": now,
                "updated_at": now,
            })
            order = self.store.set_order_status(updated.order_id, PaymentStatus.PAID)
            record_transition(
                self.store, updated, "REQUEST_CANCELLED", updated.learner_id, now, self.policy.currency,
                from_status=request.status.value,
            )

        logger.info("Refund request %s cancelled by learner", updated.id)
        self._notify("REFUND_CANCELLED", updated, order)
        return updated

    # ── Maintenance ────────────────────────────────────────────────────────

    def sweep_expired_offers(self, now=None) -> SweepResult:
        """
        Expire every APPROVED request whose deadline is at or before `now`.

        Safe to run repeatedly and alongside learner actions: each candidate is
        re-read under its lock and skipped unless it is still an expired offer.
        """
        now = now or self.clock.now()
        expired_ids = []
        for candidate in self.store.find_expired_offers(now):
            with self._request_locks.get(candidate.id):
                current = self.store.get_request(candidate.id)
                if current is None or current.status != RefundStatus.APPROVED:
                    continue
                if not offer_has_expired(current, now):
                    continue
                self._expire(current, now)
            expired_ids.append(candidate.id)

        if expired_ids:
            logger.info("Expired %d refund offer(s)", len(expired_ids))
        return SweepResult(swept_at=now, expired_count=len(expired_ids), expired_request_ids=expired_ids)

    # ── Internals ──────────────────────────────────────────────────────────

    def _decide_offer(self, request_id: str, learner_id: Optional[str], accept: bool) -> RefundRequest:
        action = "accept the offer on" if accept else "reject the offer on"
        with self._request_locks.get(request_id):
            request = validate_request_exists(self.store, request_id)
            validate_request_owner(request, learner_id)

            now = self.clock.now()
            if request.status == RefundStatus.EXPIRED:
                raise OfferExpired(
                    f"The refund offer for request {request.id} has expired.",
                    details={"offer_expires_at": request.offer_expires_at.isoformat()},
                )
            if request.status == RefundStatus.APPROVED and offer_has_expired(request, now):
                self._expire(request, now)
                validate_offer_open(request, now)
            validate_transition(request, {RefundStatus.APPROVED}, action)

            order = validate_order_exists(self.store, request.order_id)
            if accept:
                updated = self._apply(request, {
                    "status": RefundStatus.COMPLETED,
                    "resolved_at": now,
                    "updated_at": now,
                })
                decimals = self.policy.currency_decimals
                full = amounts_equal(
                    updated.suggested_refund_amount, refund_ceiling(order.final_price, decimals), decimals
                )
                order = self.store.set_order_status(
                    order.id, PaymentStatus.REFUNDED if full else PaymentStatus.PARTIALLY_REFUNDED
                )
                self.store.revoke_enrollment(order.user_id, order.course_id)
            else:
                updated = self._apply(request, {
                    "status": RefundStatus.REJECTED,
                    "resolved_at": now,
                    "updated_at": now,
                })
                order = self.store.set_order_status(order.id, PaymentStatus.PAID)

            audit_action = "OFFER_ACCEPTED" if accept else "OFFER_REJECTED"
            record_transition(
                self.store, updated, audit_action, updated.learner_id, now, self.policy.currency,
                from_status=request.status.value,
            )

        logger.info(
            "Refund offer on request %s %s by learner; order %s is %s",
            updated.id, "accepted" if accept else "rejected", order.id, order.payment_status.value,
        )
        self._notify("REFUND_COMPLETED" if accept else "REFUND_OFFER_REJECTED", updated, order)
        return updated

    def _expire(self, request: RefundRequest, now) -> RefundRequest:
        """Move an APPROVED request past its deadline to EXPIRED. Caller holds the request lock."""
        updated = self._apply(request, {
            "status": RefundStatus.EXPIRED,
            "resolved_at": now,
            "updated_at": now,
        })
        order = self.store.set_order_status(updated.order_id, PaymentStatus.PAID)
        record_transition(
            self.store, updated, "OFFER_EXPIRED", None, now, self.policy.currency,
            from_status=request.status.value,
        )
        logger.info("Refund offer on request %s expired; order %s reverted to PAID", updated.id, order.id)
        self._notify("REFUND_OFFER_EXPIRED", updated, order)
        return updated

    def _apply(self, request: RefundRequest, fields: dict) -> RefundRequest:
        return self.store.update_request(request.id, fields, expected_version=request.version)

    def _notify(self, event: str, request: RefundRequest, order: Optional[Order]) -> None:
        # The transition is already committed; a delivery failure must not undo it.
        try:
            self.notifier.refund_event(event, request, order)
        except Exception:
            logger.exception("Failed to deliver refund event %s for request %s", event, request.id)


# Global singleton used by the HTTP layer
lifecycle = RefundLifecycleManager(store=store, policy=load_policy())
