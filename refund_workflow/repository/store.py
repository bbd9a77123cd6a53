"""
In-memory data store with thread-safe operations.

No business logic — only data access primitives. The one exception is the
uniqueness constraint on active refund requests, which is enforced here like
a partial unique index would be in a database.
"""
import threading
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from refund_workflow.errors import DuplicateRequest, VersionConflict
from refund_workflow.models.order import Order, Enrollment, PaymentStatus
from refund_workflow.models.refund import RefundRequest, RefundStatus
from refund_workflow.models.audit import AuditEntry


class InMemoryStore:
    """Thread-safe in-memory store for orders, enrollments, refund requests and audit entries."""

    def __init__(self):
        self._lock = threading.Lock()
        self._orders: dict[str, Order] = {}
        # (user_id, course_id) -> Enrollment
        self._enrollments: dict[tuple[str, str], Enrollment] = {}
        self._requests: dict[str, RefundRequest] = {}
        # order_id -> list of request ids, oldest first
        self._requests_by_order: dict[str, list[str]] = {}
        # order_id -> id of its PENDING/APPROVED request
        self._active_by_order: dict[str, str] = {}
        self._audit_log: list[AuditEntry] = []

    def reset(self) -> None:
        """Drop all data — intended for test isolation and re-seeding."""
        with self._lock:
            self._orders.clear()
            self._enrollments.clear()
            self._requests.clear()
            self._requests_by_order.clear()
            self._active_by_order.clear()
            self._audit_log.clear()

    # ── Orders ──────────────────────────────────────────────────────────────

    def get_order(self, order_id: str) -> Optional[Order]:
        with self._lock:
            return self._orders.get(order_id)

    def list_orders(self) -> list[Order]:
        with self._lock:
            return list(self._orders.values())

    def save_order(self, order: Order) -> None:
        with self._lock:
            self._orders[order.id] = order

    def set_order_status(self, order_id: str, status: PaymentStatus) -> Order:
        with self._lock:
            order = self._orders[order_id]
            updated = order.model_copy(update={"payment_status": status})
            self._orders[order_id] = updated
            return updated

    # ── Enrollments ─────────────────────────────────────────────────────────

    def save_enrollment(self, enrollment: Enrollment) -> None:
        with self._lock:
            self._enrollments[(enrollment.user_id, enrollment.course_id)] = enrollment

    def get_enrollment(self, user_id: str, course_id: str) -> Optional[Enrollment]:
        with self._lock:
            return self._enrollments.get((user_id, course_id))

    def get_progress(self, user_id: str, course_id: str) -> Decimal:
        """Progress percentage for the pair; 0 when the learner is not enrolled."""
        with self._lock:
            enrollment = self._enrollments.get((user_id, course_id))
            return enrollment.progress_percentage if enrollment else Decimal("0")

    def revoke_enrollment(self, user_id: str, course_id: str) -> Optional[Enrollment]:
        with self._lock:
            enrollment = self._enrollments.get((user_id, course_id))
            if enrollment is None:
                return None
            revoked = enrollment.model_copy(update={"active": False})
            self._enrollments[(user_id, course_id)] = revoked
            return revoked

    # ── Refund requests ─────────────────────────────────────────────────────

    def insert_request(self, request: RefundRequest) -> RefundRequest:
        """
        Insert a new refund request.

        Raises:
            DuplicateRequest: If the request is active and the order already
                has an active request. Check and insert happen under one lock.
        """
        with self._lock:
            if request.is_active:
                existing_id = self._active_by_order.get(request.order_id)
                if existing_id is not None:
                    raise DuplicateRequest(
                        f"An active refund request already exists for order {request.order_id}",
                        details={"existing_request_id": existing_id},
                    )
                self._active_by_order[request.order_id] = request.id
            self._requests[request.id] = request
            self._requests_by_order.setdefault(request.order_id, []).append(request.id)
            return request

    def update_request(self, request_id: str, fields: dict[str, Any], expected_version: int) -> RefundRequest:
        """
        Apply `fields` to a request if it is still at `expected_version`.

        The merged record is re-validated, so an update can never store an
        illegal combination of status and offer fields.

        Raises:
            KeyError: If the request does not exist.
            VersionConflict: If another writer updated the request first.
        """
        with self._lock:
            current = self._requests[request_id]
            if current.version != expected_version:
                raise VersionConflict(request_id, expected_version, current.version)
            merged = current.model_dump()
            merged.update(fields)
            merged["version"] = current.version + 1
            updated = RefundRequest.model_validate(merged)
            self._requests[request_id] = updated
            if updated.is_active:
                self._active_by_order[updated.order_id] = updated.id
            elif self._active_by_order.get(updated.order_id) == updated.id:
                del self._active_by_order[updated.order_id]
            return updated

    def get_request(self, request_id: str) -> Optional[RefundRequest]:
        with self._lock:
            return self._requests.get(request_id)

    def find_active_by_order(self, order_id: str) -> Optional[RefundRequest]:
        with self._lock:
            request_id = self._active_by_order.get(order_id)
            return self._requests.get(request_id) if request_id else None

    def find_latest_by_order(self, order_id: str) -> Optional[RefundRequest]:
        with self._lock:
            request_ids = self._requests_by_order.get(order_id, [])
            return self._requests[request_ids[-1]] if request_ids else None

    def find_expired_offers(self, now: datetime) -> list[RefundRequest]:
        """APPROVED requests whose offer deadline is at or before `now`."""
        with self._lock:
            return [
                r for r in self._requests.values()
                if r.status == RefundStatus.APPROVED
                and r.offer_expires_at is not None
                and r.offer_expires_at <= now
            ]

    def list_requests(self) -> list[RefundRequest]:
        with self._lock:
            return list(self._requests.values())

    # ── Audit ────────────────────────────────────────────────────────────────

    def append_audit(self, entry: AuditEntry) -> None:
        """Append-only audit log. No update or delete."""
        with self._lock:
            self._audit_log.append(entry)

    def get_audit_log(
        self,
        order_id: Optional[str] = None,
        refund_request_id: Optional[str] = None,
    ) -> list[AuditEntry]:
        with self._lock:
            entries = list(self._audit_log)

        if order_id:
            entries = [e for e in entries if e.order_id == order_id]
        if refund_request_id:
            entries = [e for e in entries if e.refund_request_id == refund_request_id]
        return entries


# Global singleton, populated by seed_data at startup
store = InMemoryStore()
