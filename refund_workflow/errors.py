"""
Error taxonomy for the refund workflow.

RefundError subclasses are recoverable, user-facing conditions: each carries a
stable code, a human-readable message and the HTTP status the API answers
with. TransientStoreError is the separate family of persistence failures that
callers may retry; business errors are never retried.
"""


class RefundError(Exception):
    """Base class for business rule failures."""

    code = "REFUND_ERROR"
    http_status = 422

    def __init__(self, message: str, details: dict | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class NotEligibleOrder(RefundError):
    code = "NOT_ELIGIBLE_ORDER"
    http_status = 422


class DuplicateRequest(RefundError):
    code = "DUPLICATE_REQUEST"
    http_status = 409


class InvalidReason(RefundError):
    code = "INVALID_REASON"
    http_status = 422


class InvalidState(RefundError):
    code = "INVALID_STATE"
    http_status = 409


class InvalidAmount(RefundError):
    code = "INVALID_AMOUNT"
    http_status = 422


class OfferExpired(RefundError):
    code = "OFFER_EXPIRED"
    http_status = 410


class OrderNotFound(RefundError):
    code = "ORDER_NOT_FOUND"
    http_status = 404


class RefundRequestNotFound(RefundError):
    code = "REFUND_REQUEST_NOT_FOUND"
    http_status = 404


class NotRequestOwner(RefundError):
    code = "FORBIDDEN"
    http_status = 403


class TransientStoreError(Exception):
    """Persistence failure (contention, connectivity). Safe to retry."""

    code = "TRANSIENT_FAILURE"
    http_status = 503


class VersionConflict(TransientStoreError):
    """Raised when an update was computed against a stale version of a record."""

    def __init__(self, record_id: str, expected: int, actual: int):
        self.record_id = record_id
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Refund request {record_id} changed concurrently "
            f"(expected version {expected}, found {actual})"
        )
