from .order import Order, Enrollment, PaymentStatus, REFUNDABLE_PAYMENT_STATUSES
from .refund import (
    RefundRequest, RefundStatus, RefundReasonType, EligibilityType, EligibilityResult,
    RefundRequestCreate, OfferCreate, AdminRejection, CreateOutcome, SweepResult,
    ACTIVE_STATUSES, TERMINAL_STATUSES,
)
from .audit import AuditEntry

__all__ = [
    "Order", "Enrollment", "PaymentStatus", "REFUNDABLE_PAYMENT_STATUSES",
    "RefundRequest", "RefundStatus", "RefundReasonType", "EligibilityType", "EligibilityResult",
    "RefundRequestCreate", "OfferCreate", "AdminRejection", "CreateOutcome", "SweepResult",
    "ACTIVE_STATUSES", "TERMINAL_STATUSES",
    "AuditEntry",
]
