from .eligibility import (
    evaluate,
    partial_refund_amount,
    clamp_progress,
    RefundPolicy,
    DEFAULT_POLICY,
    PolicyError,
)
from .money import quantize, refund_ceiling, to_minor_units, amounts_equal

__all__ = [
    "evaluate",
    "partial_refund_amount",
    "clamp_progress",
    "RefundPolicy",
    "DEFAULT_POLICY",
    "PolicyError",
    "quantize",
    "refund_ceiling",
    "to_minor_units",
    "amounts_equal",
]
