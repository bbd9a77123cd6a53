"""
Refund eligibility policy.

Pure functions with no side effects or I/O. The verdict depends only on the
arguments: the caller supplies the order age, never the current time.

Rules, first match wins:
  1. progress >= partial_refund_max_progress   → not eligible
  2. order age > refund_window_days            → not eligible
  3. progress <= full_refund_max_progress
     and order age <= full_refund_max_days     → FULL, amount = final price
  4. otherwise                                 → PARTIAL, amount pro-rated on
                                                 the unused share of the course
"""
from decimal import Decimal
from typing import Optional, Union

from pydantic import BaseModel, Field, model_validator

from refund_workflow.engine.money import ZERO, quantize, refund_ceiling
from refund_workflow.models.refund import EligibilityResult, EligibilityType

HUNDRED = Decimal("100")

Number = Union[int, float, Decimal]


class PolicyError(Exception):
    """Raised when the policy is called with inputs outside its domain."""
    pass


class RefundPolicy(BaseModel):
    """Numeric parameters of the refund policy and the offer workflow."""

    model_config = {"frozen": True}

    refund_window_days: int = Field(30, ge=0)
    full_refund_max_days: int = Field(7, ge=0)
    full_refund_max_progress: Decimal = Field(Decimal("5"), ge=ZERO, le=HUNDRED)
    partial_refund_max_progress: Decimal = Field(Decimal("50"), ge=ZERO, le=HUNDRED)
    partial_refund_processing_fee: Decimal = Field(Decimal("0"), ge=ZERO, lt=Decimal("1"))
    offer_window_hours: int = Field(48, ge=1)
    currency: str = Field("VND", min_length=3, max_length=3)
    currency_decimals: int = Field(0, ge=0, le=4)
    reason_min_length: int = Field(10, ge=1)
    reason_max_length: int = Field(1000, ge=1)

    @model_validator(mode="after")
    def _check_bounds(self) -> "RefundPolicy":
        if self.full_refund_max_progress > self.partial_refund_max_progress:
            raise ValueError("full_refund_max_progress cannot exceed partial_refund_max_progress")
        if self.reason_min_length > self.reason_max_length:
            raise ValueError("reason_min_length cannot exceed reason_max_length")
        return self


DEFAULT_POLICY = RefundPolicy()


def clamp_progress(progress_percentage: Number) -> Decimal:
    """Clamp a progress percentage into [0, 100], keeping two decimals."""
    progress = Decimal(str(progress_percentage))
    progress = min(max(progress, ZERO), HUNDRED)
    return progress.quantize(Decimal("0.01"))


def partial_refund_amount(
    final_price: Decimal,
    progress_percentage: Decimal,
    policy: RefundPolicy = DEFAULT_POLICY,
) -> Decimal:
    """
    Pro-rate the final price on the unused share of the course.

    amount = final_price * (100 - progress) / 100 * (1 - processing_fee),
    rounded half-up to the minor unit and clamped to [0, final_price] with the
    ceiling rounded down, so sub-minor-unit digits of the price are never refunded.

    Example:
        final_price=1,000,000 VND, progress=40, fee=0
        → 1,000,000 * 60 / 100 = 600,000
    """
    unused_share = (HUNDRED - progress_percentage) / HUNDRED
    raw = final_price * unused_share * (Decimal("1") - policy.partial_refund_processing_fee)
    amount = quantize(raw, policy.currency_decimals)
    return min(max(amount, ZERO), refund_ceiling(final_price, policy.currency_decimals))


def evaluate(
    order_age_days: int,
    progress_percentage: Number,
    final_price: Decimal,
    policy: RefundPolicy = DEFAULT_POLICY,
) -> EligibilityResult:
    """
    Decide whether an order qualifies for a refund and for how much.

    Args:
        order_age_days: Whole days elapsed since the order was paid (>= 0).
        progress_percentage: Course progress; clamped to [0, 100].
        final_price: Amount the learner paid (>= 0).
        policy: Thresholds to apply.

    Returns:
        EligibilityResult with a human-readable message in every case.

    Raises:
        PolicyError: If the age or the price is negative.
    """
    if order_age_days < 0:
        raise PolicyError(f"Order age cannot be negative: {order_age_days}")
    final_price = Decimal(str(final_price))
    if final_price < ZERO:
        raise PolicyError(f"Final price cannot be negative: {final_price}")

    progress = clamp_progress(progress_percentage)
    price = refund_ceiling(final_price, policy.currency_decimals)

    if progress >= policy.partial_refund_max_progress:
        return _ineligible(
            f"Refund not available: course progress is {progress}% "
            f"(must be below {policy.partial_refund_max_progress}%).",
            progress,
            order_age_days,
        )

    if order_age_days > policy.refund_window_days:
        return _ineligible(
            f"Refund not available: the order was paid {order_age_days} days ago "
            f"(refund window is {policy.refund_window_days} days).",
            progress,
            order_age_days,
        )

    if progress <= policy.full_refund_max_progress and order_age_days <= policy.full_refund_max_days:
        return EligibilityResult(
            eligible=True,
            type=EligibilityType.FULL,
            suggested_amount=price,
            message=(
                f"Eligible for a full refund of {price} {policy.currency}. "
                f"Progress: {progress}%, paid {order_age_days} days ago."
            ),
            progress_percentage=progress,
            order_age_days=order_age_days,
        )

    amount = partial_refund_amount(final_price, progress, policy)
    return EligibilityResult(
        eligible=True,
        type=EligibilityType.PARTIAL,
        suggested_amount=amount,
        message=(
            f"Eligible for a partial refund of {amount} {policy.currency}. "
            f"Progress: {progress}%, paid {order_age_days} days ago."
        ),
        progress_percentage=progress,
        order_age_days=order_age_days,
    )


def _ineligible(message: str, progress: Decimal, order_age_days: Optional[int]) -> EligibilityResult:
    return EligibilityResult(
        eligible=False,
        type=None,
        suggested_amount=None,
        message=message,
        progress_percentage=progress,
        order_age_days=order_age_days,
    )
