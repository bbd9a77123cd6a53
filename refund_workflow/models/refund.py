from decimal import Decimal
from datetime import datetime
from enum import Enum
from typing import Optional, Literal
from pydantic import BaseModel, Field, model_validator


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


ACTIVE_STATUSES = frozenset({RefundStatus.PENDING, RefundStatus.APPROVED})
TERMINAL_STATUSES = frozenset(set(RefundStatus) - ACTIVE_STATUSES)
# Statuses that can only be reached through an admin offer.
OFFER_STATUSES = frozenset({RefundStatus.APPROVED, RefundStatus.EXPIRED, RefundStatus.COMPLETED})


class RefundReasonType(str, Enum):
    MEDICAL = "MEDICAL"
    FINANCIAL_EMERGENCY = "FINANCIAL_EMERGENCY"
    DISSATISFACTION = "DISSATISFACTION"
    OTHER = "OTHER"


class EligibilityType(str, Enum):
    FULL = "FULL"
    PARTIAL = "PARTIAL"


class EligibilityResult(BaseModel):
    eligible: bool
    type: Optional[EligibilityType] = None
    suggested_amount: Optional[Decimal] = None
    message: str
    progress_percentage: Optional[Decimal] = None
    order_age_days: Optional[int] = None


class RefundRequest(BaseModel):
    """
    One learner refund request for one order.

    The validator below rejects field combinations the lifecycle can never
    produce, so an instance is always a legal state of the workflow.
    """

    model_config = {"extra": "forbid"}

    id: str
    order_id: str
    learner_id: str
    reason: str
    reason_type: RefundReasonType = RefundReasonType.OTHER
    status: RefundStatus
    eligibility_type: Optional[EligibilityType] = None
    policy_suggested_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))
    suggested_refund_amount: Optional[Decimal] = Field(None, ge=Decimal("0"))
    progress_percentage: Decimal = Field(..., ge=Decimal("0"), le=Decimal("100"))
    order_age_days: int = Field(..., ge=0)
    admin_notes: Optional[str] = None
    offer_expires_at: Optional[datetime] = None
    processed_by: Optional[str] = None
    processed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    version: int = Field(1, ge=1)

    @model_validator(mode="after")
    def _check_state(self) -> "RefundRequest":
        if self.status == RefundStatus.PENDING and self.offer_expires_at is not None:
            raise ValueError("A PENDING request cannot carry an offer deadline")
        if self.status in OFFER_STATUSES and self.offer_expires_at is None:
            raise ValueError(f"A {self.status.value} request requires offer_expires_at")
        if self.eligibility_type is None:
            if self.status != RefundStatus.REJECTED:
                raise ValueError("Only an auto-rejected request may lack an eligibility verdict")
            if self.suggested_refund_amount is not None or self.policy_suggested_amount is not None:
                raise ValueError("An auto-rejected request carries no refund amount")
        elif self.suggested_refund_amount is None or self.policy_suggested_amount is None:
            raise ValueError("An eligible request requires a suggested refund amount")
        if self.status in TERMINAL_STATUSES and self.resolved_at is None:
            raise ValueError(f"A {self.status.value} request requires resolved_at")
        if self.status in ACTIVE_STATUSES and self.resolved_at is not None:
            raise ValueError(f"A {self.status.value} request cannot be resolved")
        return self

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def auto_rejected(self) -> bool:
        return self.eligibility_type is None


class RefundRequestCreate(BaseModel):
    model_config = {"extra": "forbid"}

    order_id: str = Field(..., min_length=1, max_length=50)
    # Length bounds are policy parameters, checked by the lifecycle manager.
    reason: str
    reason_type: RefundReasonType = RefundReasonType.OTHER


class OfferCreate(BaseModel):
    model_config = {"extra": "forbid"}

    amount: Decimal
    notes: Optional[str] = Field(None, max_length=1000)


class AdminRejection(BaseModel):
    model_config = {"extra": "forbid"}

    notes: Optional[str] = Field(None, max_length=1000)


class CreateOutcome(BaseModel):
    """Result of submitting a request: auto-rejection is a successful outcome."""

    outcome: Literal["PENDING", "AUTO_REJECTED"]
    request: RefundRequest
    message: str

    @property
    def auto_rejected(self) -> bool:
        return self.outcome == "AUTO_REJECTED"


class SweepResult(BaseModel):
    swept_at: datetime
    expired_count: int
    expired_request_ids: list[str]
