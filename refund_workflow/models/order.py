from decimal import Decimal
from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field, field_validator


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"
    PARTIALLY_REFUNDED = "PARTIALLY_REFUNDED"
    REFUND_PENDING = "REFUND_PENDING"
    REFUND_FAILED = "REFUND_FAILED"


# A refund request may only be opened from these payment states.
REFUNDABLE_PAYMENT_STATUSES = frozenset({PaymentStatus.PAID, PaymentStatus.REFUND_FAILED})


class Order(BaseModel):
    model_config = {"extra": "forbid"}

    id: str = Field(..., min_length=1, max_length=50)
    user_id: str = Field(..., min_length=1, max_length=50)
    course_id: str = Field(..., min_length=1, max_length=50)
    final_price: Decimal = Field(..., ge=Decimal("0"))
    payment_status: PaymentStatus
    paid_at: Optional[datetime] = None

    @field_validator("paid_at")
    @classmethod
    def _paid_at_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        # Naive timestamps are taken as UTC
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Enrollment(BaseModel):
    model_config = {"extra": "forbid"}

    user_id: str = Field(..., min_length=1, max_length=50)
    course_id: str = Field(..., min_length=1, max_length=50)
    progress_percentage: Decimal = Field(Decimal("0"), ge=Decimal("0"), le=Decimal("100"))
    active: bool = True
