from decimal import Decimal
from datetime import datetime
from typing import Optional, Literal, Any
from pydantic import BaseModel

AuditAction = Literal[
    "REQUEST_CREATED",
    "REQUEST_AUTO_REJECTED",
    "OFFER_ISSUED",
    "OFFER_ACCEPTED",
    "OFFER_REJECTED",
    "REQUEST_REJECTED",
    "REQUEST_CANCELLED",
    "OFFER_EXPIRED",
]


class AuditEntry(BaseModel):
    id: str
    timestamp: datetime
    refund_request_id: str
    order_id: str
    actor_id: str
    action: AuditAction
    from_status: Optional[str] = None
    to_status: str
    reasoning: str
    detail: dict[str, Any]
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
