"""
Notification/status bridge.

Delivery (email, in-app notifications) belongs to another service. This
module only defines the hook the lifecycle manager calls after a committed
transition; a deployment passes any object with the same `refund_event`
method.
"""
import logging
from typing import Optional

from refund_workflow.models.order import Order
from refund_workflow.models.refund import RefundRequest

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Default bridge: writes one log line per refund event."""

    def refund_event(self, event: str, refund_request: RefundRequest, order: Optional[Order]) -> None:
        logger.info(
            "refund event %s: request=%s order=%s status=%s order_status=%s",
            event,
            refund_request.id,
            refund_request.order_id,
            refund_request.status.value,
            order.payment_status.value if order else None,
        )
