"""Constants and test doubles shared across test modules."""
from datetime import datetime, timedelta, timezone

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
VALID_REASON = "The course content does not match the description."


class FrozenClock:
    """Clock that only moves when a test tells it to."""

    def __init__(self, now: datetime):
        self.current = now

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def refund_event(self, event, refund_request, order):
        self.events.append((event, refund_request.id, order.payment_status if order else None))
