from datetime import datetime, timezone


class SystemClock:
    """Wall-clock time in UTC. Swap for a fixed clock in tests."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def days_between(start: datetime, end: datetime) -> int:
    """Whole days elapsed from `start` to `end`, never negative."""
    elapsed = end - start
    return max(elapsed.days, 0)
