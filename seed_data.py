"""
Seed data generator for the course refund workflow service.

Generates paid course orders and enrollment progress covering every branch of
the refund policy. Timestamps are relative to `now` so ages stay meaningful.
Imported by app startup and by the test fixtures.
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional

from refund_workflow.models.order import Order, Enrollment, PaymentStatus
from refund_workflow.repository.store import InMemoryStore, store

# Learner who owns the named scenario orders below.
SCENARIO_LEARNER = "USR-100"


def load_seed_data(target: Optional[InMemoryStore] = None, now: Optional[datetime] = None) -> None:
    """Populate the store with orders and enrollments."""
    target = target or store
    now = now or datetime.now(timezone.utc)
    for order, progress in _build_orders(now):
        target.save_order(order)
        if progress is not None:
            target.save_enrollment(
                Enrollment(user_id=order.user_id, course_id=order.course_id, progress_percentage=progress)
            )


def _build_orders(now: datetime) -> list[tuple[Order, Optional[Decimal]]]:
    orders = []

    # ── Regular paid orders (ORD-001..040) ──────────────────────────────────
    # Ages cycle 0..39 days and progress cycles 0..70%, so the set spans
    # full, partial and policy-rejected verdicts.

    for i in range(1, 41):
        price = Decimal(str(199000 + i * 50000))
        orders.append((
            Order(
                id=f"ORD-{i:03d}",
                user_id=f"USR-{i:03d}",
                course_id=f"CRS-{(i - 1) % 12 + 1:03d}",
                final_price=price,
                payment_status=PaymentStatus.PAID,
                paid_at=now - timedelta(days=i - 1, hours=2),
            ),
            Decimal(str((i * 7) % 71)),
        ))

    # ── Named scenarios for one learner ─────────────────────────────────────

    def scenario(order_id, course_id, price, status, days_ago, progress):
        paid_at = now - timedelta(days=days_ago) if days_ago is not None else None
        return (
            Order(
                id=order_id,
                user_id=SCENARIO_LEARNER,
                course_id=course_id,
                final_price=Decimal(price),
                payment_status=status,
                paid_at=paid_at,
            ),
            Decimal(progress) if progress is not None else None,
        )

    orders.extend([
        # Fresh purchase, barely started → full refund
        scenario("ORD-FULL-001", "CRS-101", "1000000", PaymentStatus.PAID, 2, "3"),
        # Past the grace period with some progress → partial refund (1,200,000)
        scenario("ORD-PARTIAL-001", "CRS-102", "1500000", PaymentStatus.PAID, 10, "20"),
        # Course mostly consumed → auto-rejected
        scenario("ORD-HIGH-PROGRESS-001", "CRS-103", "1000000", PaymentStatus.PAID, 3, "60"),
        # Outside the refund window → auto-rejected
        scenario("ORD-OLD-001", "CRS-104", "800000", PaymentStatus.PAID, 45, "10"),
        # Earlier gateway refund failed → may be requested again
        scenario("ORD-REFUND-FAILED-001", "CRS-105", "500000", PaymentStatus.REFUND_FAILED, 4, "0"),
        # Not paid yet → cannot be refunded
        scenario("ORD-UNPAID-001", "CRS-106", "700000", PaymentStatus.PENDING, None, None),
        # Free course → full refund of zero
        scenario("ORD-FREE-001", "CRS-107", "0", PaymentStatus.PAID, 1, "0"),
        # Paid but never opened, no enrollment row → progress 0
        scenario("ORD-NO-ENROLLMENT-001", "CRS-108", "900000", PaymentStatus.PAID, 5, None),
    ])

    return orders
