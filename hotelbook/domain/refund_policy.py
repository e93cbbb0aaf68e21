"""Refund policy domain logic.

Applies when a booking with a card or bank payment is cancelled or rejected:
- Guest-initiated cancellations are refunded in full
- Otherwise the refund depends on the time left before check-in:
  72h or more: 100%, 48-72h: 75%, 24-48h: 50%, under 24h: nothing
- The partial policy caps a refund at 80%, the none policy refunds nothing
- The processing fee comes off the refund, which never drops below zero
"""

from datetime import UTC, date, datetime, time
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum


class RefundPolicy(str, Enum):
    """Refund policy types."""

    STANDARD = "standard"
    PARTIAL = "partial"
    NONE = "none"


# Refund rules: list of (hours_before_checkin, refund_percentage)
# Evaluated in order - first match wins
REFUND_RULES: list[tuple[int, Decimal]] = [
    (72, Decimal("100")),
    (48, Decimal("75")),
    (24, Decimal("50")),
]

PARTIAL_POLICY_CAP = Decimal("80")

CENTS = Decimal("0.01")


def hours_until_check_in(check_in: date, now: datetime) -> float:
    """Hours from ``now`` until the start of the check-in day (UTC)."""
    starts_at = datetime.combine(check_in, time.min, tzinfo=UTC)
    return (starts_at - now).total_seconds() / 3600


def calculate_refund_percentage(
    check_in: date,
    now: datetime,
    *,
    guest_initiated: bool = False,
    policy: str | RefundPolicy = RefundPolicy.STANDARD,
) -> Decimal:
    """Calculate refund percentage based on policy and timing.

    Args:
        check_in: Booking check-in date
        now: When the booking was cancelled or rejected
        guest_initiated: Whether the guest asked for the cancellation
        policy: The refund policy in force

    Returns:
        Decimal: Refund percentage (0-100)
    """
    if guest_initiated:
        return Decimal("100")

    if isinstance(policy, str):
        try:
            policy = RefundPolicy(policy)
        except ValueError:
            policy = RefundPolicy.STANDARD

    if policy == RefundPolicy.NONE:
        return Decimal("0")

    hours_before = hours_until_check_in(check_in, now)

    percentage = Decimal("0")
    for min_hours, refund_pct in REFUND_RULES:
        if hours_before >= min_hours:
            percentage = refund_pct
            break

    if policy == RefundPolicy.PARTIAL:
        percentage = min(percentage, PARTIAL_POLICY_CAP)
    return percentage


def calculate_refund_amount(
    total_price: Decimal,
    percentage: Decimal,
    processing_fee: Decimal = Decimal("0"),
) -> Decimal:
    """Amount owed back to the guest, in the booking currency."""
    refund = (Decimal(total_price) * percentage / Decimal("100")).quantize(
        CENTS, rounding=ROUND_HALF_UP
    )
    return max(refund - Decimal(processing_fee), Decimal("0.00"))
