"""Stay totals and cancellation refunds."""

from __future__ import annotations

from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

from stay_booking.models.enums import CancellationPolicy

CENTS = Decimal("0.01")

# (minimum days before check-in, share of the total refunded)
REFUND_RULES: dict[CancellationPolicy, tuple[int, Decimal]] = {
    CancellationPolicy.FLEXIBLE: (1, Decimal("1")),
    CancellationPolicy.MODERATE: (5, Decimal("1")),
    CancellationPolicy.STRICT: (7, Decimal("1")),
    CancellationPolicy.SUPER_STRICT: (30, Decimal("0.5")),
}


def _money(value: Any) -> Decimal:
    if value is None:
        return Decimal("0")
    return Decimal(str(value))


def nights_between(start_date: date, end_date: date) -> int:
    return (end_date - start_date).days


def quote_total(listing: dict[str, Any], nights: int) -> Decimal:
    """
    Price a stay: nightly rate times nights plus the listing's one-off fees.

    Args:
        listing: Listing row (price_per_night, cleaning_fee, service_fee)
        nights: Number of nights, at least 1

    Returns:
        Decimal: Total rounded to cents
    """
    total = (
        _money(listing["price_per_night"]) * nights
        + _money(listing.get("cleaning_fee"))
        + _money(listing.get("service_fee"))
    )
    return total.quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_refund(
    policy: Optional[CancellationPolicy],
    total_price: Any,
    start_date: date,
    cancelled_on: date,
) -> Decimal:
    """
    Refund owed when a confirmed stay is cancelled.

    A listing without a policy is treated as Flexible.

    Args:
        policy: Listing cancellation policy
        total_price: Amount charged for the stay
        start_date: Check-in date
        cancelled_on: Date the cancellation happens

    Returns:
        Decimal: Refund rounded to cents; zero once the policy window has passed

    Example:
        >>> compute_refund(CancellationPolicy.STRICT, "700.00", date(2024, 3, 10), date(2024, 3, 1))
        Decimal('700.00')
    """
    min_days, share = REFUND_RULES[policy or CancellationPolicy.FLEXIBLE]
    days_before = (start_date - cancelled_on).days
    if days_before < min_days:
        return Decimal("0.00")
    return (_money(total_price) * share).quantize(CENTS, rounding=ROUND_HALF_UP)
