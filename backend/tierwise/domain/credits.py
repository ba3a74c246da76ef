"""
Credit Allowance Calculator

Monthly message allowance policy. Each active digest pre-pays one message
per remaining billing day out of the monthly quota.
"""

from dataclasses import dataclass
from typing import Optional

from tierwise.domain.subscription import Tier


SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_DAYS_UNTIL_BILLING = 30

DIGITAL_DETOX_ALLOWANCE = 100.0
SENTINEL_US_ALLOWANCE = 400.0
SENTINEL_NORTH_AMERICA_ALLOWANCE = 200.0
LEGACY_TIER_2_ALLOWANCE = 120.0
TIER_1_ALLOWANCE = 40.0

NORTH_AMERICA_PHONE_COUNTRIES = frozenset({"US", "CA"})


@dataclass(frozen=True)
class Allowance:
    """Computed allowance and an optional tier the caller must store instead."""
    credits: float
    tier_override: Optional[Tier] = None


def days_until_billing(period_end: Optional[int], now: int) -> int:
    """Whole days until period_end, truncated toward zero; 30 if unknown."""
    if period_end is None:
        return DEFAULT_DAYS_UNTIL_BILLING
    delta = period_end - now
    if delta >= 0:
        return delta // SECONDS_PER_DAY
    return -(-delta // SECONDS_PER_DAY)


def count_active_digests(
    morning: Optional[str],
    day: Optional[str],
    evening: Optional[str],
) -> int:
    return sum(1 for slot in (morning, day, evening) if slot is not None)


def calculate_allowance(
    tier: Tier,
    phone_country: Optional[str],
    days_until_billing: int,
    active_digest_count: int,
    *,
    is_digital_detox: bool = False,
    is_sentinel_us_price: bool = False,
    is_sentinel_price: bool = False,
    is_self_hosting_price: bool = False,
) -> Allowance:
    """
    Compute the monthly message allowance for a subscription.

    Rows are evaluated in order and the first match wins:
    digital detox, US Sentinel, any Sentinel/Hosted plan, self-hosting,
    legacy tier 2, tier 1. Results are not clamped at zero.

    Args:
        tier: Tier resolved from the base price
        phone_country: Account phone number country (US/CA get hosted credits)
        days_until_billing: Remaining days in the billing period
        active_digest_count: Number of enabled digest slots (0-3)

    Returns:
        Allowance with the credit amount and optional tier override
    """
    digest_cost = float(days_until_billing * active_digest_count)

    if is_digital_detox:
        return Allowance(DIGITAL_DETOX_ALLOWANCE)
    if is_sentinel_us_price:
        return Allowance(SENTINEL_US_ALLOWANCE - digest_cost)
    if is_sentinel_price:
        if phone_country in NORTH_AMERICA_PHONE_COUNTRIES:
            return Allowance(SENTINEL_NORTH_AMERICA_ALLOWANCE - digest_cost)
        return Allowance(0.0)
    if is_self_hosting_price:
        return Allowance(0.0, tier_override=Tier.TIER_3)
    if tier == Tier.TIER_2:
        return Allowance(LEGACY_TIER_2_ALLOWANCE - digest_cost)
    return Allowance(TIER_1_ALLOWANCE)
