"""
Tier ordering used when several subscriptions remain active.
"""

from typing import Iterable, Optional

from tierwise.domain.subscription import SubscriptionInfo, Tier


_RANKED = {
    Tier.TIER_1: 1,
    Tier.TIER_1_5: 2,
    Tier.TIER_2: 3,
}


def compare_tiers(a: Optional[Tier], b: Optional[Tier]) -> int:
    """
    Compare two tiers: tier 2 > tier 1.5 > tier 1.

    Any pairing involving a tier outside that chain compares equal.

    Returns:
        1 if a is greater, -1 if b is greater, 0 otherwise
    """
    rank_a = _RANKED.get(a)
    rank_b = _RANKED.get(b)
    if rank_a is None or rank_b is None or rank_a == rank_b:
        return 0
    return 1 if rank_a > rank_b else -1


def _outranks_or_ties(candidate: Optional[Tier], best: Optional[Tier]) -> bool:
    if best == Tier.TIER_3:
        return candidate == Tier.TIER_3
    if candidate == Tier.TIER_3:
        return True
    return compare_tiers(best, candidate) <= 0


def highest_tier(infos: Iterable[SubscriptionInfo]) -> Optional[SubscriptionInfo]:
    """
    Pick the highest-tier classification; later entries win ties.

    Tier 3 ranks above every other tier here, so a self-hosted plan is
    kept regardless of where it appears in the list.
    """
    best: Optional[SubscriptionInfo] = None
    for info in infos:
        if best is None or _outranks_or_ties(info.tier, best.tier):
            best = info
    return best
