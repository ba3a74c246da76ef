"""
Unit tests for tier ordering.
"""

import itertools

import pytest

from tierwise.domain.subscription import Country, SubscriptionInfo, Tier
from tierwise.domain.tiers import compare_tiers, highest_tier


ORDERED = [Tier.TIER_1, Tier.TIER_1_5, Tier.TIER_2]


class TestCompareTiers:

    @pytest.mark.parametrize("a,b", list(itertools.combinations(ORDERED, 2)))
    def test_strict_order(self, a, b):
        assert compare_tiers(a, b) == -1
        assert compare_tiers(b, a) == 1

    @pytest.mark.parametrize("tier", ORDERED)
    def test_equal_tiers(self, tier):
        assert compare_tiers(tier, tier) == 0

    @pytest.mark.parametrize("other", ORDERED + [None])
    def test_tier_3_compares_equal_to_everything(self, other):
        assert compare_tiers(Tier.TIER_3, other) == 0
        assert compare_tiers(other, Tier.TIER_3) == 0


class TestHighestTier:

    def test_picks_highest(self):
        infos = [
            SubscriptionInfo(country=Country.FI, tier=Tier.TIER_1),
            SubscriptionInfo(country=Country.US, tier=Tier.TIER_2),
            SubscriptionInfo(country=Country.NL, tier=Tier.TIER_1_5),
        ]
        assert highest_tier(infos) == SubscriptionInfo(country=Country.US, tier=Tier.TIER_2)

    def test_later_entry_wins_tie(self):
        infos = [
            SubscriptionInfo(country=Country.FI, tier=Tier.TIER_2),
            SubscriptionInfo(country=Country.UK, tier=Tier.TIER_2),
        ]
        assert highest_tier(infos).country == Country.UK

    def test_empty(self):
        assert highest_tier([]) is None

    @pytest.mark.parametrize("order", [(0, 1), (1, 0)])
    def test_tier_3_wins_in_any_order(self, order):
        candidates = [
            SubscriptionInfo(country=Country.FI, tier=Tier.TIER_2),
            SubscriptionInfo(country=None, tier=Tier.TIER_3),
        ]
        infos = [candidates[i] for i in order]
        assert highest_tier(infos).tier == Tier.TIER_3
