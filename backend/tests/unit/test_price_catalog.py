"""
Unit tests for the price catalog.

Covers resolution priority, the unknown-price fallback, line item helpers
and checkout price selection.
"""

import pytest

from tierwise.config.settings import Settings
from tierwise.domain.price_catalog import PriceCatalog, PriceFamily
from tierwise.domain.subscription import Country, LineItem, SubscriptionInfo, Tier

from conftest import (
    BASIC_DAILY_NL,
    BASIC_US,
    DETOX_US,
    DUMBPHONE_SHIP,
    HARD_MODE_UK,
    HOSTED_US,
    SELF_HOSTING,
    SENTINEL_FI,
    SENTINEL_OTHER,
    SENTINEL_US,
    TOPUP,
    WORLD_AU,
    make_catalog,
)


class TestResolve:
    """Tests for price identifier classification."""

    @pytest.mark.parametrize("price_id,expected", [
        (SENTINEL_US, SubscriptionInfo(country=Country.US, tier=Tier.TIER_2)),
        (SENTINEL_FI, SubscriptionInfo(country=Country.FI, tier=Tier.TIER_2)),
        (HOSTED_US, SubscriptionInfo(country=Country.US, tier=Tier.TIER_2)),
        (BASIC_US, SubscriptionInfo(country=Country.US, tier=Tier.TIER_1)),
        (BASIC_DAILY_NL, SubscriptionInfo(country=Country.NL, tier=Tier.TIER_1)),
        (HARD_MODE_UK, SubscriptionInfo(country=Country.UK, tier=Tier.TIER_2)),
        (WORLD_AU, SubscriptionInfo(country=Country.AU, tier=Tier.TIER_2)),
    ])
    def test_configured_prices_resolve_to_their_key(self, catalog, price_id, expected):
        assert catalog.resolve(price_id) == expected

    @pytest.mark.parametrize("price_id", ["price_unknown", "", None])
    def test_unknown_price_defaults_to_tier_2_without_country(self, catalog, price_id):
        info = catalog.resolve(price_id)
        assert info.country is None
        assert info.tier == Tier.TIER_2

    def test_self_hosting_price_is_not_in_resolution_table(self, catalog):
        assert catalog.resolve(SELF_HOSTING) == SubscriptionInfo(country=None, tier=Tier.TIER_2)

    def test_classify_maps_self_hosting_to_tier_3(self, catalog):
        assert catalog.classify(SELF_HOSTING).tier == Tier.TIER_3
        assert catalog.classify(BASIC_US).tier == Tier.TIER_1

    def test_first_pass_wins_over_second_pass(self):
        """A price registered as both basic and sentinel resolves as basic."""
        catalog = make_catalog(price_ids={
            (PriceFamily.SENTINEL, Country.US): "price_shared",
            (PriceFamily.BASIC, Country.OTHER): "price_shared",
        })
        assert catalog.resolve("price_shared") == SubscriptionInfo(
            country=Country.OTHER, tier=Tier.TIER_1
        )

    def test_country_order_breaks_ties_within_a_pass(self):
        catalog = make_catalog(price_ids={
            (PriceFamily.WORLD, Country.UK): "price_shared",
            (PriceFamily.HOSTED_PLAN, Country.FI): "price_shared",
        })
        assert catalog.resolve("price_shared").country == Country.FI

    def test_catalog_is_immutable(self, catalog):
        with pytest.raises(Exception):
            catalog.topup_price_id = "other"


class TestPredicates:
    """Tests for Sentinel and self-hosting predicates."""

    def test_is_sentinel_covers_sentinel_and_hosted_plan(self, catalog):
        assert catalog.is_sentinel(SENTINEL_US)
        assert catalog.is_sentinel(SENTINEL_OTHER)
        assert catalog.is_sentinel(HOSTED_US)
        assert not catalog.is_sentinel(BASIC_US)
        assert not catalog.is_sentinel(None)

    def test_is_sentinel_us_only_matches_us_sentinel(self, catalog):
        assert catalog.is_sentinel_us(SENTINEL_US)
        assert not catalog.is_sentinel_us(HOSTED_US)
        assert not catalog.is_sentinel_us(SENTINEL_FI)

    def test_is_sentinel_us_false_when_unconfigured(self):
        catalog = make_catalog(price_ids={})
        assert not catalog.is_sentinel_us(None)
        assert not catalog.is_sentinel_us("")

    def test_is_self_hosting(self, catalog):
        assert catalog.is_self_hosting(SELF_HOSTING)
        assert not catalog.is_self_hosting(SENTINEL_US)


class TestLineItems:
    """Tests for base price and digital detox detection."""

    def test_base_price_skips_topup(self, catalog):
        items = [LineItem(price_id=TOPUP), LineItem(price_id=BASIC_US)]
        assert catalog.base_price_id(items) == BASIC_US

    def test_base_price_is_first_non_topup_item(self, catalog):
        items = [LineItem(price_id=SENTINEL_US), LineItem(price_id=DETOX_US)]
        assert catalog.base_price_id(items) == SENTINEL_US

    def test_base_price_none_when_only_topup(self, catalog):
        assert catalog.base_price_id([LineItem(price_id=TOPUP)]) is None
        assert catalog.base_price_id([]) is None

    def test_base_price_without_configured_topup(self):
        catalog = make_catalog(topup_price_id=None)
        assert catalog.base_price_id([LineItem(price_id=TOPUP)]) == TOPUP

    def test_digital_detox_detected_anywhere_in_items(self, catalog):
        items = [LineItem(price_id=SENTINEL_US), LineItem(price_id=DETOX_US)]
        assert catalog.is_digital_detox(items)
        assert not catalog.is_digital_detox([LineItem(price_id=SENTINEL_US)])


class TestCheckoutSelection:
    """Tests for checkout price selection by phone country."""

    @pytest.mark.parametrize("phone_country", ["US", "CA", "us"])
    def test_north_america_uses_us_hosted_plan(self, catalog, phone_country):
        assert catalog.hosted_price_for(phone_country) == HOSTED_US

    def test_configured_country_uses_its_sentinel(self, catalog):
        assert catalog.hosted_price_for("FI") == SENTINEL_FI

    @pytest.mark.parametrize("phone_country", ["DE", None])
    def test_other_countries_use_sentinel_other(self, catalog, phone_country):
        assert catalog.hosted_price_for(phone_country) == SENTINEL_OTHER

    def test_addon_lookup(self, catalog):
        assert catalog.addon_price_for("dumbphone_ship") == DUMBPHONE_SHIP
        assert catalog.addon_price_for("cold_turkey") is None


class TestFromSettings:
    """Tests for building the catalog from settings."""

    def test_reads_price_keys_from_settings(self):
        settings = Settings(
            stripe_subscription_sentinel_price_id_us="price_env_sentinel_us",
            stripe_subscription_basic_price_id_fi="price_env_basic_fi",
            stripe_subscription_self_hosting_price_id="price_env_self",
            stripe_topup_price_id="price_env_topup",
            stripe_digitaldetox_onetime_fee_id_other="price_env_detox",
            stripe_ubikey_gift_price_id="price_env_ubikey",
        )
        catalog = PriceCatalog.from_settings(settings)

        assert catalog.resolve("price_env_sentinel_us").country == Country.US
        assert catalog.resolve("price_env_basic_fi") == SubscriptionInfo(
            country=Country.FI, tier=Tier.TIER_1
        )
        assert catalog.is_self_hosting("price_env_self")
        assert catalog.topup_price_id == "price_env_topup"
        assert catalog.digital_detox_fee_ids == frozenset({"price_env_detox"})
        assert catalog.addon_price_for("ubikey_gift") == "price_env_ubikey"

    def test_blank_settings_never_register(self):
        catalog = PriceCatalog.from_settings(Settings(stripe_subscription_basic_price_id_us=""))
        assert catalog.resolve("") == SubscriptionInfo(country=None, tier=Tier.TIER_2)
        assert catalog.get(PriceFamily.BASIC, Country.US) is None
