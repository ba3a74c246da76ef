"""
Price Catalog

Maps opaque Stripe price identifiers to a semantic (country, tier) pair.

The catalog is an immutable value built once from settings. Price families
are registered in priority order and the first registration of an
identifier wins, so a lookup returns the same answer as scanning the
families one by one.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from tierwise.domain.subscription import (
    COUNTRIES,
    Country,
    LineItem,
    SubscriptionInfo,
    Tier,
)


class PriceFamily(str, Enum):
    """Configured subscription price families."""
    HARD_MODE = "HARD_MODE"
    BASIC_DAILY = "BASIC_DAILY"
    BASIC = "BASIC"
    WORLD = "WORLD"
    ESCAPE_DAILY = "ESCAPE_DAILY"
    MONITORING = "MONITORING"
    SENTINEL = "SENTINEL"
    HOSTED_PLAN = "HOSTED_PLAN"


# Each pass walks every country before moving to the next pass.
RESOLUTION_PASSES: tuple[tuple[tuple[PriceFamily, Tier], ...], ...] = (
    (
        (PriceFamily.HARD_MODE, Tier.TIER_2),
        (PriceFamily.BASIC_DAILY, Tier.TIER_1),
        (PriceFamily.BASIC, Tier.TIER_1),
    ),
    (
        (PriceFamily.WORLD, Tier.TIER_2),
        (PriceFamily.ESCAPE_DAILY, Tier.TIER_2),
        (PriceFamily.MONITORING, Tier.TIER_2),
        (PriceFamily.SENTINEL, Tier.TIER_2),
        (PriceFamily.HOSTED_PLAN, Tier.TIER_2),
    ),
)

DEFAULT_SUBSCRIPTION_INFO = SubscriptionInfo(country=None, tier=Tier.TIER_2)

ADDON_SETTINGS = {
    "dumbphone_ship": "stripe_dumbphone_ship_price_id",
    "dumbphone_gift": "stripe_dumbphone_gift_price_id",
    "ubikey_ship": "stripe_ubikey_ship_price_id",
    "ubikey_gift": "stripe_ubikey_gift_price_id",
}


@dataclass(frozen=True)
class PriceCatalog:
    """
    Immutable price configuration.

    Attributes:
        price_ids: (family, country) -> configured price identifier
        self_hosting_price_id: Self-hosting plan price
        topup_price_id: Metered top-up price, never a base price
        digital_detox_fee_ids: One-time digital detox fees (US and other)
        addon_price_ids: Add-on name -> price identifier
    """

    price_ids: Mapping[tuple[PriceFamily, Country], str] = field(default_factory=dict)
    self_hosting_price_id: Optional[str] = None
    topup_price_id: Optional[str] = None
    digital_detox_fee_ids: frozenset[str] = frozenset()
    addon_price_ids: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        table: dict[str, SubscriptionInfo] = {}
        for resolution_pass in RESOLUTION_PASSES:
            for country in COUNTRIES:
                for family, tier in resolution_pass:
                    price_id = self.price_ids.get((family, country))
                    if price_id and price_id not in table:
                        table[price_id] = SubscriptionInfo(country=country, tier=tier)
        object.__setattr__(self, "_table", MappingProxyType(table))

    @classmethod
    def from_settings(cls, settings) -> "PriceCatalog":
        """Build the catalog from application settings."""
        price_ids = {}
        for family in PriceFamily:
            for country in COUNTRIES:
                price_id = settings.subscription_price_id(family.value, country.value)
                if price_id:
                    price_ids[(family, country)] = price_id

        detox_ids = {
            settings.stripe_digitaldetox_onetime_fee_id_us,
            settings.stripe_digitaldetox_onetime_fee_id_other,
        }
        addon_ids = {
            name: getattr(settings, attr)
            for name, attr in ADDON_SETTINGS.items()
            if getattr(settings, attr)
        }

        return cls(
            price_ids=price_ids,
            self_hosting_price_id=settings.stripe_subscription_self_hosting_price_id or None,
            topup_price_id=settings.stripe_topup_price_id or None,
            digital_detox_fee_ids=frozenset(i for i in detox_ids if i),
            addon_price_ids=addon_ids,
        )

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve(self, price_id: Optional[str]) -> SubscriptionInfo:
        """
        Classify a price identifier.

        Unknown or missing identifiers fall back to (None, tier 2).
        """
        if not price_id:
            return DEFAULT_SUBSCRIPTION_INFO
        return self._table.get(price_id, DEFAULT_SUBSCRIPTION_INFO)

    def get(self, family: PriceFamily, country: Country) -> Optional[str]:
        return self.price_ids.get((family, country))

    def is_sentinel(self, price_id: Optional[str]) -> bool:
        """Whether the price is a Sentinel or Hosted Plan price in any country."""
        if not price_id:
            return False
        return any(
            self.price_ids.get((family, country)) == price_id
            for family in (PriceFamily.SENTINEL, PriceFamily.HOSTED_PLAN)
            for country in COUNTRIES
        )

    def is_sentinel_us(self, price_id: Optional[str]) -> bool:
        us_price = self.get(PriceFamily.SENTINEL, Country.US)
        return bool(price_id) and price_id == us_price

    def is_self_hosting(self, price_id: Optional[str]) -> bool:
        return bool(price_id) and price_id == self.self_hosting_price_id

    def classify(self, price_id: Optional[str]) -> SubscriptionInfo:
        """
        Resolve a price and apply the self-hosting rule.

        The self-hosting price is not part of the resolution table; callers
        that need the stored tier of such a subscription get tier 3.
        """
        info = self.resolve(price_id)
        if self.is_self_hosting(price_id):
            return SubscriptionInfo(country=info.country, tier=Tier.TIER_3)
        return info

    # =========================================================================
    # Line Item Helpers
    # =========================================================================

    def base_price_id(self, items: Iterable[LineItem]) -> Optional[str]:
        """First item price that is not the metered top-up price."""
        for item in items:
            if item.price_id and item.price_id != self.topup_price_id:
                return item.price_id
        return None

    def is_digital_detox(self, items: Iterable[LineItem]) -> bool:
        """Whether a digital detox one-time fee is among the items."""
        return any(item.price_id in self.digital_detox_fee_ids for item in items)

    # =========================================================================
    # Checkout Selection
    # =========================================================================

    def hosted_price_for(self, phone_country: Optional[str]) -> Optional[str]:
        """Hosted plan price for a user's phone number country."""
        country = (phone_country or "OTHER").upper()
        if country in ("US", "CA"):
            return self.get(PriceFamily.HOSTED_PLAN, Country.US)
        try:
            sentinel_country = Country(country)
        except ValueError:
            sentinel_country = Country.OTHER
        return self.get(PriceFamily.SENTINEL, sentinel_country)

    def addon_price_for(self, addon: str) -> Optional[str]:
        return self.addon_price_ids.get(addon)
