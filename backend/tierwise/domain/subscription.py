"""
Subscription Domain Models

Domain models for subscription management following Clean Architecture.
Enums, DTOs, and domain entities for the billing bounded context.
"""

from enum import Enum
from typing import Any, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field


class Tier(str, Enum):
    """Service level labels stored on an account."""
    TIER_1 = "tier 1"        # basic
    TIER_1_5 = "tier 1.5"    # oracle
    TIER_2 = "tier 2"        # sentinel / hosted
    TIER_3 = "tier 3"        # self-hosted


class Country(str, Enum):
    """Countries that have their own configured price identifiers."""
    US = "US"
    FI = "FI"
    NL = "NL"
    UK = "UK"
    AU = "AU"
    OTHER = "OTHER"


# Iteration order used by the price catalog and checkout selection.
COUNTRIES: tuple[Country, ...] = (
    Country.US,
    Country.FI,
    Country.NL,
    Country.UK,
    Country.AU,
    Country.OTHER,
)


class SubscriptionEventType(str, Enum):
    """Payment-provider subscription lifecycle events."""
    CREATED = "customer.subscription.created"
    UPDATED = "customer.subscription.updated"
    DELETED = "customer.subscription.deleted"


class SubscriptionType(str, Enum):
    """Plans a user can start from the pricing page."""
    HOSTED = "hosted"
    SELF_HOSTING = "self_hosting"


# =============================================================================
# Domain Entities
# =============================================================================

def stripe_to_dict(obj: Any) -> dict:
    """Normalize a Stripe object or plain mapping to a dict."""
    if obj is None:
        return {}
    if hasattr(obj, "to_dict"):
        return obj.to_dict()
    return dict(obj)


def stripe_object_id(value: Any) -> Optional[str]:
    """Return the id of a possibly-expanded Stripe reference."""
    if value is None or isinstance(value, str):
        return value
    return stripe_to_dict(value).get("id")


class LineItem(BaseModel):
    """A single subscription item referencing a price."""
    price_id: Optional[str] = None
    quantity: int = 1


class ProviderSubscription(BaseModel):
    """Subscription as reported by the payment provider."""
    id: str
    customer_id: Optional[str] = None
    items: list[LineItem] = Field(default_factory=list)
    status: Optional[str] = None
    current_period_end: Optional[int] = None
    metadata: dict[str, str] = Field(default_factory=dict)

    @property
    def is_plan_change(self) -> bool:
        """Whether this subscription is tagged as part of a plan change."""
        return self.metadata.get("plan_change") == "true"

    @classmethod
    def from_stripe(cls, obj: Mapping[str, Any]) -> "ProviderSubscription":
        """
        Build from a Stripe subscription object or its JSON payload.

        Newer API versions report current_period_end on each item rather
        than on the subscription; the first item's value is used then.
        """
        data = stripe_to_dict(obj)
        raw_items = stripe_to_dict(data.get("items")).get("data") or []

        items = []
        item_period_end = None
        for raw in raw_items:
            item = stripe_to_dict(raw)
            price = item.get("price")
            items.append(LineItem(
                price_id=stripe_object_id(price),
                quantity=item.get("quantity") or 1,
            ))
            if item_period_end is None:
                item_period_end = item.get("current_period_end")

        period_end = data.get("current_period_end")
        if period_end is None:
            period_end = item_period_end

        return cls(
            id=data["id"],
            customer_id=stripe_object_id(data.get("customer")),
            items=items,
            status=data.get("status"),
            current_period_end=period_end,
            metadata={str(k): str(v) for k, v in stripe_to_dict(data.get("metadata")).items()},
        )


class SubscriptionInfo(BaseModel):
    """Semantic classification of a price identifier."""
    country: Optional[Country] = None
    tier: Tier = Tier.TIER_2

    model_config = ConfigDict(frozen=True)


class Account(BaseModel):
    """Locally persisted account with its subscription fields."""
    id: int
    email: Optional[str] = None
    phone_number: Optional[str] = None
    phone_number_country: Optional[str] = None
    stripe_customer_id: Optional[str] = None
    stripe_payment_method_id: Optional[str] = None
    stripe_checkout_session_id: Optional[str] = None
    sub_tier: Optional[Tier] = None
    sub_country: Optional[Country] = None
    credits: float = 0.0
    credits_left: float = 0.0
    next_billing_date_timestamp: Optional[int] = None
    charge_when_under: bool = False
    charge_back_to: Optional[float] = None
    morning_digest: Optional[str] = None
    day_digest: Optional[str] = None
    evening_digest: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class AccountSubscriptionUpdate(BaseModel):
    """
    Subscription fields to write back to an account.

    Only fields explicitly set are persisted, so an explicit None clears a
    column while an unset field leaves it untouched.
    """
    sub_tier: Optional[Tier] = None
    sub_country: Optional[Country] = None
    credits_left: Optional[float] = None
    next_billing_date_timestamp: Optional[int] = None


class ReconciliationResult(BaseModel):
    """Outcome of reconciling one subscription lifecycle event."""
    event_type: SubscriptionEventType
    subscription_id: str
    skipped_reason: Optional[str] = None
    cancel_subscription_ids: list[str] = Field(default_factory=list)
    update: Optional[AccountSubscriptionUpdate] = None
    bonus_credits: float = 0.0

    @property
    def skipped(self) -> bool:
        return self.skipped_reason is not None


# =============================================================================
# Request/Response DTOs
# =============================================================================

class SubscriptionCheckoutRequest(BaseModel):
    """Request DTO for starting a subscription checkout."""
    subscription_type: SubscriptionType = Field(
        default=SubscriptionType.HOSTED,
        description="Hosted plan or self-hosting plan"
    )
    addons: Optional[list[str]] = Field(
        default=None,
        description="Optional add-ons such as dumbphone_ship or ubikey_gift"
    )


class BuyCreditsRequest(BaseModel):
    """Request DTO for a one-time overage credit purchase."""
    amount_dollars: float = Field(..., gt=0, description="Amount to charge")


class AutoTopupRequest(BaseModel):
    """Request DTO for auto top-up settings."""
    active: bool
    amount: Optional[float] = Field(default=None, gt=0)


class CheckoutResponse(BaseModel):
    """Response DTO for checkout and portal redirects."""
    url: str
    message: str


class NextBillingDateResponse(BaseModel):
    message: str
    next_billing_date: int


class AccountBillingResponse(BaseModel):
    """Response DTO for the billing dashboard."""
    account_id: int
    sub_tier: Optional[Tier] = None
    sub_country: Optional[Country] = None
    credits: float
    credits_left: float
    next_billing_date: Optional[int] = None
    charge_when_under: bool = False
    charge_back_to: Optional[float] = None
