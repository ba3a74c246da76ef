"""
Subscription Lifecycle Reconciler

Pure decision logic for subscription created/updated/deleted events.
Given the event, the account and the customer's active subscriptions,
produces a single ReconciliationResult; it performs no I/O.
"""

from dataclasses import dataclass
from typing import Optional, Sequence

from tierwise.domain.credits import (
    calculate_allowance,
    count_active_digests,
    days_until_billing,
)
from tierwise.domain.price_catalog import PriceCatalog
from tierwise.domain.subscription import (
    Account,
    AccountSubscriptionUpdate,
    ProviderSubscription,
    ReconciliationResult,
    SubscriptionEventType,
    Tier,
)
from tierwise.domain.tiers import highest_tier


# Phone number prefixes of the countries eligible for the signup bonus
# (FI, UK, AU, NL).
SIGNUP_BONUS_PHONE_PREFIXES = ("+358", "+44", "+61", "+31")


@dataclass(frozen=True)
class SubscriptionEvent:
    """A typed subscription lifecycle event."""
    type: SubscriptionEventType
    subscription: ProviderSubscription
    event_id: Optional[str] = None


class SubscriptionReconciler:
    """
    Derives account tier, country and allowance from lifecycle events.

    Args:
        catalog: Price catalog used to classify prices
        signup_bonus_credits: Credits granted on an eligible new hosted plan
    """

    def __init__(self, catalog: PriceCatalog, signup_bonus_credits: float = 10.0):
        self._catalog = catalog
        self._signup_bonus_credits = signup_bonus_credits

    @property
    def catalog(self) -> PriceCatalog:
        return self._catalog

    def reconcile(
        self,
        event: SubscriptionEvent,
        account: Optional[Account],
        active_subscriptions: Sequence[ProviderSubscription],
        now: int,
    ) -> ReconciliationResult:
        """
        Reconcile one event.

        Args:
            event: The lifecycle event
            account: Account owning the subscription's customer, if any
            active_subscriptions: Customer's active subscriptions (created and
                deleted events only)
            now: Current time in epoch seconds

        Returns:
            ReconciliationResult describing cancellations, bonus and the
            account update to apply
        """
        if event.type == SubscriptionEventType.DELETED:
            return self._reconcile_deleted(event, account, active_subscriptions)
        return self._reconcile_upsert(event, account, active_subscriptions, now)

    # =========================================================================
    # Created / Updated
    # =========================================================================

    def _reconcile_upsert(
        self,
        event: SubscriptionEvent,
        account: Optional[Account],
        active_subscriptions: Sequence[ProviderSubscription],
        now: int,
    ) -> ReconciliationResult:
        subscription = event.subscription
        result = ReconciliationResult(
            event_type=event.type,
            subscription_id=subscription.id,
        )

        if event.type == SubscriptionEventType.CREATED:
            # Let the replaced subscriptions run out their current period.
            result.cancel_subscription_ids = [
                existing.id
                for existing in active_subscriptions
                if existing.id != subscription.id
            ]
            result.bonus_credits = self._signup_bonus(subscription, account)

        if event.type == SubscriptionEventType.UPDATED and subscription.is_plan_change:
            result.skipped_reason = "update is part of a plan change"
            return result

        base_price = self._catalog.base_price_id(subscription.items)
        if base_price is None:
            result.skipped_reason = "subscription has no base price"
            return result

        if account is None:
            result.skipped_reason = "no account for customer"
            return result

        info = self._catalog.resolve(base_price)
        digests = count_active_digests(
            account.morning_digest,
            account.day_digest,
            account.evening_digest,
        )
        allowance = calculate_allowance(
            info.tier,
            account.phone_number_country,
            days_until_billing(subscription.current_period_end, now),
            digests,
            is_digital_detox=self._catalog.is_digital_detox(subscription.items),
            is_sentinel_us_price=self._catalog.is_sentinel_us(base_price),
            is_sentinel_price=self._catalog.is_sentinel(base_price),
            is_self_hosting_price=self._catalog.is_self_hosting(base_price),
        )

        update = AccountSubscriptionUpdate(
            sub_tier=allowance.tier_override or info.tier,
            sub_country=info.country,
            credits_left=allowance.credits,
        )
        if subscription.current_period_end is not None:
            update.next_billing_date_timestamp = subscription.current_period_end
        result.update = update
        return result

    def _signup_bonus(
        self,
        subscription: ProviderSubscription,
        account: Optional[Account],
    ) -> float:
        """Bonus for a new hosted plan in an eligible country."""
        if account is None or not account.phone_number:
            return 0.0
        if not account.phone_number.startswith(SIGNUP_BONUS_PHONE_PREFIXES):
            return 0.0

        base_price = self._catalog.base_price_id(subscription.items)
        if base_price is None:
            return 0.0
        is_hosted = (
            self._catalog.resolve(base_price).tier == Tier.TIER_2
            and not self._catalog.is_digital_detox(subscription.items)
        )
        return self._signup_bonus_credits if is_hosted else 0.0

    # =========================================================================
    # Deleted
    # =========================================================================

    def _reconcile_deleted(
        self,
        event: SubscriptionEvent,
        account: Optional[Account],
        active_subscriptions: Sequence[ProviderSubscription],
    ) -> ReconciliationResult:
        subscription = event.subscription
        result = ReconciliationResult(
            event_type=event.type,
            subscription_id=subscription.id,
        )

        if subscription.is_plan_change:
            result.skipped_reason = "deletion is part of a plan change"
            return result

        if account is None:
            result.skipped_reason = "no account for customer"
            return result

        base_price = self._catalog.base_price_id(subscription.items)
        deleted_tier = self._catalog.classify(base_price).tier if base_price else None
        if deleted_tier != account.sub_tier:
            result.skipped_reason = (
                f"deleted tier {deleted_tier} does not match current tier "
                f"{account.sub_tier}"
            )
            return result

        remaining = [s for s in active_subscriptions if s.id != subscription.id]
        if not remaining:
            # Credits are kept until used up or overwritten by a later event.
            result.update = AccountSubscriptionUpdate(sub_tier=None, sub_country=None)
            return result

        best = highest_tier(
            self._catalog.classify(price)
            for price in (self._catalog.base_price_id(s.items) for s in remaining)
            if price is not None
        )
        if best is not None:
            result.update = AccountSubscriptionUpdate(
                sub_tier=best.tier,
                sub_country=best.country,
            )
        return result
