"""
Unit tests for the subscription lifecycle reconciler.

The reconciler is pure, so every scenario is a plain function call.
"""

import pytest

from tierwise.domain.reconciler import SubscriptionEvent, SubscriptionReconciler
from tierwise.domain.subscription import (
    Country,
    SubscriptionEventType,
    Tier,
)

from conftest import (
    BASIC_US,
    DETOX_US,
    HARD_MODE_UK,
    SELF_HOSTING,
    SENTINEL_FI,
    SENTINEL_US,
    TOPUP,
    make_catalog,
    make_subscription,
)


NOW = 1_700_000_000
DAY = 86400

CREATED = SubscriptionEventType.CREATED
UPDATED = SubscriptionEventType.UPDATED
DELETED = SubscriptionEventType.DELETED


@pytest.fixture
def reconciler():
    return SubscriptionReconciler(make_catalog(), signup_bonus_credits=10.0)


def event(event_type, **kwargs):
    return SubscriptionEvent(type=event_type, subscription=make_subscription(**kwargs))


class TestCreatedAndUpdated:

    def test_sentinel_us_allowance(self, reconciler, account):
        """US Sentinel, 10 days left, two digests: 400 - 20."""
        result = reconciler.reconcile(
            event(CREATED, prices=(SENTINEL_US,), current_period_end=NOW + 10 * DAY),
            account,
            [],
            NOW,
        )
        assert not result.skipped
        assert result.update.credits_left == 380.0
        assert result.update.sub_tier == Tier.TIER_2
        assert result.update.sub_country == Country.US
        assert result.update.next_billing_date_timestamp == NOW + 10 * DAY

    def test_digital_detox_allowance(self, reconciler, account):
        result = reconciler.reconcile(
            event(UPDATED, prices=(BASIC_US, DETOX_US), current_period_end=NOW + 3 * DAY),
            account,
            [],
            NOW,
        )
        assert result.update.credits_left == 100.0
        assert result.update.sub_tier == Tier.TIER_1

    def test_self_hosting_forces_tier_3(self, reconciler, account):
        result = reconciler.reconcile(
            event(CREATED, prices=(SELF_HOSTING,), current_period_end=NOW + 5 * DAY),
            account,
            [],
            NOW,
        )
        assert result.update.sub_tier == Tier.TIER_3
        assert result.update.credits_left == 0.0
        assert result.update.sub_country is None

    def test_topup_item_is_not_the_base_price(self, reconciler, account):
        result = reconciler.reconcile(
            event(UPDATED, prices=(TOPUP, BASIC_US)),
            account,
            [],
            NOW,
        )
        assert result.update.sub_tier == Tier.TIER_1
        assert result.update.credits_left == 40.0

    def test_missing_period_end_uses_30_days_and_keeps_billing_date(self, reconciler, account):
        result = reconciler.reconcile(event(UPDATED, prices=(SENTINEL_US,)), account, [], NOW)
        assert result.update.credits_left == 400.0 - 30 * 2
        assert "next_billing_date_timestamp" not in result.update.model_dump(exclude_unset=True)

    def test_update_sets_all_subscription_fields(self, reconciler, account):
        result = reconciler.reconcile(
            event(UPDATED, prices=(HARD_MODE_UK,), current_period_end=NOW + DAY),
            account,
            [],
            NOW,
        )
        assert set(result.update.model_dump(exclude_unset=True)) == {
            "sub_tier",
            "sub_country",
            "credits_left",
            "next_billing_date_timestamp",
        }

    def test_plan_change_update_is_skipped(self, reconciler, account):
        result = reconciler.reconcile(
            event(UPDATED, prices=(SENTINEL_US,), metadata={"plan_change": "true"}),
            account,
            [],
            NOW,
        )
        assert result.skipped
        assert result.update is None
        assert result.cancel_subscription_ids == []

    def test_plan_change_created_event_is_still_processed(self, reconciler, account):
        result = reconciler.reconcile(
            event(CREATED, prices=(SENTINEL_US,), metadata={"plan_change": "true"}),
            account,
            [make_subscription("sub_old", prices=(BASIC_US,))],
            NOW,
        )
        assert not result.skipped
        assert result.cancel_subscription_ids == ["sub_old"]

    def test_no_base_price_is_skipped(self, reconciler, account):
        result = reconciler.reconcile(event(UPDATED, prices=(TOPUP,)), account, [], NOW)
        assert result.skipped
        assert result.update is None

    def test_unknown_account_is_skipped(self, reconciler):
        result = reconciler.reconcile(event(UPDATED, prices=(SENTINEL_US,)), None, [], NOW)
        assert result.skipped
        assert result.update is None


class TestCreatedSideEffects:

    def test_cancels_every_other_active_subscription(self, reconciler, account):
        active = [
            make_subscription("sub_old_1", prices=(BASIC_US,)),
            make_subscription("sub_new", prices=(SENTINEL_US,)),
            make_subscription("sub_old_2", prices=(HARD_MODE_UK,)),
        ]
        result = reconciler.reconcile(event(CREATED, prices=(SENTINEL_US,)), account, active, NOW)
        assert result.cancel_subscription_ids == ["sub_old_1", "sub_old_2"]

    def test_updated_never_cancels(self, reconciler, account):
        active = [make_subscription("sub_old", prices=(BASIC_US,))]
        result = reconciler.reconcile(event(UPDATED, prices=(SENTINEL_US,)), account, active, NOW)
        assert result.cancel_subscription_ids == []

    def test_cancellations_happen_without_account(self, reconciler):
        active = [make_subscription("sub_old", prices=(BASIC_US,))]
        result = reconciler.reconcile(event(CREATED, prices=(SENTINEL_US,)), None, active, NOW)
        assert result.skipped
        assert result.cancel_subscription_ids == ["sub_old"]

    @pytest.mark.parametrize("phone", ["+358401234567", "+447700900123", "+61412345678", "+31612345678"])
    def test_signup_bonus_for_eligible_country(self, reconciler, account, phone):
        eligible = account.model_copy(update={"phone_number": phone, "phone_number_country": None})
        result = reconciler.reconcile(event(CREATED, prices=(SENTINEL_FI,)), eligible, [], NOW)
        assert result.bonus_credits == 10.0

    def test_no_signup_bonus_for_us(self, reconciler, account):
        result = reconciler.reconcile(event(CREATED, prices=(SENTINEL_US,)), account, [], NOW)
        assert result.bonus_credits == 0.0

    def test_no_signup_bonus_for_tier_1(self, reconciler, account):
        finnish = account.model_copy(update={"phone_number": "+358401234567"})
        result = reconciler.reconcile(event(CREATED, prices=(BASIC_US,)), finnish, [], NOW)
        assert result.bonus_credits == 0.0

    def test_no_signup_bonus_for_digital_detox(self, reconciler, account):
        finnish = account.model_copy(update={"phone_number": "+358401234567"})
        result = reconciler.reconcile(
            event(CREATED, prices=(SENTINEL_FI, DETOX_US)), finnish, [], NOW
        )
        assert result.bonus_credits == 0.0

    def test_no_signup_bonus_on_update(self, reconciler, account):
        finnish = account.model_copy(update={"phone_number": "+358401234567"})
        result = reconciler.reconcile(event(UPDATED, prices=(SENTINEL_FI,)), finnish, [], NOW)
        assert result.bonus_credits == 0.0


class TestDeleted:

    def test_stale_deletion_leaves_account_unchanged(self, reconciler, account):
        """Tier 1 deleted while tier 2 is stored: guard fires."""
        stored = account.model_copy(update={"sub_tier": Tier.TIER_2, "sub_country": Country.US})
        active = [make_subscription("sub_sentinel", prices=(SENTINEL_US,))]
        result = reconciler.reconcile(
            event(DELETED, sub_id="sub_basic", prices=(BASIC_US,)), stored, active, NOW
        )
        assert result.skipped
        assert result.update is None

    def test_last_subscription_deleted_clears_tier_and_country(self, reconciler, account):
        stored = account.model_copy(update={
            "sub_tier": Tier.TIER_2,
            "sub_country": Country.US,
            "credits_left": 250.0,
        })
        result = reconciler.reconcile(
            event(DELETED, sub_id="sub_sentinel", prices=(SENTINEL_US,)), stored, [], NOW
        )
        assert not result.skipped
        assert result.update.model_dump(exclude_unset=True) == {
            "sub_tier": None,
            "sub_country": None,
        }

    def test_deleted_falls_back_to_highest_remaining(self, reconciler, account):
        stored = account.model_copy(update={"sub_tier": Tier.TIER_1, "sub_country": Country.US})
        active = [
            make_subscription("sub_hard_mode", prices=(HARD_MODE_UK,)),
            make_subscription("sub_fi", prices=(SENTINEL_FI,)),
        ]
        result = reconciler.reconcile(
            event(DELETED, sub_id="sub_basic", prices=(BASIC_US,)), stored, active, NOW
        )
        assert result.update.sub_tier == Tier.TIER_2
        assert result.update.sub_country == Country.FI
        assert "credits_left" not in result.update.model_dump(exclude_unset=True)

    @pytest.mark.parametrize("self_hosting_first", [True, False])
    def test_deleted_falls_back_to_self_hosting_in_any_order(
        self, reconciler, account, self_hosting_first
    ):
        stored = account.model_copy(update={"sub_tier": Tier.TIER_1, "sub_country": Country.US})
        active = [
            make_subscription("sub_sentinel", prices=(SENTINEL_FI,)),
            make_subscription("sub_self", prices=(SELF_HOSTING,)),
        ]
        if self_hosting_first:
            active.reverse()
        result = reconciler.reconcile(
            event(DELETED, sub_id="sub_basic", prices=(BASIC_US,)), stored, active, NOW
        )
        assert result.update.sub_tier == Tier.TIER_3
        assert result.update.sub_country is None

    def test_deleted_subscription_still_listed_is_ignored(self, reconciler, account):
        stored = account.model_copy(update={"sub_tier": Tier.TIER_1})
        active = [make_subscription("sub_basic", prices=(BASIC_US,))]
        result = reconciler.reconcile(
            event(DELETED, sub_id="sub_basic", prices=(BASIC_US,)), stored, active, NOW
        )
        assert result.update.sub_tier is None

    def test_last_self_hosting_deleted_clears_tier(self, reconciler, account):
        stored = account.model_copy(update={"sub_tier": Tier.TIER_3})
        result = reconciler.reconcile(
            event(DELETED, sub_id="sub_self", prices=(SELF_HOSTING,)), stored, [], NOW
        )
        assert result.update.sub_tier is None

    def test_plan_change_deletion_is_skipped(self, reconciler, account):
        stored = account.model_copy(update={"sub_tier": Tier.TIER_2})
        result = reconciler.reconcile(
            event(DELETED, prices=(SENTINEL_US,), metadata={"plan_change": "true"}),
            stored,
            [],
            NOW,
        )
        assert result.skipped
        assert result.update is None

    def test_deletion_without_account_is_skipped(self, reconciler):
        result = reconciler.reconcile(event(DELETED, prices=(SENTINEL_US,)), None, [], NOW)
        assert result.skipped
