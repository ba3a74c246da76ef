"""
Billing Service

Account-facing billing flows: subscription and credit checkouts, the
billing portal, the manual next-billing-date refresh, automatic top-up
charges and completed one-time checkout sessions.
"""

import logging
from typing import Any, Optional

from tierwise.config.settings import Settings, get_settings
from tierwise.domain.credits import NORTH_AMERICA_PHONE_COUNTRIES
from tierwise.domain.price_catalog import ADDON_SETTINGS, PriceCatalog
from tierwise.domain.subscription import (
    Account,
    CheckoutResponse,
    SubscriptionCheckoutRequest,
    SubscriptionType,
    stripe_to_dict,
    stripe_object_id,
)
from tierwise.infrastructure.db.repositories.account_repository import AccountRepository
from tierwise.infrastructure.exceptions import (
    ConfigurationError,
    NotFoundError,
    ValidationError,
)
from tierwise.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
)


logger = logging.getLogger(__name__)

# Add-ons that are free and need no line item.
FREE_ADDONS = frozenset({"cold_turkey"})


class BillingService:
    """
    Billing operations for a single account.

    Args:
        catalog: Price catalog used for checkout price selection
        stripe_service: Stripe client wrapper
        accounts: Account repository bound to the request session
        settings: Application settings (defaults to the cached instance)
    """

    def __init__(
        self,
        catalog: PriceCatalog,
        stripe_service: StripeService,
        accounts: AccountRepository,
        settings: Optional[Settings] = None,
    ):
        self._catalog = catalog
        self._stripe = stripe_service
        self._accounts = accounts
        self._settings = settings or get_settings()

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _ensure_customer(self, account: Account) -> str:
        """Return the account's Stripe customer id, creating one if needed."""
        customer = await self._stripe.get_or_create_customer(
            account.id,
            account.email or "",
            existing_customer_id=account.stripe_customer_id,
        )
        if customer.id != account.stripe_customer_id:
            await self._accounts.set_stripe_customer_id(account.id, customer.id)
        return customer.id

    @staticmethod
    def _require_customer_id(account: Account) -> str:
        if not account.stripe_customer_id:
            raise ValidationError("No Stripe customer ID found for user")
        return account.stripe_customer_id

    def _subscription_price_ids(
        self,
        account: Account,
        request: SubscriptionCheckoutRequest,
    ) -> list[str]:
        if request.subscription_type == SubscriptionType.SELF_HOSTING:
            base_price = self._catalog.self_hosting_price_id
            missing = "STRIPE_SUBSCRIPTION_SELF_HOSTING_PRICE_ID"
        else:
            base_price = self._catalog.hosted_price_for(account.phone_number_country)
            missing = "hosted plan price for the account's country"
        if not base_price:
            raise ConfigurationError("Subscription price is not configured", missing_keys=[missing])

        price_ids = [base_price]
        for addon in request.addons or []:
            if addon in FREE_ADDONS or addon not in ADDON_SETTINGS:
                continue
            addon_price = self._catalog.addon_price_for(addon)
            if not addon_price:
                raise ConfigurationError(
                    f"Add-on {addon} is not configured",
                    missing_keys=[ADDON_SETTINGS[addon].upper()],
                )
            price_ids.append(addon_price)
        return price_ids

    # =========================================================================
    # Checkout
    # =========================================================================

    async def start_subscription_checkout(
        self,
        account_id: int,
        request: SubscriptionCheckoutRequest,
    ) -> CheckoutResponse:
        """
        Create a subscription checkout for an account.

        An existing active subscription turns the checkout into a plan
        change; otherwise new hosted plans in North America get a trial.

        Args:
            account_id: Account starting the checkout
            request: Plan type and add-ons

        Returns:
            CheckoutResponse with the Stripe Checkout URL
        """
        account = await self._accounts.get_account(account_id)
        price_ids = self._subscription_price_ids(account, request)
        customer_id = await self._ensure_customer(account)

        active = await self._stripe.list_active_subscriptions(customer_id)
        replacing = active[0].id if active else None

        trial_days = None
        phone_country = (account.phone_number_country or "").upper()
        if (
            replacing is None
            and request.subscription_type == SubscriptionType.HOSTED
            and phone_country in NORTH_AMERICA_PHONE_COUNTRIES
        ):
            trial_days = self._settings.hosted_trial_days

        session = await self._stripe.create_subscription_checkout_session(
            customer_id,
            account_id,
            price_ids,
            replacing_subscription_id=replacing,
            trial_days=trial_days,
            collect_shipping=any(a.endswith("_ship") for a in request.addons or []),
        )
        return CheckoutResponse(
            url=session.url,
            message="Redirecting to Stripe Checkout for subscription",
        )

    async def start_credits_checkout(self, account_id: int, amount_dollars: float) -> CheckoutResponse:
        """Create a one-time checkout for overage credits."""
        account = await self._accounts.get_account(account_id)
        customer_id = await self._ensure_customer(account)

        session = await self._stripe.create_credits_checkout_session(
            customer_id,
            account_id,
            amount_dollars,
        )
        await self._accounts.set_checkout_session_id(account_id, session.id)
        return CheckoutResponse(url=session.url, message="Redirecting to Stripe Checkout")

    async def create_portal(self, account_id: int) -> CheckoutResponse:
        account = await self._accounts.get_account(account_id)
        session = await self._stripe.create_portal_session(self._require_customer_id(account))
        return CheckoutResponse(url=session.url, message="Redirecting to Stripe Customer Portal")

    # =========================================================================
    # Manual reconciliation
    # =========================================================================

    async def refresh_next_billing_date(self, account_id: int) -> int:
        """
        Store the latest period end among the account's active subscriptions.

        Returns:
            The stored epoch timestamp

        Raises:
            NotFoundError if the customer has no active subscription with
            a period end
        """
        account = await self._accounts.get_account(account_id)
        active = await self._stripe.list_active_subscriptions(self._require_customer_id(account))

        period_ends = [s.current_period_end for s in active if s.current_period_end is not None]
        if not period_ends:
            raise NotFoundError(
                "No active subscription found",
                operation="next_billing_date",
                table="accounts",
            )

        next_billing_date = max(period_ends)
        await self._accounts.set_next_billing_date(account_id, next_billing_date)
        logger.info(f"Account {account_id} next billing date set to {next_billing_date}")
        return next_billing_date

    # =========================================================================
    # Automatic top-up
    # =========================================================================

    async def automatic_charge(self, account_id: int) -> float:
        """
        Charge the saved card and credit the account.

        Returns:
            The amount charged and credited

        Raises:
            ValidationError if the account has no customer or payment method,
            or the payment did not succeed
        """
        account = await self._accounts.get_account(account_id)
        customer_id = self._require_customer_id(account)
        if not account.stripe_payment_method_id:
            raise ValidationError("No Stripe payment method found for user")

        amount = account.charge_back_to or self._settings.default_charge_back_to
        intent = await self._stripe.create_off_session_charge(
            customer_id,
            account.stripe_payment_method_id,
            amount,
        )
        if intent.status != "succeeded":
            logger.warning(f"Automatic charge for account {account_id} ended in status {intent.status}")
            raise ValidationError(
                "Payment intent failed or requires action",
                details={"status": intent.status},
            )

        await self._accounts.increase_credits(account_id, amount)
        return amount

    # =========================================================================
    # Completed checkout sessions
    # =========================================================================

    async def handle_checkout_completed(self, session: Any) -> bool:
        """
        Credit an account for a completed one-time checkout.

        Subscription checkouts are ignored; their effects arrive through
        the subscription lifecycle events.

        Args:
            session: Stripe checkout session object or payload

        Returns:
            True if credits were added
        """
        data = stripe_to_dict(session)
        if data.get("mode") != "payment":
            logger.info(f"Ignoring {data.get('mode')} checkout session {data.get('id')}")
            return False

        customer_id = stripe_object_id(data.get("customer"))
        if not customer_id:
            logger.warning(f"Checkout session {data.get('id')} has no customer")
            return False

        shipping = stripe_to_dict(data.get("shipping_details"))
        if not shipping:
            shipping = stripe_to_dict(stripe_to_dict(data.get("collected_information")).get("shipping_details"))
        address = stripe_to_dict(shipping.get("address"))
        if address:
            try:
                await self._stripe.update_customer_address(customer_id, address)
            except StripeServiceError as e:
                logger.error(f"Failed to update customer address for {customer_id}: {e}")

        payment_intent_id = stripe_object_id(data.get("payment_intent"))
        if not payment_intent_id:
            raise ValidationError("No payment intent in session")
        intent = await self._stripe.retrieve_payment_intent(payment_intent_id)

        account = await self._accounts.get_by_stripe_customer_id(customer_id)
        if account is None:
            logger.warning(f"No account for customer {customer_id}, checkout {data.get('id')} not credited")
            return False

        payment_method_id = stripe_object_id(stripe_to_dict(intent).get("payment_method"))
        if not payment_method_id:
            logger.warning(f"Payment intent {payment_intent_id} has no payment method")
            return False
        await self._accounts.set_payment_method_id(account.id, payment_method_id)

        amount = (data.get("amount_subtotal") or 0) / 100
        await self._accounts.increase_credits(account.id, amount)
        logger.info(f"Added {amount} credits to account {account.id} from checkout {data.get('id')}")
        return True
