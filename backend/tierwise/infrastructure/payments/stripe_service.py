"""
Stripe Payment Service

Infrastructure service wrapping the Stripe SDK: customers, hosted
checkout, billing portal, subscription listing and cancellation,
off-session charges and webhook verification.
"""

import logging
from typing import Any, Optional

import stripe
from stripe import StripeError

from tierwise.config.settings import Settings, get_settings
from tierwise.domain.subscription import ProviderSubscription, stripe_to_dict
from tierwise.infrastructure.exceptions import ConfigurationError, TierwiseError


logger = logging.getLogger(__name__)

# Countries physical add-ons can be shipped to.
SHIPPING_COUNTRIES = ["FI", "NL", "GB"]

# Required free-text question on subscription checkouts.
REFERRAL_SOURCE_FIELD = {
    "key": "referral_source",
    "label": {"type": "custom", "custom": "Where did you hear about us?"},
    "type": "text",
    "optional": False,
}


class StripeServiceError(TierwiseError):
    """Raised when a Stripe API call fails."""
    pass


def _stripe_message(error: StripeError) -> str:
    return getattr(error, "user_message", None) or str(error)


class StripeService:
    """
    Stripe payment processing service.

    The API key is applied to the SDK on construction; calls that need it
    fail with ConfigurationError when it is not configured.

    Args:
        settings: Application settings (defaults to the cached instance)
    """

    def __init__(self, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self._api_key = settings.stripe_secret_key
        self._webhook_secret = settings.stripe_webhook_secret
        self._credits_product_id = settings.stripe_credits_product_id
        self._frontend_url = settings.frontend_url.rstrip("/")

        if self._api_key:
            stripe.api_key = self._api_key

    def _require_api_key(self) -> None:
        if not self._api_key:
            raise ConfigurationError(
                "Stripe secret key is not configured",
                missing_keys=["STRIPE_SECRET_KEY"],
            )

    @property
    def billing_url(self) -> str:
        return f"{self._frontend_url}/billing"

    # =========================================================================
    # Customer Management
    # =========================================================================

    async def create_customer(self, account_id: int, email: str) -> stripe.Customer:
        """
        Create a new Stripe customer.

        Args:
            account_id: Internal account id (stored in metadata)
            email: Customer email for receipts

        Returns:
            stripe.Customer object
        """
        self._require_api_key()
        try:
            customer = stripe.Customer.create(
                email=email,
                metadata={"user_id": str(account_id)},
            )
            logger.info(f"Created Stripe customer {customer.id} for account {account_id}")
            return customer

        except StripeError as e:
            logger.error(f"Failed to create Stripe customer: {e}")
            raise StripeServiceError(f"Failed to create customer: {_stripe_message(e)}", original_error=e)

    async def get_or_create_customer(
        self,
        account_id: int,
        email: str,
        existing_customer_id: Optional[str] = None,
    ) -> stripe.Customer:
        """
        Get existing customer or create new one.

        A stored customer id that Stripe no longer knows, or that points to
        a deleted customer, is replaced by a new customer.
        """
        self._require_api_key()
        if existing_customer_id:
            try:
                customer = stripe.Customer.retrieve(existing_customer_id)
                if not stripe_to_dict(customer).get("deleted"):
                    return customer
            except StripeError:
                logger.warning(f"Customer {existing_customer_id} not found, creating new")

        return await self.create_customer(account_id, email)

    async def update_customer_address(self, customer_id: str, address: dict) -> None:
        """Copy an address onto the customer record."""
        self._require_api_key()
        try:
            stripe.Customer.modify(
                customer_id,
                address={
                    "line1": address.get("line1"),
                    "city": address.get("city"),
                    "country": address.get("country"),
                    "postal_code": address.get("postal_code"),
                    "state": address.get("state"),
                },
            )
        except StripeError as e:
            raise StripeServiceError(f"Failed to update customer address: {_stripe_message(e)}", original_error=e)

    # =========================================================================
    # Checkout Sessions
    # =========================================================================

    async def create_subscription_checkout_session(
        self,
        customer_id: str,
        account_id: int,
        price_ids: list[str],
        replacing_subscription_id: Optional[str] = None,
        trial_days: Optional[int] = None,
        collect_shipping: bool = False,
    ) -> stripe.checkout.Session:
        """
        Create a hosted Checkout Session for a subscription.

        Args:
            customer_id: Stripe customer ID
            account_id: Internal account id for metadata
            price_ids: Base price followed by any add-on prices
            replacing_subscription_id: Active subscription this checkout
                replaces; tags the new subscription as a plan change
            trial_days: Trial period for a new subscription
            collect_shipping: Whether to ask for a shipping address

        Returns:
            stripe.checkout.Session with checkout URL
        """
        self._require_api_key()

        subscription_data: dict[str, Any] = {}
        success_url = f"{self.billing_url}?subscription=success"
        if replacing_subscription_id:
            subscription_data["metadata"] = {
                "replacing_subscription": replacing_subscription_id,
                "plan_change": "true",
                "user_id": str(account_id),
            }
            success_url = f"{self.billing_url}?subscription=changed"
        elif trial_days:
            subscription_data["trial_period_days"] = trial_days

        params: dict[str, Any] = dict(
            customer=customer_id,
            mode="subscription",
            line_items=[{"price": price_id, "quantity": 1} for price_id in price_ids],
            success_url=success_url,
            cancel_url=f"{self.billing_url}?subscription=canceled",
            allow_promotion_codes=True,
            billing_address_collection="required",
            automatic_tax={"enabled": True},
            tax_id_collection={"enabled": True},
            customer_update={"address": "auto", "name": "auto", "shipping": "auto"},
            custom_fields=[REFERRAL_SOURCE_FIELD],
            subscription_data=subscription_data,
        )
        if collect_shipping:
            params["shipping_address_collection"] = {"allowed_countries": SHIPPING_COUNTRIES}

        try:
            session = stripe.checkout.Session.create(**params)
            logger.info(
                f"Created subscription checkout session {session.id} for account {account_id}, "
                f"plan_change={bool(replacing_subscription_id)}"
            )
            return session

        except StripeError as e:
            logger.error(f"Failed to create subscription checkout session: {e}")
            raise StripeServiceError(
                f"Failed to create Subscription Checkout Session: {_stripe_message(e)}",
                original_error=e,
            )

    async def create_credits_checkout_session(
        self,
        customer_id: str,
        account_id: int,
        amount_dollars: float,
    ) -> stripe.checkout.Session:
        """
        Create a one-time payment Checkout Session for overage credits.

        The card is saved for later off-session charges.
        """
        self._require_api_key()
        if not self._credits_product_id:
            raise ConfigurationError(
                "Credits product is not configured",
                missing_keys=["STRIPE_CREDITS_PRODUCT_ID"],
            )

        amount_cents = int(round(amount_dollars * 100))
        try:
            session = stripe.checkout.Session.create(
                customer=customer_id,
                mode="payment",
                payment_method_types=["card"],
                line_items=[{
                    "price_data": {
                        "currency": "eur",
                        "product": self._credits_product_id,
                        "unit_amount": amount_cents,
                    },
                    "quantity": 1,
                }],
                success_url=self.billing_url,
                cancel_url=self.billing_url,
                customer_update={"address": "auto"},
                payment_intent_data={"setup_future_usage": "off_session"},
                automatic_tax={"enabled": True},
                billing_address_collection="required",
                allow_promotion_codes=True,
                metadata={"user_id": str(account_id)},
            )
            logger.info(f"Created credits checkout session {session.id} for account {account_id} ({amount_cents} cents)")
            return session

        except StripeError as e:
            logger.error(f"Failed to create credits checkout session: {e}")
            raise StripeServiceError(f"Failed to create Checkout Session: {_stripe_message(e)}", original_error=e)

    # =========================================================================
    # Customer Portal
    # =========================================================================

    async def create_portal_session(self, customer_id: str) -> stripe.billing_portal.Session:
        """
        Create a Billing Portal session for self-service management.

        Args:
            customer_id: Stripe customer ID

        Returns:
            stripe.billing_portal.Session with portal URL
        """
        self._require_api_key()
        try:
            session = stripe.billing_portal.Session.create(
                customer=customer_id,
                return_url=self.billing_url,
            )
            logger.info(f"Created portal session for customer {customer_id}")
            return session

        except StripeError as e:
            logger.error(f"Failed to create portal session: {e}")
            raise StripeServiceError(f"Failed to create portal: {_stripe_message(e)}", original_error=e)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def list_active_subscriptions(self, customer_id: str) -> list[ProviderSubscription]:
        """
        List a customer's active subscriptions.

        Args:
            customer_id: Stripe customer ID

        Returns:
            Active subscriptions in the order Stripe reports them
        """
        self._require_api_key()
        try:
            result = stripe.Subscription.list(customer=customer_id, status="active")
            return [
                ProviderSubscription.from_stripe(sub)
                for sub in result.auto_paging_iter()
            ]
        except StripeError as e:
            logger.error(f"Failed to list subscriptions for {customer_id}: {e}")
            raise StripeServiceError(f"Failed to list subscriptions: {_stripe_message(e)}", original_error=e)

    async def schedule_cancellation(self, subscription_id: str) -> None:
        """Cancel a subscription at the end of its current period."""
        self._require_api_key()
        try:
            stripe.Subscription.modify(subscription_id, cancel_at_period_end=True)
            logger.info(f"Scheduled cancellation of subscription {subscription_id} at period end")
        except StripeError as e:
            raise StripeServiceError(f"Failed to cancel {subscription_id}: {_stripe_message(e)}", original_error=e)

    # =========================================================================
    # Payments
    # =========================================================================

    async def retrieve_payment_intent(self, payment_intent_id: str) -> stripe.PaymentIntent:
        self._require_api_key()
        try:
            return stripe.PaymentIntent.retrieve(payment_intent_id)
        except StripeError as e:
            raise StripeServiceError(f"Failed to retrieve PaymentIntent: {_stripe_message(e)}", original_error=e)

    async def create_off_session_charge(
        self,
        customer_id: str,
        payment_method_id: str,
        amount: float,
    ) -> stripe.PaymentIntent:
        """
        Charge a saved card without the customer present.

        Args:
            customer_id: Stripe customer ID
            payment_method_id: Saved payment method
            amount: Amount in euros

        Returns:
            The confirmed stripe.PaymentIntent
        """
        self._require_api_key()
        try:
            intent = stripe.PaymentIntent.create(
                amount=int(round(amount * 100)),
                currency="eur",
                customer=customer_id,
                payment_method=payment_method_id,
                payment_method_types=["card"],
                confirm=True,
                off_session=True,
            )
            logger.info(f"Off-session charge for {customer_id} finished with status {intent.status}")
            return intent
        except StripeError as e:
            logger.error(f"Failed to create PaymentIntent: {e}")
            raise StripeServiceError(f"Failed to create PaymentIntent: {_stripe_message(e)}", original_error=e)

    # =========================================================================
    # Webhook Verification
    # =========================================================================

    def verify_webhook_signature(self, payload: str, signature: str) -> stripe.Event:
        """
        Verify webhook signature and construct event.

        Args:
            payload: Raw request body
            signature: Stripe-Signature header

        Returns:
            stripe.Event if valid

        Raises:
            ConfigurationError if no webhook secret is configured
            StripeServiceError if payload or signature is invalid
        """
        if not self._webhook_secret:
            raise ConfigurationError(
                "Stripe webhook secret is not configured",
                missing_keys=["STRIPE_WEBHOOK_SECRET"],
            )
        try:
            return stripe.Webhook.construct_event(payload, signature, self._webhook_secret)

        except ValueError as e:
            raise StripeServiceError(f"Invalid payload: {e}")
        except stripe.SignatureVerificationError as e:
            raise StripeServiceError(f"Invalid signature: {e}")


# =============================================================================
# Singleton Instance (Dependency Injection Ready)
# =============================================================================

_stripe_service_instance: Optional[StripeService] = None


def get_stripe_service() -> StripeService:
    """Get or create Stripe service singleton."""
    global _stripe_service_instance

    if _stripe_service_instance is None:
        _stripe_service_instance = StripeService()

    return _stripe_service_instance
