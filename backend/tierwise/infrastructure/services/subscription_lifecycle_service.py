"""
Subscription Lifecycle Service

Runs one subscription lifecycle event end to end: gathers the account and
the customer's active subscriptions, asks the reconciler for a decision,
then carries it out against Stripe and the database.
"""

import logging
import time
from typing import Callable, Optional

from sqlalchemy.exc import SQLAlchemyError

from tierwise.domain.reconciler import SubscriptionEvent, SubscriptionReconciler
from tierwise.domain.subscription import (
    AccountSubscriptionUpdate,
    ProviderSubscription,
    ReconciliationResult,
    SubscriptionEventType,
)
from tierwise.infrastructure.db.repositories.account_repository import AccountRepository
from tierwise.infrastructure.payments.stripe_service import (
    StripeService,
    StripeServiceError,
)


logger = logging.getLogger(__name__)

# Events whose decision depends on the customer's other subscriptions.
_NEEDS_ACTIVE_SUBSCRIPTIONS = (
    SubscriptionEventType.CREATED,
    SubscriptionEventType.DELETED,
)


class SubscriptionLifecycleService:
    """
    Applies reconciliation results for subscription webhooks.

    Cancellation and persistence failures are logged and do not abort the
    event; listing the customer's subscriptions must succeed.

    Args:
        reconciler: Pure decision logic
        stripe_service: Stripe client wrapper
        accounts: Account repository bound to the request session
        clock: Returns the current time in epoch seconds
    """

    def __init__(
        self,
        reconciler: SubscriptionReconciler,
        stripe_service: StripeService,
        accounts: AccountRepository,
        clock: Callable[[], float] = time.time,
    ):
        self._reconciler = reconciler
        self._stripe = stripe_service
        self._accounts = accounts
        self._clock = clock

    async def handle_event(self, event: SubscriptionEvent) -> ReconciliationResult:
        """
        Reconcile and apply one lifecycle event.

        Args:
            event: Typed subscription event

        Returns:
            The ReconciliationResult that was applied
        """
        subscription = event.subscription
        customer_id = subscription.customer_id

        account = None
        if customer_id:
            account = await self._accounts.get_account_by_customer(customer_id)

        active: list[ProviderSubscription] = []
        if customer_id and event.type in _NEEDS_ACTIVE_SUBSCRIPTIONS:
            active = await self._stripe.list_active_subscriptions(customer_id)

        result = self._reconciler.reconcile(
            event,
            account,
            active,
            now=int(self._clock()),
        )

        for subscription_id in result.cancel_subscription_ids:
            try:
                await self._stripe.schedule_cancellation(subscription_id)
            except StripeServiceError as e:
                logger.error(f"Failed to schedule cancellation of {subscription_id}: {e}")

        if result.skipped:
            logger.info(
                f"Skipped {event.type.value} for subscription {subscription.id}: "
                f"{result.skipped_reason}"
            )
            if result.bonus_credits and account is not None:
                await self._apply(account.id, None, result.bonus_credits)
            return result

        if account is not None and (result.update is not None or result.bonus_credits):
            await self._apply(account.id, result.update, result.bonus_credits)
            logger.info(
                f"Reconciled {event.type.value} for subscription {subscription.id} "
                f"on account {account.id}"
            )

        return result

    async def _apply(
        self,
        account_id: int,
        update: Optional[AccountSubscriptionUpdate],
        bonus_credits: float,
    ) -> None:
        try:
            await self._accounts.apply_reconciliation(account_id, update, bonus_credits)
        except SQLAlchemyError as e:
            logger.error(f"Failed to persist reconciliation for account {account_id}: {e}")
            await self._accounts.session.rollback()
