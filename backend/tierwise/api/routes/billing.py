"""
Billing API Routes

REST API endpoints for checkouts, the billing portal, credit balances and
auto top-up settings. Every route needs a bearer token; users may only
act on their own account unless they are admins.
"""

import logging

from fastapi import APIRouter, HTTPException, status

from tierwise.api.dependencies import (
    AccountRepoDep,
    AdminUserDep,
    BillingServiceDep,
    CurrentUserDep,
    ensure_account_access,
)
from tierwise.domain.subscription import (
    Account,
    AccountBillingResponse,
    AutoTopupRequest,
    BuyCreditsRequest,
    CheckoutResponse,
    NextBillingDateResponse,
    SubscriptionCheckoutRequest,
)
from tierwise.infrastructure.payments.stripe_service import StripeServiceError


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing")


def _stripe_failure(action: str, error: StripeServiceError) -> HTTPException:
    logger.error(f"{action} failed: {error}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=error.message,
    )


def _billing_response(account: Account) -> AccountBillingResponse:
    return AccountBillingResponse(
        account_id=account.id,
        sub_tier=account.sub_tier,
        sub_country=account.sub_country,
        credits=account.credits,
        credits_left=account.credits_left,
        next_billing_date=account.next_billing_date_timestamp,
        charge_when_under=account.charge_when_under,
        charge_back_to=account.charge_back_to,
    )


# =============================================================================
# Checkout Endpoints
# =============================================================================

@router.post("/subscription-checkout/{account_id}", response_model=CheckoutResponse)
async def create_subscription_checkout(
    account_id: int,
    request: SubscriptionCheckoutRequest,
    user: CurrentUserDep,
    billing: BillingServiceDep,
):
    """
    Create a Stripe Checkout session for a hosted or self-hosting plan.

    If the customer already has an active subscription the new one is
    tagged as a plan change and the old one is cancelled at period end
    once Stripe reports the new subscription.
    """
    ensure_account_access(user, account_id)
    try:
        return await billing.start_subscription_checkout(account_id, request)
    except StripeServiceError as e:
        raise _stripe_failure("Subscription checkout", e)


@router.post("/credits-checkout/{account_id}", response_model=CheckoutResponse)
async def create_credits_checkout(
    account_id: int,
    request: BuyCreditsRequest,
    user: CurrentUserDep,
    billing: BillingServiceDep,
):
    """Create a one-time Checkout session for overage credits."""
    ensure_account_access(user, account_id)
    try:
        return await billing.start_credits_checkout(account_id, request.amount_dollars)
    except StripeServiceError as e:
        raise _stripe_failure("Credits checkout", e)


@router.post("/portal/{account_id}", response_model=CheckoutResponse)
async def create_portal_session(
    account_id: int,
    user: CurrentUserDep,
    billing: BillingServiceDep,
):
    ensure_account_access(user, account_id)
    try:
        return await billing.create_portal(account_id)
    except StripeServiceError as e:
        raise _stripe_failure("Portal session", e)


# =============================================================================
# Billing State Endpoints
# =============================================================================

@router.post("/next-billing-date/{account_id}", response_model=NextBillingDateResponse)
async def refresh_next_billing_date(
    account_id: int,
    user: CurrentUserDep,
    billing: BillingServiceDep,
):
    """
    Re-read the next billing date from Stripe.

    Stores the latest period end among the account's active subscriptions.
    """
    ensure_account_access(user, account_id)
    try:
        next_billing_date = await billing.refresh_next_billing_date(account_id)
    except StripeServiceError as e:
        raise _stripe_failure("Next billing date refresh", e)

    return NextBillingDateResponse(
        message="Next billing date updated successfully",
        next_billing_date=next_billing_date,
    )


@router.post("/automatic-charge/{account_id}")
async def automatic_charge(
    account_id: int,
    admin: AdminUserDep,
    billing: BillingServiceDep,
):
    """Charge the saved card for an auto top-up (admin only)."""
    try:
        amount = await billing.automatic_charge(account_id)
    except StripeServiceError as e:
        raise _stripe_failure("Automatic charge", e)

    return {
        "message": "Automatic charge successful, credits updated",
        "amount": amount,
    }


@router.get("/account/{account_id}", response_model=AccountBillingResponse)
async def get_account_billing(
    account_id: int,
    user: CurrentUserDep,
    accounts: AccountRepoDep,
):
    ensure_account_access(user, account_id)
    return _billing_response(await accounts.get_account(account_id))


@router.post("/auto-topup", response_model=AccountBillingResponse)
async def update_auto_topup(
    request: AutoTopupRequest,
    user: CurrentUserDep,
    accounts: AccountRepoDep,
):
    """Update the caller's auto top-up settings."""
    model = await accounts.update_auto_topup(user.user_id, request.active, request.amount)
    logger.info(f"Account {user.user_id} auto top-up set to active={request.active}")
    return _billing_response(Account.model_validate(model))


# =============================================================================
# Credit Adjustments
# =============================================================================

@router.post("/credits/{account_id}/reset")
async def reset_credits(
    account_id: int,
    admin: AdminUserDep,
    accounts: AccountRepoDep,
):
    await accounts.set_credits(account_id, 0.0)
    logger.info(f"Admin {admin.user_id} reset credits of account {account_id}")
    return {"message": "credits reset successfully"}


@router.post("/credits/{account_id}/increase")
async def increase_credits(
    account_id: int,
    user: CurrentUserDep,
    accounts: AccountRepoDep,
):
    ensure_account_access(user, account_id)
    await accounts.increase_credits(account_id, 1.0)
    return {"message": "credits increased successfully"}
