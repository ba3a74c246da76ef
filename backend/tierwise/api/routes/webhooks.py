"""
Stripe Webhook Handler

Handles Stripe webhook events for subscription lifecycle management.
Each event id is claimed in the database before processing so redelivered
events are skipped.

Handled Events:
- customer.subscription.created: Cancel replaced plans, grant signup bonus, set tier
- customer.subscription.updated: Refresh tier, country and allowance
- customer.subscription.deleted: Fall back to the best remaining plan or clear tier
- checkout.session.completed: Credit one-time overage purchases
"""

import logging

from fastapi import APIRouter, Request, HTTPException, status

from tierwise.api.dependencies import (
    BillingServiceDep,
    LifecycleServiceDep,
    SessionDep,
    StripeServiceDep,
    WebhookEventRepoDep,
)
from tierwise.config.settings import get_settings
from tierwise.domain.reconciler import SubscriptionEvent
from tierwise.domain.subscription import (
    ProviderSubscription,
    SubscriptionEventType,
    stripe_to_dict,
)
from tierwise.infrastructure.payments.stripe_service import StripeServiceError


logger = logging.getLogger(__name__)

router = APIRouter()

SUBSCRIPTION_EVENT_TYPES = {event_type.value for event_type in SubscriptionEventType}


@router.post("/webhooks/stripe")
async def stripe_webhook(
    request: Request,
    session: SessionDep,
    processed_events: WebhookEventRepoDep,
    stripe_service: StripeServiceDep,
    lifecycle: LifecycleServiceDep,
    billing: BillingServiceDep,
):
    """
    Handle Stripe webhook events.

    Verifies the signature before any processing. Returns 200 OK for every
    verified event, including ones whose processing failed, so Stripe does
    not retry them.
    """
    body = await request.body()
    try:
        payload = body.decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid payload encoding"
        )

    signature = request.headers.get("stripe-signature")
    if not signature:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing Stripe signature"
        )

    try:
        event = stripe_service.verify_webhook_signature(payload, signature)
    except StripeServiceError as e:
        logger.error(f"Webhook signature verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid signature"
        )

    event_data = stripe_to_dict(event)
    event_id = event_data.get("id")
    event_type = event_data.get("type")
    dedup = get_settings().webhook_event_dedup_enabled and bool(event_id)

    # The claim row is part of this request's transaction; a rollback releases it.
    if dedup and not await processed_events.claim(event_id, event_type):
        logger.info(f"Event {event_id} already processed, skipping")
        return {"status": "already_processed"}

    logger.info(f"Processing webhook event: {event_type} ({event_id})")

    try:
        data_object = event_data["data"]["object"]

        if event_type in SUBSCRIPTION_EVENT_TYPES:
            await lifecycle.handle_event(SubscriptionEvent(
                type=SubscriptionEventType(event_type),
                subscription=ProviderSubscription.from_stripe(data_object),
                event_id=event_id,
            ))

        elif event_type == "checkout.session.completed":
            await billing.handle_checkout_completed(data_object)

        else:
            logger.debug(f"Unhandled event type: {event_type}")

        return {"status": "success"}

    except Exception as e:
        logger.error(f"Error processing webhook {event_type}: {e}")
        await session.rollback()
        return {"status": "error", "message": str(e)}
