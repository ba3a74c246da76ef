"""
API Dependencies

FastAPI dependency injection for authentication and billing services.

Security: JWT tokens are verified with the HS256 shared secret.
Never decode without verification.
"""

import logging
from functools import lru_cache
from typing import Annotated, Optional

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel

from tierwise.config.settings import get_settings
from tierwise.domain.price_catalog import PriceCatalog
from tierwise.domain.reconciler import SubscriptionReconciler
from tierwise.infrastructure.db.dependencies import (  # noqa: F401
    AccountRepoDep,
    SessionDep,
    WebhookEventRepoDep,
)
from tierwise.infrastructure.exceptions import ConfigurationError
from tierwise.infrastructure.payments.stripe_service import (
    StripeService,
    get_stripe_service,
)
from tierwise.infrastructure.services.billing_service import BillingService
from tierwise.infrastructure.services.subscription_lifecycle_service import (
    SubscriptionLifecycleService,
)


logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


# =============================================================================
# Authentication
# =============================================================================

class AuthUser(BaseModel):
    """Caller identity taken from a verified token."""
    user_id: int
    is_admin: bool = False


def decode_token(token: str) -> dict:
    """Verify an HS256 token and return its claims."""
    settings = get_settings()
    if not settings.jwt_secret_key:
        raise ConfigurationError("JWT secret is not configured", missing_keys=["JWT_SECRET_KEY"])
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        options={"require": ["exp", "sub"]},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> AuthUser:
    """
    Extract and verify the caller from a bearer JWT.

    Returns:
        AuthUser with the account id (``sub`` claim) and admin flag

    Raises:
        HTTPException 401: token missing, expired, or invalid.
    """
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_token(credentials.credentials)
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token has expired",
        )
    except jwt.InvalidTokenError as e:
        logger.warning("JWT verification failed: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or unverifiable token",
        )

    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: malformed user ID",
        )

    return AuthUser(user_id=user_id, is_admin=bool(payload.get("is_admin", False)))


CurrentUserDep = Annotated[AuthUser, Depends(get_current_user)]


def ensure_account_access(user: AuthUser, account_id: int) -> None:
    """Allow a user to act on their own account, and admins on any."""
    if user.user_id != account_id and not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Access denied",
        )


async def require_admin(user: CurrentUserDep) -> AuthUser:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


AdminUserDep = Annotated[AuthUser, Depends(require_admin)]


# =============================================================================
# Billing services
# =============================================================================

@lru_cache
def get_price_catalog() -> PriceCatalog:
    """Price catalog built once from settings."""
    return PriceCatalog.from_settings(get_settings())


def get_reconciler(
    catalog: PriceCatalog = Depends(get_price_catalog),
) -> SubscriptionReconciler:
    return SubscriptionReconciler(
        catalog,
        signup_bonus_credits=get_settings().signup_bonus_credits,
    )


StripeServiceDep = Annotated[StripeService, Depends(get_stripe_service)]


def get_lifecycle_service(
    accounts: AccountRepoDep,
    stripe_service: StripeServiceDep,
    reconciler: SubscriptionReconciler = Depends(get_reconciler),
) -> SubscriptionLifecycleService:
    return SubscriptionLifecycleService(reconciler, stripe_service, accounts)


def get_billing_service(
    accounts: AccountRepoDep,
    stripe_service: StripeServiceDep,
    catalog: PriceCatalog = Depends(get_price_catalog),
) -> BillingService:
    return BillingService(catalog, stripe_service, accounts)


LifecycleServiceDep = Annotated[SubscriptionLifecycleService, Depends(get_lifecycle_service)]
BillingServiceDep = Annotated[BillingService, Depends(get_billing_service)]

