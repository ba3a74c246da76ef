"""
Test configuration and fixtures for Tierwise.

Provides shared fixtures for unit and integration tests.
"""

import os

# Settings are read once at import time.
os.environ.setdefault("JWT_SECRET_KEY", "test-jwt-secret-with-at-least-32-bytes!")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_dummy")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test")
os.environ.setdefault("ENVIRONMENT", "testing")

import time
from typing import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

import jwt
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from tierwise.domain.price_catalog import PriceCatalog, PriceFamily
from tierwise.domain.subscription import Account, Country, LineItem, ProviderSubscription


# =============================================================================
# Price identifiers used across tests
# =============================================================================

SENTINEL_US = "price_sentinel_us"
SENTINEL_FI = "price_sentinel_fi"
SENTINEL_OTHER = "price_sentinel_other"
HOSTED_US = "price_hosted_us"
BASIC_US = "price_basic_us"
BASIC_DAILY_NL = "price_basic_daily_nl"
HARD_MODE_UK = "price_hard_mode_uk"
WORLD_AU = "price_world_au"
SELF_HOSTING = "price_self_hosting"
TOPUP = "price_topup"
DETOX_US = "price_detox_us"
DUMBPHONE_SHIP = "price_dumbphone_ship"


def make_catalog(**overrides) -> PriceCatalog:
    price_ids = {
        (PriceFamily.SENTINEL, Country.US): SENTINEL_US,
        (PriceFamily.SENTINEL, Country.FI): SENTINEL_FI,
        (PriceFamily.SENTINEL, Country.OTHER): SENTINEL_OTHER,
        (PriceFamily.HOSTED_PLAN, Country.US): HOSTED_US,
        (PriceFamily.BASIC, Country.US): BASIC_US,
        (PriceFamily.BASIC_DAILY, Country.NL): BASIC_DAILY_NL,
        (PriceFamily.HARD_MODE, Country.UK): HARD_MODE_UK,
        (PriceFamily.WORLD, Country.AU): WORLD_AU,
    }
    params = dict(
        price_ids=price_ids,
        self_hosting_price_id=SELF_HOSTING,
        topup_price_id=TOPUP,
        digital_detox_fee_ids=frozenset({DETOX_US}),
        addon_price_ids={"dumbphone_ship": DUMBPHONE_SHIP},
    )
    params.update(overrides)
    return PriceCatalog(**params)


def make_subscription(
    sub_id: str = "sub_new",
    prices: tuple = (SENTINEL_US,),
    customer_id: str = "cus_test",
    current_period_end=None,
    metadata=None,
) -> ProviderSubscription:
    return ProviderSubscription(
        id=sub_id,
        customer_id=customer_id,
        items=[LineItem(price_id=p) for p in prices],
        status="active",
        current_period_end=current_period_end,
        metadata=metadata or {},
    )


def make_token(user_id: int = 42, is_admin: bool = False, expires_in: int = 3600) -> str:
    payload = {"sub": str(user_id), "exp": int(time.time()) + expires_in}
    if is_admin:
        payload["is_admin"] = True
    return jwt.encode(payload, os.environ["JWT_SECRET_KEY"], algorithm="HS256")


# =============================================================================
# App Fixtures
# =============================================================================

@pytest.fixture
def app():
    """Get the FastAPI application with overrides cleared after each test."""
    from tierwise.main import app
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Get synchronous test client."""
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(app) -> AsyncGenerator[AsyncClient, None]:
    """Get async test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def mock_session():
    """AsyncSession stand-in so routes never open a real connection."""
    session = AsyncMock()
    session.add = MagicMock()
    return session


@pytest.fixture
def override_session(app, mock_session):
    from tierwise.infrastructure.db.database import get_session

    async def _session():
        yield mock_session

    app.dependency_overrides[get_session] = _session
    return mock_session


# =============================================================================
# Domain Fixtures
# =============================================================================

@pytest.fixture
def catalog() -> PriceCatalog:
    return make_catalog()


@pytest.fixture
def account() -> Account:
    """A US account with two digests and an existing Stripe customer."""
    return Account(
        id=42,
        email="user@example.com",
        phone_number="+15551234567",
        phone_number_country="US",
        stripe_customer_id="cus_test",
        morning_digest="8",
        evening_digest="20",
    )


@pytest.fixture
def auth_headers():
    return {"Authorization": f"Bearer {make_token(42)}"}


@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {make_token(1, is_admin=True)}"}
