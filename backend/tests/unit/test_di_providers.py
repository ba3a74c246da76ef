"""
Unit tests for Dependency Injection providers.

Validates that:
- Cached providers return the same instance
- Request-scoped services are built around the injected repository
- Services can be independently instantiated for testing
"""

from unittest.mock import MagicMock

from tierwise.api.dependencies import (
    get_billing_service,
    get_lifecycle_service,
    get_price_catalog,
    get_reconciler,
)
from tierwise.domain.reconciler import SubscriptionReconciler
from tierwise.infrastructure.payments.stripe_service import StripeService, get_stripe_service
from tierwise.infrastructure.services.billing_service import BillingService
from tierwise.infrastructure.services.subscription_lifecycle_service import (
    SubscriptionLifecycleService,
)

from conftest import make_catalog


class TestDIProviders:
    """Tests for cached provider functions."""

    def test_price_catalog_is_cached(self):
        get_price_catalog.cache_clear()
        try:
            assert get_price_catalog() is get_price_catalog()
        finally:
            get_price_catalog.cache_clear()

    def test_stripe_service_is_singleton(self):
        assert get_stripe_service() is get_stripe_service()

    def test_reconciler_uses_configured_bonus(self):
        reconciler = get_reconciler(make_catalog())
        assert isinstance(reconciler, SubscriptionReconciler)
        assert reconciler._signup_bonus_credits == 10.0


class TestDIOverrides:
    """Tests validating the services can be built from plain arguments."""

    def test_lifecycle_service_wiring(self):
        accounts = MagicMock()
        service = get_lifecycle_service(accounts, MagicMock(spec=StripeService), get_reconciler(make_catalog()))
        assert isinstance(service, SubscriptionLifecycleService)

    def test_billing_service_wiring(self):
        service = get_billing_service(MagicMock(), MagicMock(spec=StripeService), make_catalog())
        assert isinstance(service, BillingService)
