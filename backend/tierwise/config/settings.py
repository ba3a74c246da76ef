"""
Application Settings for Tierwise

Centralized configuration using Pydantic Settings with .env support.
Every key has a default so the application can be imported without an
environment; paths that need a missing key raise ConfigurationError at use.
"""

from functools import lru_cache
from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Stripe price identifiers follow the deployment naming convention
    STRIPE_SUBSCRIPTION_<FAMILY>_PRICE_ID_<COUNTRY>.
    """

    # Application Settings
    environment: str = "development"
    debug: bool = False
    log_level: str = "INFO"

    # CORS Configuration
    frontend_url: str = "http://localhost:8080"
    allowed_origins: list[str] = [
        "http://localhost:8080",
        "http://localhost:3000",
        "http://127.0.0.1:8080",
    ]

    # Authentication
    jwt_secret_key: Optional[str] = None
    jwt_algorithm: str = "HS256"

    # Database Configuration (SQLModel/SQLAlchemy)
    database_url: Optional[str] = None
    database_pool_size: int = 5
    database_max_overflow: int = 10
    database_pool_timeout: int = 30
    database_echo: bool = False

    # Stripe Core
    stripe_secret_key: Optional[str] = None
    stripe_webhook_secret: Optional[str] = None
    stripe_credits_product_id: Optional[str] = None
    stripe_topup_price_id: Optional[str] = None
    stripe_subscription_self_hosting_price_id: Optional[str] = None
    stripe_digitaldetox_onetime_fee_id_us: Optional[str] = None
    stripe_digitaldetox_onetime_fee_id_other: Optional[str] = None

    # Hardware add-ons sold alongside a subscription
    stripe_dumbphone_ship_price_id: Optional[str] = None
    stripe_dumbphone_gift_price_id: Optional[str] = None
    stripe_ubikey_ship_price_id: Optional[str] = None
    stripe_ubikey_gift_price_id: Optional[str] = None

    # Legacy Hard Mode plans
    stripe_subscription_hard_mode_price_id_us: Optional[str] = None
    stripe_subscription_hard_mode_price_id_fi: Optional[str] = None
    stripe_subscription_hard_mode_price_id_nl: Optional[str] = None
    stripe_subscription_hard_mode_price_id_uk: Optional[str] = None
    stripe_subscription_hard_mode_price_id_au: Optional[str] = None
    stripe_subscription_hard_mode_price_id_other: Optional[str] = None

    # Legacy Basic Daily plans
    stripe_subscription_basic_daily_price_id_us: Optional[str] = None
    stripe_subscription_basic_daily_price_id_fi: Optional[str] = None
    stripe_subscription_basic_daily_price_id_nl: Optional[str] = None
    stripe_subscription_basic_daily_price_id_uk: Optional[str] = None
    stripe_subscription_basic_daily_price_id_au: Optional[str] = None
    stripe_subscription_basic_daily_price_id_other: Optional[str] = None

    # Basic plans
    stripe_subscription_basic_price_id_us: Optional[str] = None
    stripe_subscription_basic_price_id_fi: Optional[str] = None
    stripe_subscription_basic_price_id_nl: Optional[str] = None
    stripe_subscription_basic_price_id_uk: Optional[str] = None
    stripe_subscription_basic_price_id_au: Optional[str] = None
    stripe_subscription_basic_price_id_other: Optional[str] = None

    # Legacy World plans
    stripe_subscription_world_price_id_us: Optional[str] = None
    stripe_subscription_world_price_id_fi: Optional[str] = None
    stripe_subscription_world_price_id_nl: Optional[str] = None
    stripe_subscription_world_price_id_uk: Optional[str] = None
    stripe_subscription_world_price_id_au: Optional[str] = None
    stripe_subscription_world_price_id_other: Optional[str] = None

    # Legacy Escape Daily plans
    stripe_subscription_escape_daily_price_id_us: Optional[str] = None
    stripe_subscription_escape_daily_price_id_fi: Optional[str] = None
    stripe_subscription_escape_daily_price_id_nl: Optional[str] = None
    stripe_subscription_escape_daily_price_id_uk: Optional[str] = None
    stripe_subscription_escape_daily_price_id_au: Optional[str] = None
    stripe_subscription_escape_daily_price_id_other: Optional[str] = None

    # Legacy Monitoring plans
    stripe_subscription_monitoring_price_id_us: Optional[str] = None
    stripe_subscription_monitoring_price_id_fi: Optional[str] = None
    stripe_subscription_monitoring_price_id_nl: Optional[str] = None
    stripe_subscription_monitoring_price_id_uk: Optional[str] = None
    stripe_subscription_monitoring_price_id_au: Optional[str] = None
    stripe_subscription_monitoring_price_id_other: Optional[str] = None

    # Sentinel plans
    stripe_subscription_sentinel_price_id_us: Optional[str] = None
    stripe_subscription_sentinel_price_id_fi: Optional[str] = None
    stripe_subscription_sentinel_price_id_nl: Optional[str] = None
    stripe_subscription_sentinel_price_id_uk: Optional[str] = None
    stripe_subscription_sentinel_price_id_au: Optional[str] = None
    stripe_subscription_sentinel_price_id_other: Optional[str] = None

    # Hosted plans
    stripe_subscription_hosted_plan_price_id_us: Optional[str] = None
    stripe_subscription_hosted_plan_price_id_fi: Optional[str] = None
    stripe_subscription_hosted_plan_price_id_nl: Optional[str] = None
    stripe_subscription_hosted_plan_price_id_uk: Optional[str] = None
    stripe_subscription_hosted_plan_price_id_au: Optional[str] = None
    stripe_subscription_hosted_plan_price_id_other: Optional[str] = None

    # Billing policy
    signup_bonus_credits: float = 10.0
    hosted_trial_days: int = 7
    default_charge_back_to: float = 5.0
    webhook_event_dedup_enabled: bool = True

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def subscription_price_id(self, family: str, country: str) -> Optional[str]:
        """Look up STRIPE_SUBSCRIPTION_<FAMILY>_PRICE_ID_<COUNTRY>."""
        return getattr(
            self,
            f"stripe_subscription_{family.lower()}_price_id_{country.lower()}",
            None,
        )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Convenience export for direct import
settings = get_settings()
