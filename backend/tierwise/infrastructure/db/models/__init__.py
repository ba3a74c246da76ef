"""
SQLModel ORM Models for Tierwise

Exports all database models for Alembic autogenerate and application use.
Import models here to register them with SQLModel.metadata.
"""

from tierwise.infrastructure.db.models.base import (
    BaseModel,
    IntIDMixin,
    TimestampMixin,
)
from tierwise.infrastructure.db.models.account import (
    AccountBase,
    AccountModel,
)
from tierwise.infrastructure.db.models.webhook_event import ProcessedWebhookEvent


__all__ = [
    # Base
    "BaseModel",
    "IntIDMixin",
    "TimestampMixin",
    # Account
    "AccountBase",
    "AccountModel",
    # Webhooks
    "ProcessedWebhookEvent",
]
