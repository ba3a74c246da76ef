"""
Repository Layer for Tierwise

Exports all repository classes for dependency injection.
"""

from tierwise.infrastructure.db.repositories.base_repository import BaseRepository
from tierwise.infrastructure.db.repositories.account_repository import (
    AccountRepository,
)
from tierwise.infrastructure.db.repositories.webhook_event_repository import (
    WebhookEventRepository,
)


__all__ = [
    # Base
    "BaseRepository",
    # Repositories
    "AccountRepository",
    "WebhookEventRepository",
]
