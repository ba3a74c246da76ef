"""
Database Infrastructure Package for Tierwise

Exports database utilities and dependency providers.
"""

from tierwise.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    get_session,
    get_session_context,
    init_db,
    close_db,
)

from tierwise.infrastructure.db.dependencies import (
    SessionDep,
    get_account_repository,
    get_webhook_event_repository,
    AccountRepoDep,
    WebhookEventRepoDep,
)


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
    "get_account_repository",
    "get_webhook_event_repository",
    "AccountRepoDep",
    "WebhookEventRepoDep",
]
