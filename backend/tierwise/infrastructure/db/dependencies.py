"""
Dependency Injection Providers for Tierwise

Provides FastAPI dependencies for database sessions and repositories.
"""

from typing import Annotated, AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from tierwise.infrastructure.db.database import get_session
from tierwise.infrastructure.db.repositories import (
    AccountRepository,
    WebhookEventRepository,
)


# Type alias for session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]


async def get_account_repository(
    session: SessionDep,
) -> AsyncGenerator[AccountRepository, None]:
    """
    Dependency provider for AccountRepository.

    Usage:
        @router.get("/account/{account_id}")
        async def get_account(
            repo: AccountRepository = Depends(get_account_repository)
        ):
            ...
    """
    yield AccountRepository(session)


async def get_webhook_event_repository(
    session: SessionDep,
) -> AsyncGenerator[WebhookEventRepository, None]:
    """
    Dependency provider for WebhookEventRepository.
    """
    yield WebhookEventRepository(session)


# Type aliases for repository dependencies
AccountRepoDep = Annotated[
    AccountRepository,
    Depends(get_account_repository)
]
WebhookEventRepoDep = Annotated[
    WebhookEventRepository,
    Depends(get_webhook_event_repository)
]
