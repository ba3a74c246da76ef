"""
Webhook Event Repository for Tierwise

Idempotency records for Stripe webhook deliveries.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession


class WebhookEventRepository:
    """Tracks which Stripe event ids have already been handled."""

    def __init__(self, session: AsyncSession):
        self._session = session

    async def claim(self, event_id: str, event_type: str) -> bool:
        """
        Record an event id before it is handled.

        Returns False when the id is already recorded. A concurrent delivery
        of the same id waits on the primary key until this transaction ends,
        so only one of them gets True unless the first rolls back.
        """
        result = await self._session.execute(
            text("""
                INSERT INTO processed_webhook_events (event_id, event_type, processed_at)
                VALUES (:event_id, :event_type, NOW())
                ON CONFLICT (event_id) DO NOTHING
                RETURNING event_id
            """),
            {"event_id": event_id, "event_type": event_type},
        )
        return result.scalar() is not None
