"""
Processed Webhook Event Model

Records handled Stripe event ids so redelivered events are skipped.
"""

from datetime import datetime, timezone

from sqlmodel import Field, SQLModel


class ProcessedWebhookEvent(SQLModel, table=True):
    """A Stripe event that has already been handled."""

    __tablename__ = "processed_webhook_events"

    event_id: str = Field(primary_key=True, max_length=255)
    event_type: str = Field(..., max_length=100)
    processed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        index=True,
    )
