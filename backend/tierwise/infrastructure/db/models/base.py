"""
Base Model for SQLModel ORM

Provides common fields and behavior for all database models.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlmodel import Field, SQLModel


class TimestampMixin(SQLModel):
    """Mixin providing timestamp fields for models."""

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        description="Record creation timestamp (UTC)"
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_column_kwargs={"onupdate": lambda: datetime.now(timezone.utc)},
        description="Last update timestamp (UTC)"
    )


class IntIDMixin(SQLModel):
    """Mixin providing an auto-incrementing integer primary key."""

    id: Optional[int] = Field(
        default=None,
        primary_key=True,
        description="Numeric identifier"
    )


class BaseModel(IntIDMixin, TimestampMixin):
    """
    Base model combining integer id and timestamp mixins.

    Provides: id, created_at, updated_at
    """
