"""
Account Database Model

SQLModel table for accounts and their subscription state.
"""

from typing import Optional

from sqlmodel import Field, SQLModel

from tierwise.infrastructure.db.models.base import BaseModel


class AccountBase(SQLModel):
    """Profile fields of an account."""

    email: str = Field(..., max_length=255, unique=True, index=True)
    phone_number: Optional[str] = Field(default=None, max_length=32)
    phone_number_country: Optional[str] = Field(
        default=None,
        max_length=8,
        description="Country of the phone number, e.g. US or CA"
    )

    # Digest slots (hour of day, None when disabled)
    morning_digest: Optional[str] = Field(default=None, max_length=16)
    day_digest: Optional[str] = Field(default=None, max_length=16)
    evening_digest: Optional[str] = Field(default=None, max_length=16)


class AccountModel(AccountBase, BaseModel, table=True):
    """
    Accounts table.

    Subscription fields start empty and are only written by webhook
    reconciliation and the manual next-billing-date refresh.
    """

    __tablename__ = "accounts"

    # Stripe IDs
    stripe_customer_id: Optional[str] = Field(default=None, unique=True, index=True)
    stripe_payment_method_id: Optional[str] = Field(default=None)
    stripe_checkout_session_id: Optional[str] = Field(default=None)

    # Subscription state
    sub_tier: Optional[str] = Field(default=None, max_length=16)
    sub_country: Optional[str] = Field(default=None, max_length=8)
    next_billing_date_timestamp: Optional[int] = Field(default=None)

    # Purchased credits never expire; credits_left is the monthly allowance
    credits: float = Field(default=0.0)
    credits_left: float = Field(default=0.0)

    # Auto top-up
    charge_when_under: bool = Field(default=False)
    charge_back_to: Optional[float] = Field(default=None)
