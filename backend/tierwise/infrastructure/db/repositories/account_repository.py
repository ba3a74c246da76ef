"""
Account Repository for Tierwise

Data access for accounts, their Stripe identifiers, credit balances
and subscription fields.
"""

import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tierwise.domain.subscription import Account, AccountSubscriptionUpdate
from tierwise.infrastructure.db.models.account import AccountModel
from tierwise.infrastructure.db.repositories.base_repository import BaseRepository


logger = logging.getLogger(__name__)


class AccountRepository(BaseRepository[AccountModel]):
    """
    Repository for account reads and billing-specific writes.

    Every write flushes inside the caller's transaction so a request's
    updates commit or roll back together.
    """

    def __init__(self, session: AsyncSession):
        super().__init__(AccountModel, session)

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_by_stripe_customer_id(self, customer_id: str) -> Optional[AccountModel]:
        """
        Find the account linked to a Stripe customer.

        Args:
            customer_id: Stripe customer id (cus_...)

        Returns:
            AccountModel or None if no account has that customer
        """
        stmt = select(AccountModel).where(AccountModel.stripe_customer_id == customer_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_account(self, account_id: int) -> Account:
        """Load an account as a domain entity, raising NotFoundError if absent."""
        return Account.model_validate(await self.get_or_raise(account_id))

    async def get_account_by_customer(self, customer_id: str) -> Optional[Account]:
        model = await self.get_by_stripe_customer_id(customer_id)
        return Account.model_validate(model) if model else None

    # =========================================================================
    # Stripe identifiers
    # =========================================================================

    async def set_stripe_customer_id(self, account_id: int, customer_id: str) -> AccountModel:
        account = await self.get_or_raise(account_id)
        account.stripe_customer_id = customer_id
        return await self.save(account)

    async def set_payment_method_id(self, account_id: int, payment_method_id: str) -> AccountModel:
        account = await self.get_or_raise(account_id)
        account.stripe_payment_method_id = payment_method_id
        return await self.save(account)

    async def set_checkout_session_id(self, account_id: int, session_id: str) -> AccountModel:
        account = await self.get_or_raise(account_id)
        account.stripe_checkout_session_id = session_id
        return await self.save(account)

    # =========================================================================
    # Credits and billing fields
    # =========================================================================

    async def increase_credits(self, account_id: int, amount: float) -> AccountModel:
        """
        Add purchased credits to an account.

        Args:
            account_id: Account to credit
            amount: Credits to add

        Returns:
            Updated AccountModel
        """
        account = await self.get_or_raise(account_id)
        account.credits = (account.credits or 0.0) + amount
        logger.info(f"Account {account_id} credits increased by {amount}")
        return await self.save(account)

    async def set_credits(self, account_id: int, credits: float) -> AccountModel:
        account = await self.get_or_raise(account_id)
        account.credits = credits
        return await self.save(account)

    async def set_next_billing_date(self, account_id: int, timestamp: int) -> AccountModel:
        account = await self.get_or_raise(account_id)
        account.next_billing_date_timestamp = timestamp
        return await self.save(account)

    async def update_auto_topup(
        self,
        account_id: int,
        active: bool,
        amount: Optional[float] = None,
    ) -> AccountModel:
        """
        Enable or disable automatic credit top-up.

        Args:
            account_id: Account to update
            active: Whether to charge when credits run low
            amount: Balance to top back up to (kept unchanged if None)

        Returns:
            Updated AccountModel
        """
        account = await self.get_or_raise(account_id)
        account.charge_when_under = active
        if amount is not None:
            account.charge_back_to = amount
        return await self.save(account)

    async def apply_reconciliation(
        self,
        account_id: int,
        update: Optional[AccountSubscriptionUpdate],
        bonus_credits: float = 0.0,
    ) -> AccountModel:
        """
        Write a reconciliation outcome in one flush.

        Tier, country, allowance and billing date come from the update's
        explicitly set fields; the signup bonus is added to purchased credits.

        Args:
            account_id: Account to update
            update: Subscription fields to write, or None for bonus only
            bonus_credits: Credits to add to the purchased balance

        Returns:
            Updated AccountModel
        """
        account = await self.get_or_raise(account_id)

        if update is not None:
            for field, value in update.model_dump(exclude_unset=True).items():
                if hasattr(value, "value"):
                    value = value.value
                setattr(account, field, value)

        if bonus_credits:
            account.credits = (account.credits or 0.0) + bonus_credits

        return await self.save(account)
