"""Create accounts table

Revision ID: 0001_create_accounts
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_create_accounts'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create accounts table with subscription and credit fields."""

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone_number', sa.String(32)),
        sa.Column('phone_number_country', sa.String(8)),

        # Digest slots
        sa.Column('morning_digest', sa.String(16)),
        sa.Column('day_digest', sa.String(16)),
        sa.Column('evening_digest', sa.String(16)),

        # Stripe IDs
        sa.Column('stripe_customer_id', sa.String(255)),
        sa.Column('stripe_payment_method_id', sa.String(255)),
        sa.Column('stripe_checkout_session_id', sa.String(255)),

        # Subscription state
        sa.Column('sub_tier', sa.String(16)),
        sa.Column('sub_country', sa.String(8)),
        sa.Column('next_billing_date_timestamp', sa.BigInteger),

        # Credits
        sa.Column('credits', sa.Float, server_default='0', nullable=False),
        sa.Column('credits_left', sa.Float, server_default='0', nullable=False),

        # Auto top-up
        sa.Column('charge_when_under', sa.Boolean, server_default='false', nullable=False),
        sa.Column('charge_back_to', sa.Float),

        # Timestamps
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_index('ix_accounts_email', 'accounts', ['email'], unique=True)
    op.create_index('ix_accounts_stripe_customer_id', 'accounts', ['stripe_customer_id'], unique=True)


def downgrade() -> None:
    op.drop_index('ix_accounts_stripe_customer_id', table_name='accounts')
    op.drop_index('ix_accounts_email', table_name='accounts')
    op.drop_table('accounts')
