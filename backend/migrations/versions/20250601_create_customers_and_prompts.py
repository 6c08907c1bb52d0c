"""create customers and prompts tables

Revision ID: 20250601_customers_prompts
Revises:
Create Date: 2025-06-01 00:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20250601_customers_prompts'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

membership_enum = sa.Enum('free', 'pro', name='membership')


def upgrade() -> None:
    """Create the customers table keyed by Clerk user id, and prompts.
    stripe_customer_id is indexed but deliberately not unique.
    """
    op.create_table(
        'customers',
        sa.Column('user_id', sa.String(), primary_key=True),
        sa.Column('membership', membership_enum, nullable=False, server_default='free'),
        sa.Column('stripe_customer_id', sa.String(), nullable=True),
        sa.Column('stripe_subscription_id', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_customers_stripe_customer_id', 'customers', ['stripe_customer_id'])

    op.create_table(
        'prompts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_prompts_id', 'prompts', ['id'])
    op.create_index('ix_prompts_user_id', 'prompts', ['user_id'])


def downgrade() -> None:
    """Revert schema changes."""
    op.drop_index('ix_prompts_user_id', table_name='prompts')
    op.drop_index('ix_prompts_id', table_name='prompts')
    op.drop_table('prompts')
    op.drop_index('ix_customers_stripe_customer_id', table_name='customers')
    op.drop_table('customers')
    membership_enum.drop(op.get_bind(), checkfirst=True)
