"""Initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2025-03-14 12:00:00.000000

Tables created:
- users: Telegram users who own alerts
- subscriptions: Price spike alerts (soft-deleted via the active flag)
- price_samples: Short-lived token price time series
- alert_history: Audit trail of triggered alerts
"""
from alembic import op
import sqlalchemy as sa
import logging

logger = logging.getLogger('alembic.runtime.migration')

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create initial schema."""
    logger.info("Step 1/4: Creating users table...")
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('telegram_id', sa.BigInteger(), nullable=False),
        sa.Column('username', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_telegram_id', 'users', ['telegram_id'], unique=True)

    logger.info("Step 2/4: Creating subscriptions table...")
    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('market_id', sa.String(), nullable=False),
        sa.Column('market_name', sa.String(), nullable=True),
        sa.Column('token_id', sa.String(), nullable=True),
        sa.Column('threshold_pct', sa.Float(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_subscriptions_user_id', 'subscriptions', ['user_id'])
    op.create_index('ix_subscriptions_market_id', 'subscriptions', ['market_id'])
    op.create_index('ix_subscriptions_user_active', 'subscriptions', ['user_id', 'active'])
    # Only one active row per (user, market); inactive rows may repeat
    op.create_index(
        'uq_subscriptions_user_market_active',
        'subscriptions',
        ['user_id', 'market_id'],
        unique=True,
        postgresql_where=sa.text('active'),
        sqlite_where=sa.text('active = 1')
    )

    logger.info("Step 3/4: Creating price_samples table...")
    op.create_table(
        'price_samples',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('token_id', sa.String(), nullable=False),
        sa.Column('market_id', sa.String(), nullable=False),
        sa.Column('price', sa.Float(), nullable=False),
        sa.Column('side', sa.String(length=20), nullable=False),
        sa.Column('size', sa.Float(), nullable=False),
        sa.Column('recorded_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_price_samples_recorded_at', 'price_samples', ['recorded_at'])
    op.create_index('ix_price_samples_market_recorded', 'price_samples', ['market_id', 'recorded_at'])

    logger.info("Step 4/4: Creating alert_history table...")
    op.create_table(
        'alert_history',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('subscription_id', sa.Integer(), nullable=False),
        sa.Column('market_id', sa.String(), nullable=False),
        sa.Column('triggered_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('previous_price', sa.Float(), nullable=False),
        sa.Column('current_price', sa.Float(), nullable=False),
        sa.Column('change_pct', sa.Float(), nullable=False),
        sa.Column('message_delivered', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['subscription_id'], ['subscriptions.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_alert_history_subscription_id', 'alert_history', ['subscription_id'])
    op.create_index('ix_alert_history_triggered_at', 'alert_history', ['triggered_at'])

    logger.info("✓ Schema created")


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('alert_history')
    op.drop_table('price_samples')
    op.drop_index('uq_subscriptions_user_market_active', table_name='subscriptions')
    op.drop_table('subscriptions')
    op.drop_table('users')
