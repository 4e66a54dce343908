"""Initial wishwatch schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 12:00:00.000000

Tables created:
- users: Telegram users
- streamers: Tracked fetta.app profiles with polling tier
- user_streamers: Which user tracks which streamer
- user_streamer_settings: Per-streamer notification toggles of a user
- telegram_groups: Group chats linked by a user
- group_streamer_settings: Opt-in flag per group and streamer
- wishlist_items: Last persisted wishlist snapshot per streamer
- scheduler_lock: Single row electing the active scheduler
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
    logger.info("Creating initial wishwatch schema...")

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('telegram_id', sa.BigInteger(), nullable=True),
        sa.Column('username', sa.String(), nullable=True),
        sa.Column('first_name', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_telegram_id', 'users', ['telegram_id'], unique=True)

    op.create_table(
        'streamers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('nickname', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('fetta_url', sa.String(), nullable=True),
        sa.Column('avatar', sa.String(), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_streamers_nickname_lower',
        'streamers',
        [sa.text('lower(nickname)')],
        unique=True
    )
    logger.info("✓ users and streamers tables created")

    op.create_table(
        'user_streamers',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('streamer_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['streamer_id'], ['streamers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'streamer_id', name='uq_user_streamer')
    )
    op.create_index('ix_user_streamers_user_id', 'user_streamers', ['user_id'])
    op.create_index('ix_user_streamers_streamer_id', 'user_streamers', ['streamer_id'])

    op.create_table(
        'user_streamer_settings',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('streamer_id', sa.Integer(), nullable=False),
        sa.Column('notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('notify_in_pm', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['streamer_id'], ['streamers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id', 'streamer_id')
    )

    op.create_table(
        'telegram_groups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('chat_id', sa.BigInteger(), nullable=False),
        sa.Column('title', sa.String(), nullable=True),
        sa.Column('added_by_user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['added_by_user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_telegram_groups_chat_id', 'telegram_groups', ['chat_id'], unique=True)
    op.create_index('ix_telegram_groups_added_by_user_id', 'telegram_groups', ['added_by_user_id'])

    op.create_table(
        'group_streamer_settings',
        sa.Column('group_id', sa.Integer(), nullable=False),
        sa.Column('streamer_id', sa.Integer(), nullable=False),
        sa.Column('notifications_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(['group_id'], ['telegram_groups.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['streamer_id'], ['streamers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('group_id', 'streamer_id')
    )
    logger.info("✓ tracking and recipient tables created")

    op.create_table(
        'wishlist_items',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('streamer_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.String(), nullable=True),
        sa.Column('external_id', sa.String(), nullable=True),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('price', sa.String(), nullable=True),
        sa.Column('image', sa.String(), nullable=True),
        sa.Column('product_url', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['streamer_id'], ['streamers.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('streamer_id', 'product_id', name='uq_streamer_product')
    )
    op.create_index('ix_wishlist_items_streamer_id', 'wishlist_items', ['streamer_id'])

    op.create_table(
        'scheduler_lock',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('instance_id', sa.String(), nullable=False),
        sa.Column('acquired_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('heartbeat_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    logger.info("✓ wishlist_items and scheduler_lock tables created")


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('scheduler_lock')
    op.drop_index('ix_wishlist_items_streamer_id', table_name='wishlist_items')
    op.drop_table('wishlist_items')
    op.drop_table('group_streamer_settings')
    op.drop_index('ix_telegram_groups_added_by_user_id', table_name='telegram_groups')
    op.drop_index('ix_telegram_groups_chat_id', table_name='telegram_groups')
    op.drop_table('telegram_groups')
    op.drop_table('user_streamer_settings')
    op.drop_index('ix_user_streamers_streamer_id', table_name='user_streamers')
    op.drop_index('ix_user_streamers_user_id', table_name='user_streamers')
    op.drop_table('user_streamers')
    op.drop_index('ix_streamers_nickname_lower', table_name='streamers')
    op.drop_table('streamers')
    op.drop_index('ix_users_telegram_id', table_name='users')
    op.drop_table('users')
