"""catalog schema

Revision ID: 20261018_0900
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_0900'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create games, meta, categories, category_items and telegram_users."""
    op.create_table(
        'games',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('provider', sa.String(), nullable=False),
        sa.Column('thumb', sa.String(), nullable=False),
        sa.Column('rtp', sa.Float(), nullable=True),
        sa.Column('published', sa.Boolean(), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False),
        sa.Column('api_url', sa.String(), nullable=False),
        sa.Column('embed_url', sa.String(), nullable=False),
        sa.Column('updated_at', sa.String(), nullable=True),
        sa.Column('updated_at_ts', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.String(), nullable=True),
        sa.Column('created_at_ts', sa.BigInteger(), nullable=False),
        sa.Column('published_at', sa.String(), nullable=True),
        sa.Column('published_at_ts', sa.BigInteger(), nullable=False),
        sa.Column('synced_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_games_enabled', 'games', ['enabled'])
    op.create_index('ix_games_updated_at_ts', 'games', ['updated_at_ts'])
    op.create_index('ix_games_created_at_ts', 'games', ['created_at_ts'])

    op.create_table(
        'meta',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('key')
    )

    op.create_table(
        'categories',
        sa.Column('id', sa.String(), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('icon', sa.String(), nullable=False),
        sa.Column('active_run_id', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'category_items',
        sa.Column('category_id', sa.String(), nullable=False),
        sa.Column('run_id', sa.BigInteger(), nullable=False),
        sa.Column('game_id', sa.String(), nullable=False),
        sa.Column('rank', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('category_id', 'run_id', 'game_id')
    )
    op.create_index('ix_category_items_category_run', 'category_items', ['category_id', 'run_id'])

    op.create_table(
        'telegram_users',
        sa.Column('chat_id', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('username', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('chat_id')
    )


def downgrade() -> None:
    """Drop every catalog table."""
    op.drop_table('telegram_users')
    op.drop_index('ix_category_items_category_run', table_name='category_items')
    op.drop_table('category_items')
    op.drop_table('categories')
    op.drop_table('meta')
    op.drop_index('ix_games_created_at_ts', table_name='games')
    op.drop_index('ix_games_updated_at_ts', table_name='games')
    op.drop_index('ix_games_enabled', table_name='games')
    op.drop_table('games')
