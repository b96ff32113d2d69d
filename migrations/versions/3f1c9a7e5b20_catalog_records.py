"""catalog_records and seen_episodes tables

Revision ID: 3f1c9a7e5b20
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7e5b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'catalog_records',
        sa.Column('series_id', sa.String(32), primary_key=True),
        sa.Column('anilist_id', sa.Integer(), nullable=True),
        sa.Column('latest_episode', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('episode_aired_at', sa.DateTime(), nullable=True),
        sa.Column('episode_added_at', sa.DateTime(), nullable=True),
        sa.Column('last_refreshed_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(40), nullable=True),
        sa.Column('title', sa.String(500), nullable=False, server_default='Unknown'),
        sa.Column('title_english', sa.String(500), nullable=True),
        sa.Column('title_native', sa.String(500), nullable=True),
        sa.Column('image_url', sa.String(1000), nullable=True),
        sa.Column('banner_url', sa.String(1000), nullable=True),
        sa.Column('synopsis', sa.String(8000), nullable=True),
        sa.Column('genres', sa.JSON(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('studios', sa.JSON(), nullable=True),
        sa.Column('score', sa.Integer(), nullable=True),
        sa.Column('total_episodes', sa.Integer(), nullable=True),
        sa.Column('season', sa.String(20), nullable=True),
        sa.Column('season_year', sa.Integer(), nullable=True),
        sa.Column('format', sa.String(20), nullable=True),
        sa.Column('country', sa.String(4), nullable=True),
        sa.Column('started_on', sa.Date(), nullable=True),
        sa.Column('site_url', sa.String(1000), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_catalog_records_anilist_id', 'catalog_records', ['anilist_id'])
    op.create_index('ix_catalog_records_episode_aired_at', 'catalog_records', ['episode_aired_at'])
    op.create_index('ix_catalog_records_episode_added_at', 'catalog_records', ['episode_added_at'])
    op.create_index('ix_catalog_records_status', 'catalog_records', ['status'])

    op.create_table(
        'seen_episodes',
        sa.Column('series_id', sa.String(32), primary_key=True),
        sa.Column('episode', sa.Integer(), primary_key=True),
        sa.Column('aired_at', sa.DateTime(), nullable=False),
        sa.Column('first_seen_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_seen_episodes_aired_at', 'seen_episodes', ['aired_at'])


def downgrade() -> None:
    op.drop_table('seen_episodes')
    op.drop_table('catalog_records')
