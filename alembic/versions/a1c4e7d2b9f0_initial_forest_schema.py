"""initial forest schema

Revision ID: a1c4e7d2b9f0
Revises:
Create Date: 2026-10-19 09:12:44.318204

Creates the news, alert, state statistics, planted tree and rate limit
tables. forest_alerts carries the uniqueness constraint that makes alert
ingestion idempotent.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'a1c4e7d2b9f0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'news_articles',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('external_id', sa.String(length=512), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('source_name', sa.String(length=255), nullable=True),
        sa.Column('source_url', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=20), nullable=False),
        sa.Column('sentiment', sa.String(length=10), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('published_at', sa.DateTime(), nullable=False),
        sa.Column('ai_summary', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('external_id'),
    )
    op.create_index('idx_news_published', 'news_articles', ['published_at'])
    op.create_index(op.f('ix_news_articles_category'), 'news_articles', ['category'])
    op.create_index(op.f('ix_news_articles_sentiment'), 'news_articles', ['sentiment'])
    op.create_index(op.f('ix_news_articles_state'), 'news_articles', ['state'])

    op.create_table(
        'forest_alerts',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('alert_type', sa.String(length=20), nullable=False),
        sa.Column('severity', sa.String(length=10), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('data_source', sa.String(length=20), nullable=False),
        sa.Column('detected_at', sa.DateTime(), nullable=False),
        sa.Column('raw_data', sa.JSON(), nullable=True),
        sa.Column('latitude_key', sa.Integer(), nullable=False),
        sa.Column('longitude_key', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'data_source', 'detected_at', 'latitude_key', 'longitude_key',
            name='uq_forest_alert_source_time_coords',
        ),
    )
    op.create_index(op.f('ix_forest_alerts_alert_type'), 'forest_alerts', ['alert_type'])
    op.create_index(op.f('ix_forest_alerts_detected_at'), 'forest_alerts', ['detected_at'])

    op.create_table(
        'forest_stats',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('state', sa.String(length=100), nullable=False),
        sa.Column('forest_cover_sqkm', sa.Float(), nullable=True),
        sa.Column('alerts_count', sa.Integer(), nullable=False),
        sa.Column('trend', sa.String(length=20), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('state'),
    )

    op.create_table(
        'planted_trees',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('planter_name', sa.String(length=255), nullable=True),
        sa.Column('planted_date', sa.Date(), nullable=True),
        sa.Column('photo_url', sa.Text(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('ai_confidence', sa.Float(), nullable=True),
        sa.Column('tree_type', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_planted_trees_status'), 'planted_trees', ['status'])

    op.create_table(
        'rate_limits',
        sa.Column('ip_address', sa.String(length=64), nullable=False),
        sa.Column('request_count', sa.Integer(), nullable=False),
        sa.Column('last_request', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('ip_address'),
    )


def downgrade() -> None:
    op.drop_table('rate_limits')
    op.drop_index(op.f('ix_planted_trees_status'), table_name='planted_trees')
    op.drop_table('planted_trees')
    op.drop_table('forest_stats')
    op.drop_index(op.f('ix_forest_alerts_detected_at'), table_name='forest_alerts')
    op.drop_index(op.f('ix_forest_alerts_alert_type'), table_name='forest_alerts')
    op.drop_table('forest_alerts')
    op.drop_index(op.f('ix_news_articles_state'), table_name='news_articles')
    op.drop_index(op.f('ix_news_articles_sentiment'), table_name='news_articles')
    op.drop_index(op.f('ix_news_articles_category'), table_name='news_articles')
    op.drop_index('idx_news_published', table_name='news_articles')
    op.drop_table('news_articles')
