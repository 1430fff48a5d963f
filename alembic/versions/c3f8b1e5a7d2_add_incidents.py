"""add incidents

Revision ID: c3f8b1e5a7d2
Revises: a1c4e7d2b9f0
Create Date: 2026-10-19 14:03:27.551906

Citizen incident reports. forest_stats cover figures are seeded at
application startup rather than here.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'c3f8b1e5a7d2'
down_revision: Union[str, None] = 'a1c4e7d2b9f0'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'incidents',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(length=30), nullable=False),
        sa.Column('severity', sa.String(length=10), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=True),
        sa.Column('district', sa.String(length=100), nullable=True),
        sa.Column('location_name', sa.String(length=255), nullable=True),
        sa.Column('reporter_name', sa.String(length=255), nullable=True),
        sa.Column('reporter_org', sa.String(length=255), nullable=True),
        sa.Column('reporter_contact', sa.String(length=255), nullable=True),
        sa.Column('reported_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_incidents_category'), 'incidents', ['category'])
    op.create_index(op.f('ix_incidents_status'), 'incidents', ['status'])
    op.create_index(op.f('ix_incidents_state'), 'incidents', ['state'])
    op.create_index(op.f('ix_incidents_reported_at'), 'incidents', ['reported_at'])


def downgrade() -> None:
    op.drop_index(op.f('ix_incidents_reported_at'), table_name='incidents')
    op.drop_index(op.f('ix_incidents_state'), table_name='incidents')
    op.drop_index(op.f('ix_incidents_status'), table_name='incidents')
    op.drop_index(op.f('ix_incidents_category'), table_name='incidents')
    op.drop_table('incidents')
