"""initial catalog: scenes and tags

Revision ID: 0001
Revises:
Create Date: 2026-01-12 09:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'tags',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(255), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'scenes',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('path', sa.String(4096), nullable=False, unique=True),
        sa.Column('checksum', sa.String(64), nullable=True),
        sa.Column('title', sa.String(1024), nullable=True),
        sa.Column('details', sa.Text, nullable=True),
        sa.Column('duration', sa.Float, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_scenes_checksum', 'scenes', ['checksum'])

    op.create_table(
        'scene_tags',
        sa.Column('scene_id', sa.Integer, sa.ForeignKey('scenes.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tag_id', sa.Integer, sa.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
    )


def downgrade() -> None:
    op.drop_table('scene_tags')
    op.drop_index('ix_scenes_checksum', table_name='scenes')
    op.drop_table('scenes')
    op.drop_table('tags')
