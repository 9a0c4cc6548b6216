"""add images and galleries

Revision ID: 0002
Revises: 0001
Create Date: 2026-02-03 18:30:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0002'
down_revision = '0001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'images',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('path', sa.String(4096), nullable=False, unique=True),
        sa.Column('checksum', sa.String(64), nullable=True),
        sa.Column('title', sa.String(1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_images_checksum', 'images', ['checksum'])

    op.create_table(
        'galleries',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('path', sa.String(4096), nullable=True, unique=True),
        sa.Column('title', sa.String(1024), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'image_tags',
        sa.Column('image_id', sa.Integer, sa.ForeignKey('images.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tag_id', sa.Integer, sa.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_table(
        'gallery_tags',
        sa.Column('gallery_id', sa.Integer, sa.ForeignKey('galleries.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tag_id', sa.Integer, sa.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
    )


def downgrade() -> None:
    op.drop_table('gallery_tags')
    op.drop_table('image_tags')
    op.drop_table('galleries')
    op.drop_index('ix_images_checksum', table_name='images')
    op.drop_table('images')
