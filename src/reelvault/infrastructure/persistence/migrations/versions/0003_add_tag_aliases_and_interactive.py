"""add tag aliases and interactive scenes

Revision ID: 0003
Revises: 0002
Create Date: 2026-03-21 10:15:00.000000

Tag aliases let a tag match library paths under alternative names.
scenes.interactive marks scenes that ship a funscript (heatmaps are generated
into the interactive_heatmaps directory).
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0003'
down_revision = '0002'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'tag_aliases',
        sa.Column('tag_id', sa.Integer, sa.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('alias', sa.String(255), primary_key=True),
    )

    with op.batch_alter_table('scenes') as batch_op:
        batch_op.add_column(
            sa.Column('interactive', sa.Boolean, nullable=False, server_default=sa.false())
        )


def downgrade() -> None:
    with op.batch_alter_table('scenes') as batch_op:
        batch_op.drop_column('interactive')
    op.drop_table('tag_aliases')
