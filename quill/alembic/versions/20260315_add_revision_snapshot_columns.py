"""add revision numbering and snapshot columns to post_revisions

Revision ID: 2b3c4d5e6f7a
Revises: 1a2b3c4d5e6f
Create Date: 2026-03-15 09:00:00.000000

Existing rows keep a NULL revision_number; readers derive their position
from created_at and id.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '2b3c4d5e6f7a'
down_revision: Union[str, None] = '1a2b3c4d5e6f'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ID_TYPE = sa.BigInteger().with_variant(sa.Integer(), "sqlite")


def upgrade() -> None:
    with op.batch_alter_table('post_revisions') as batch_op:
        batch_op.add_column(sa.Column('editor_id', ID_TYPE, nullable=True))
        batch_op.add_column(sa.Column('revision_number', sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column('content_md', sa.Text(), nullable=True))
        batch_op.add_column(sa.Column('title', sa.String(length=255), nullable=True))
        batch_op.add_column(sa.Column('summary', sa.Text(), nullable=True))
        batch_op.add_column(sa.Column('cover_image_url', sa.String(length=512), nullable=True))
        batch_op.add_column(sa.Column('is_featured', sa.Boolean(), nullable=True))
        batch_op.add_column(sa.Column('allow_comments', sa.Boolean(), nullable=True))
        batch_op.add_column(sa.Column('status', sa.String(length=20), nullable=True))
        batch_op.add_column(sa.Column('slug', sa.String(length=191), nullable=True))
        batch_op.add_column(sa.Column('author_id', sa.Integer(), nullable=True))
        batch_op.add_column(sa.Column('published_at', sa.DateTime(timezone=True), nullable=True))
        batch_op.create_foreign_key(
            op.f('fk_post_revisions_editor_id_users'), 'users', ['editor_id'], ['id'], ondelete='SET NULL'
        )
        batch_op.create_unique_constraint(
            'uq_post_revisions_post_id_revision_number', ['post_id', 'revision_number']
        )
        batch_op.create_index(op.f('ix_post_revisions_editor_id'), ['editor_id'], unique=False)
        batch_op.create_index('ix_post_revisions_post_id_created_at', ['post_id', 'created_at'], unique=False)


def downgrade() -> None:
    with op.batch_alter_table('post_revisions') as batch_op:
        batch_op.drop_index('ix_post_revisions_post_id_created_at')
        batch_op.drop_index(op.f('ix_post_revisions_editor_id'))
        batch_op.drop_constraint('uq_post_revisions_post_id_revision_number', type_='unique')
        batch_op.drop_constraint(op.f('fk_post_revisions_editor_id_users'), type_='foreignkey')
        batch_op.drop_column('published_at')
        batch_op.drop_column('author_id')
        batch_op.drop_column('slug')
        batch_op.drop_column('status')
        batch_op.drop_column('allow_comments')
        batch_op.drop_column('is_featured')
        batch_op.drop_column('cover_image_url')
        batch_op.drop_column('summary')
        batch_op.drop_column('title')
        batch_op.drop_column('content_md')
        batch_op.drop_column('revision_number')
        batch_op.drop_column('editor_id')
