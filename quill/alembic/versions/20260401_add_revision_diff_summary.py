"""add diff_summary to post_revisions

Revision ID: 3c4d5e6f7a8b
Revises: 2b3c4d5e6f7a
Create Date: 2026-04-01 09:00:00.000000
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c4d5e6f7a8b'
down_revision: Union[str, None] = '2b3c4d5e6f7a'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.add_column('post_revisions', sa.Column('diff_summary', sa.String(length=255), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table('post_revisions') as batch_op:
        batch_op.drop_column('diff_summary')
