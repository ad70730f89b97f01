"""add next_attempt_at to delivery_queue

Revision ID: 002_add_delivery_next_attempt_at
Revises: 001_create_newsletter_tables
Create Date: 2026-10-20 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '002_add_delivery_next_attempt_at'
down_revision: Union[str, None] = '001_create_newsletter_tables'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add the retry schedule column; existing rows become due immediately."""

    # Batch mode because SQLite cannot ADD COLUMN with a non-constant default
    with op.batch_alter_table('delivery_queue') as batch_op:
        batch_op.add_column(
            sa.Column(
                'next_attempt_at',
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
                nullable=False,
            )
        )
        batch_op.create_index(
            'ix_delivery_queue_next_attempt_at',
            ['next_attempt_at', 'enqueued_at'],
        )


def downgrade() -> None:
    """Drop the retry schedule column."""

    with op.batch_alter_table('delivery_queue') as batch_op:
        batch_op.drop_index('ix_delivery_queue_next_attempt_at')
        batch_op.drop_column('next_attempt_at')
