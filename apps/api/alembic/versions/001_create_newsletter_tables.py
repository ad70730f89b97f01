"""create newsletter publishing tables

Revision ID: 001_create_newsletter_tables
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_create_newsletter_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create subscriptions, issues, delivery_queue and idempotency_responses."""

    op.create_table(
        'subscriptions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('subscribed_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )
    op.create_index('ix_subscriptions_status', 'subscriptions', ['status'])

    op.create_table(
        'issues',
        sa.Column('issue_id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('text_content', sa.Text(), nullable=False),
        sa.Column('html_content', sa.Text(), nullable=False),
        sa.Column('published_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('issue_id'),
    )

    op.create_table(
        'delivery_queue',
        sa.Column('issue_id', sa.Uuid(), nullable=False),
        sa.Column('subscriber_email', sa.String(length=320), nullable=False),
        sa.Column('retry_count', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column(
            'enqueued_at',
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(['issue_id'], ['issues.issue_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('issue_id', 'subscriber_email'),
    )

    # The unique constraint is what serialises concurrent publishes with the same key
    op.create_table(
        'idempotency_responses',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('owner_id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=50), nullable=False),
        sa.Column('response_status_code', sa.Integer(), nullable=True),
        sa.Column('response_headers', sa.JSON(), nullable=True),
        sa.Column('response_body', sa.LargeBinary(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_id', 'idempotency_key', name='uq_idempotency_owner_key'),
    )
    op.create_index(
        'ix_idempotency_responses_owner_id',
        'idempotency_responses',
        ['owner_id'],
    )


def downgrade() -> None:
    """Drop the newsletter publishing tables."""

    op.drop_index('ix_idempotency_responses_owner_id', table_name='idempotency_responses')
    op.drop_table('idempotency_responses')
    op.drop_table('delivery_queue')
    op.drop_table('issues')
    op.drop_index('ix_subscriptions_status', table_name='subscriptions')
    op.drop_table('subscriptions')
