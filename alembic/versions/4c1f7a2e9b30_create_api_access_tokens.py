"""create_api_access_tokens

Revision ID: 4c1f7a2e9b30
Revises:
Create Date: 2026-10-16 09:12:41.381205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4c1f7a2e9b30'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'api_access_tokens',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('token_id', sa.String(length=20), nullable=False),
        sa.Column('owner_reference', sa.String(length=100), nullable=False),
        sa.Column('display_name', sa.String(length=100), nullable=False),
        sa.Column('secret_hash', sa.String(length=64), nullable=False),
        sa.Column('secret_prefix', sa.String(length=10), nullable=False),
        sa.Column('scopes', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('can_read', sa.Boolean(), nullable=False),
        sa.Column('can_write', sa.Boolean(), nullable=False),
        sa.Column('can_delete', sa.Boolean(), nullable=False),
        sa.Column('can_admin', sa.Boolean(), nullable=False),
        sa.Column('requests_per_minute', sa.Integer(), nullable=False),
        sa.Column('requests_per_hour', sa.Integer(), nullable=False),
        sa.Column('requests_per_day', sa.Integer(), nullable=False),
        sa.Column('total_requests', sa.Integer(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('requests_this_minute', sa.Integer(), nullable=False),
        sa.Column('requests_this_hour', sa.Integer(), nullable=False),
        sa.Column('requests_today', sa.Integer(), nullable=False),
        sa.Column('minute_reset_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('hour_reset_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('day_reset_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_restrictions', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('domain_restrictions', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_by', sa.String(length=100), nullable=True),
        sa.Column('revoked_reason', sa.Text(), nullable=True),
        sa.Column('last_activity', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('security_flags', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_by', sa.String(length=100), nullable=True),
        sa.Column('updated_by', sa.String(length=100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token_id'),
    )
    op.create_index('ix_api_access_tokens_owner_reference', 'api_access_tokens', ['owner_reference'])
    op.create_index('ix_api_access_tokens_expires_at', 'api_access_tokens', ['expires_at'])
    op.create_index('ix_api_access_token_lookup', 'api_access_tokens', ['secret_prefix', 'secret_hash'])
    op.create_index(
        'ix_api_access_token_owner_created', 'api_access_tokens', ['owner_reference', 'created_at']
    )

    op.create_table(
        'api_access_token_sequences',
        sa.Column('day', sa.String(length=8), nullable=False),
        sa.Column('last_sequence', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('day'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('api_access_token_sequences')
    op.drop_index('ix_api_access_token_owner_created', table_name='api_access_tokens')
    op.drop_index('ix_api_access_token_lookup', table_name='api_access_tokens')
    op.drop_index('ix_api_access_tokens_expires_at', table_name='api_access_tokens')
    op.drop_index('ix_api_access_tokens_owner_reference', table_name='api_access_tokens')
    op.drop_table('api_access_tokens')
