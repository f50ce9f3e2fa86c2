"""Initial schema - background jobs, api cache and market data tables

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'background_jobs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('job_type', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('result', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('scheduled_for', sa.DateTime(timezone=True), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_background_jobs_job_type', 'background_jobs', ['job_type'])
    op.create_index('ix_background_jobs_status', 'background_jobs', ['status'])
    op.create_index('ix_background_jobs_scheduled_for', 'background_jobs', ['scheduled_for'])
    op.create_index('ix_background_jobs_status_scheduled_for', 'background_jobs', ['status', 'scheduled_for'])

    op.create_table(
        'api_cache',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('key', sa.String(length=255), nullable=False),
        sa.Column('source', sa.String(length=64), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key', 'source', name='unique_cache_entry')
    )
    op.create_index('ix_api_cache_expires_at', 'api_cache', ['expires_at'])

    op.create_table(
        'crypto_assets',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('symbol', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('price_usd', sa.Float(), nullable=True),
        sa.Column('price_change_24h', sa.Float(), nullable=True),
        sa.Column('market_cap', sa.Float(), nullable=True),
        sa.Column('volume_24h', sa.Float(), nullable=True),
        sa.Column('rank', sa.Integer(), nullable=True),
        sa.Column('logo_url', sa.String(length=512), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_crypto_assets_symbol', 'crypto_assets', ['symbol'])

    op.create_table(
        'market_snapshots',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('total_market_cap', sa.BigInteger(), nullable=False),
        sa.Column('total_volume_24h', sa.BigInteger(), nullable=False),
        sa.Column('btc_dominance', sa.Float(), nullable=True),
        sa.Column('eth_dominance', sa.Float(), nullable=True),
        sa.Column('altcoin_dominance', sa.Float(), nullable=True),
        sa.Column('total_assets', sa.Integer(), nullable=False),
        sa.Column('fear_greed_value', sa.Integer(), nullable=False),
        sa.Column('fear_greed_classification', sa.String(length=32), nullable=False),
        sa.Column('fear_greed_source', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_market_snapshots_created_at', 'market_snapshots', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_market_snapshots_created_at', table_name='market_snapshots')
    op.drop_table('market_snapshots')
    op.drop_index('ix_crypto_assets_symbol', table_name='crypto_assets')
    op.drop_table('crypto_assets')
    op.drop_index('ix_api_cache_expires_at', table_name='api_cache')
    op.drop_table('api_cache')
    op.drop_index('ix_background_jobs_status_scheduled_for', table_name='background_jobs')
    op.drop_index('ix_background_jobs_scheduled_for', table_name='background_jobs')
    op.drop_index('ix_background_jobs_status', table_name='background_jobs')
    op.drop_index('ix_background_jobs_job_type', table_name='background_jobs')
    op.drop_table('background_jobs')
