"""create asset sync tables

Revision ID: a3f1c2d4e5b6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a3f1c2d4e5b6'
down_revision = None
branch_labels = None
depends_on = None


ACTIVE_JOB_WHERE = "status IN ('pending', 'running')"


def upgrade() -> None:
    op.create_table(
        'shops',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_domain', sa.String(length=255), nullable=False),
        sa.Column('dam_base_url', sa.String(length=512), nullable=True),
        sa.Column('dam_permanent_token', sa.Text(), nullable=True),
        sa.Column('shopify_access_token', sa.Text(), nullable=True),
        sa.Column('webhook_secret', sa.String(length=255), nullable=True),
        sa.Column('sync_tags', sa.String(length=512), nullable=False, server_default='shopify-sync'),
        sa.Column('auto_sync_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('file_name_prefix', sa.String(length=64), nullable=True),
        sa.Column('file_name_suffix', sa.String(length=64), nullable=True),
        sa.Column('file_folder_template', sa.String(length=255), nullable=True),
        sa.Column('alt_text_prefix', sa.String(length=128), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_shops')),
        sa.UniqueConstraint('shop_domain', name=op.f('uq_shops_shop_domain')),
    )

    op.create_table(
        'sync_jobs',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('trigger', sa.String(length=16), nullable=False, server_default='manual'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('assets_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('assets_created', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('assets_updated', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('errors', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','running','completed','failed','cancelled')",
            name=op.f('ck_sync_jobs_status_valid'),
        ),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name=op.f('fk_sync_jobs_shop_id_shops'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sync_jobs')),
    )
    op.create_index(
        'uq_sync_jobs_active_shop', 'sync_jobs', ['shop_id'], unique=True,
        postgresql_where=sa.text(ACTIVE_JOB_WHERE),
        sqlite_where=sa.text(ACTIVE_JOB_WHERE),
    )
    op.create_index('ix_sync_jobs_status_created', 'sync_jobs', ['status', 'created_at'])
    op.create_index('ix_sync_jobs_shop_created', 'sync_jobs', ['shop_id', 'created_at'])

    op.create_table(
        'webhook_subscriptions',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=False),
        sa.Column('dam_webhook_id', sa.String(length=128), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('endpoint', sa.String(length=1024), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('deactivated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name=op.f('fk_webhook_subscriptions_shop_id_shops'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_webhook_subscriptions')),
    )
    op.create_index('ix_webhook_subscriptions_shop_active', 'webhook_subscriptions', ['shop_id', 'active'])

    op.create_table(
        'webhook_events',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=False),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('asset_id', sa.String(length=128), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('note', sa.String(length=255), nullable=True),
        sa.Column('processed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['shop_id'], ['shops.id'], name=op.f('fk_webhook_events_shop_id_shops'), ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_webhook_events')),
    )
    op.create_index('ix_webhook_events_shop_created', 'webhook_events', ['shop_id', 'created_at'])
    op.create_index('ix_webhook_events_asset', 'webhook_events', ['shop_id', 'asset_id'])

    op.create_table(
        'sync_metrics',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('shop_id', sa.String(length=32), nullable=False),
        sa.Column('sync_job_id', sa.String(length=32), nullable=True),
        sa.Column('metric_type', sa.String(length=32), nullable=False),
        sa.Column('metric_name', sa.String(length=128), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('recorded_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_sync_metrics')),
    )
    op.create_index('ix_sync_metrics_shop_recorded', 'sync_metrics', ['shop_id', 'recorded_at'])
    op.create_index('ix_sync_metrics_job_type', 'sync_metrics', ['sync_job_id', 'metric_type'])
    op.create_index('ix_sync_metrics_recorded', 'sync_metrics', ['recorded_at'])


def downgrade() -> None:
    op.drop_index('ix_sync_metrics_recorded', table_name='sync_metrics')
    op.drop_index('ix_sync_metrics_job_type', table_name='sync_metrics')
    op.drop_index('ix_sync_metrics_shop_recorded', table_name='sync_metrics')
    op.drop_table('sync_metrics')

    op.drop_index('ix_webhook_events_asset', table_name='webhook_events')
    op.drop_index('ix_webhook_events_shop_created', table_name='webhook_events')
    op.drop_table('webhook_events')

    op.drop_index('ix_webhook_subscriptions_shop_active', table_name='webhook_subscriptions')
    op.drop_table('webhook_subscriptions')

    op.drop_index('ix_sync_jobs_shop_created', table_name='sync_jobs')
    op.drop_index('ix_sync_jobs_status_created', table_name='sync_jobs')
    op.drop_index('uq_sync_jobs_active_shop', table_name='sync_jobs')
    op.drop_table('sync_jobs')

    op.drop_table('shops')
