"""Initial schema - tenants, alert rules, alerts, notices and reference data

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '0001_initial'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")
TS = sa.DateTime(timezone=True)
PENDING_NOTICE = sa.text("status IN ('DRAFT', 'GENERATED')")


def upgrade() -> None:
    """Create all tables."""

    # ==========================================================================
    # Tenants
    # ==========================================================================
    op.create_table(
        'organizations',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    )
    op.create_table(
        'organization_settings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('obligated_subject_key', sa.String(13), nullable=True),
        sa.Column('activity_key', sa.String(10), nullable=False),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    )

    # ==========================================================================
    # Alert rules
    # ==========================================================================
    op.create_table(
        'alert_rules',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('rule_type', sa.String(100), nullable=True),
        sa.Column('is_manual_only', sa.Boolean(), nullable=False),
        sa.Column('activity_code', sa.String(10), nullable=False),
        sa.Column('metadata', JSON, nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    )
    op.create_table(
        'alert_rule_configs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('alert_rule_id', sa.String(64), sa.ForeignKey('alert_rules.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('key', sa.String(100), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('is_hardcoded', sa.Boolean(), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.UniqueConstraint('alert_rule_id', 'key', name='uq_alert_rule_configs_key'),
    )

    # ==========================================================================
    # Notices
    # ==========================================================================
    op.create_table(
        'notices',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('period_start', TS, nullable=False),
        sa.Column('period_end', TS, nullable=False),
        sa.Column('reported_month', sa.String(6), nullable=False),
        sa.Column('record_count', sa.Integer(), nullable=False),
        sa.Column('xml_file_key', sa.String(500), nullable=True),
        sa.Column('xml_file_url', sa.String(1000), nullable=True),
        sa.Column('file_size', sa.BigInteger(), nullable=True),
        sa.Column('file_checksum', sa.String(64), nullable=True),
        sa.Column('generated_at', TS, nullable=True),
        sa.Column('submitted_at', TS, nullable=True),
        sa.Column('sat_folio_number', sa.String(100), nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
    )
    op.create_index('ix_notices_org_month_status', 'notices', ['organization_id', 'reported_month', 'status'])
    op.create_index(
        'uq_notices_pending_month', 'notices', ['organization_id', 'reported_month'],
        unique=True, postgresql_where=PENDING_NOTICE, sqlite_where=PENDING_NOTICE,
    )

    # ==========================================================================
    # Alerts
    # ==========================================================================
    op.create_table(
        'alerts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('alert_rule_id', sa.String(64), sa.ForeignKey('alert_rules.id', ondelete='RESTRICT'),
                  nullable=False),
        sa.Column('client_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('severity', sa.String(20), nullable=False),
        sa.Column('idempotency_key', sa.String(255), nullable=False),
        sa.Column('context_hash', sa.String(255), nullable=False),
        sa.Column('metadata', JSON, nullable=False),
        sa.Column('transaction_id', sa.Uuid(), nullable=True),
        sa.Column('is_manual', sa.Boolean(), nullable=False),
        sa.Column('submission_deadline', TS, nullable=True),
        sa.Column('file_generated_at', TS, nullable=True),
        sa.Column('submitted_at', TS, nullable=True),
        sa.Column('sat_file_url', sa.String(500), nullable=True),
        sa.Column('sat_acknowledgment_receipt', sa.String(500), nullable=True),
        sa.Column('sat_folio_number', sa.String(100), nullable=True),
        sa.Column('is_overdue', sa.Boolean(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reviewed_at', TS, nullable=True),
        sa.Column('reviewed_by', sa.String(100), nullable=True),
        sa.Column('cancelled_at', TS, nullable=True),
        sa.Column('cancelled_by', sa.String(100), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('notice_id', sa.Uuid(), sa.ForeignKey('notices.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.Column('updated_at', TS, nullable=False),
        sa.UniqueConstraint('organization_id', 'idempotency_key', name='uq_alerts_idempotency_key'),
    )
    op.create_index('ix_alerts_org_status', 'alerts', ['organization_id', 'status'])
    op.create_index('ix_alerts_org_created', 'alerts', ['organization_id', 'created_at'])
    op.create_index('ix_alerts_notice', 'alerts', ['notice_id'])

    # ==========================================================================
    # Reference data
    # ==========================================================================
    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('person_type', sa.String(20), nullable=False),
        sa.Column('rfc', sa.String(13), nullable=True),
        sa.Column('first_name', sa.String(120), nullable=True),
        sa.Column('last_name', sa.String(120), nullable=True),
        sa.Column('second_last_name', sa.String(120), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('curp', sa.String(18), nullable=True),
        sa.Column('economic_activity_code', sa.String(10), nullable=True),
        sa.Column('business_name', sa.String(255), nullable=True),
        sa.Column('incorporation_date', sa.Date(), nullable=True),
        sa.Column('trust_identifier', sa.String(40), nullable=True),
        sa.Column('representative_first_name', sa.String(120), nullable=True),
        sa.Column('representative_last_name', sa.String(120), nullable=True),
        sa.Column('representative_second_last_name', sa.String(120), nullable=True),
        sa.Column('representative_birth_date', sa.Date(), nullable=True),
        sa.Column('nationality', sa.String(3), nullable=True),
        sa.Column('country', sa.String(3), nullable=False),
        sa.Column('state_code', sa.String(10), nullable=True),
        sa.Column('city', sa.String(120), nullable=True),
        sa.Column('municipality', sa.String(120), nullable=True),
        sa.Column('neighborhood', sa.String(120), nullable=True),
        sa.Column('street', sa.String(200), nullable=True),
        sa.Column('external_number', sa.String(20), nullable=True),
        sa.Column('internal_number', sa.String(20), nullable=True),
        sa.Column('postal_code', sa.String(10), nullable=True),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_table(
        'beneficial_owners',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('person_type', sa.String(20), nullable=False),
        sa.Column('first_name', sa.String(120), nullable=True),
        sa.Column('last_name', sa.String(120), nullable=True),
        sa.Column('second_last_name', sa.String(120), nullable=True),
        sa.Column('birth_date', sa.Date(), nullable=True),
        sa.Column('nationality', sa.String(3), nullable=True),
        sa.Column('business_name', sa.String(255), nullable=True),
        sa.Column('incorporation_date', sa.Date(), nullable=True),
        sa.Column('trust_identifier', sa.String(40), nullable=True),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_table(
        'transactions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('organization_id', sa.Uuid(), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('operation_date', TS, nullable=False),
        sa.Column('operation_type', sa.String(20), nullable=False),
        sa.Column('branch_postal_code', sa.String(10), nullable=True),
        sa.Column('vehicle_type', sa.String(20), nullable=False),
        sa.Column('brand_id', sa.String(64), nullable=False),
        sa.Column('model', sa.String(120), nullable=False),
        sa.Column('year', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.String(64), nullable=True),
        sa.Column('armor_level', sa.String(50), nullable=True),
        sa.Column('engine_number', sa.String(64), nullable=True),
        sa.Column('plates', sa.String(20), nullable=True),
        sa.Column('registration_number', sa.String(64), nullable=True),
        sa.Column('flag_country_id', sa.String(64), nullable=True),
        sa.Column('amount', sa.Numeric(16, 2), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False),
        sa.Column('payment_date', TS, nullable=True),
        sa.Column('created_at', TS, nullable=False),
    )
    op.create_table(
        'transaction_payment_methods',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('transaction_id', sa.Uuid(), sa.ForeignKey('transactions.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('method', sa.String(80), nullable=False),
        sa.Column('amount', sa.Numeric(16, 2), nullable=False),
    )
    op.create_table(
        'catalogs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('key', sa.String(100), nullable=False, unique=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
    )
    op.create_table(
        'catalog_items',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('catalog_id', sa.Uuid(), sa.ForeignKey('catalogs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('normalized_name', sa.String(255), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('metadata', JSON, nullable=True),
        sa.Column('created_at', TS, nullable=False),
        sa.UniqueConstraint('catalog_id', 'normalized_name', name='uq_catalog_items_name'),
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('catalog_items')
    op.drop_table('catalogs')
    op.drop_table('transaction_payment_methods')
    op.drop_table('transactions')
    op.drop_table('beneficial_owners')
    op.drop_table('clients')
    op.drop_index('ix_alerts_notice', table_name='alerts')
    op.drop_index('ix_alerts_org_created', table_name='alerts')
    op.drop_index('ix_alerts_org_status', table_name='alerts')
    op.drop_table('alerts')
    op.drop_index('uq_notices_pending_month', table_name='notices')
    op.drop_index('ix_notices_org_month_status', table_name='notices')
    op.drop_table('notices')
    op.drop_table('alert_rule_configs')
    op.drop_table('alert_rules')
    op.drop_table('organization_settings')
    op.drop_table('organizations')
