"""Initial schema: wards, identities, applications, properties, counters, audit logs.

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'wards',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ward_number', sa.Integer(), nullable=False),
        sa.Column('ward_name', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_wards_id', 'wards', ['id'])
    op.create_index('ix_wards_ward_number', 'wards', ['ward_number'], unique=True)

    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='citizen'),
        sa.Column('key_prefix', sa.String(length=16), nullable=True),
        sa.Column('key_digest', sa.String(length=128), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_accounts_id', 'accounts', ['id'])
    op.create_index('ix_accounts_username', 'accounts', ['username'], unique=True)
    op.create_index('ix_accounts_phone', 'accounts', ['phone'])
    op.create_index('ix_accounts_key_prefix', 'accounts', ['key_prefix'])

    op.create_table(
        'staff_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.String(length=50), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        sa.Column('ward_ids', sa.JSON(), nullable=True),
        sa.Column('key_prefix', sa.String(length=16), nullable=True),
        sa.Column('key_digest', sa.String(length=128), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('ix_staff_members_id', 'staff_members', ['id'])
    op.create_index('ix_staff_members_employee_id', 'staff_members', ['employee_id'], unique=True)
    op.create_index('ix_staff_members_key_prefix', 'staff_members', ['key_prefix'])

    op.create_table(
        'sequence_counters',
        sa.Column('ward_id', sa.Integer(), sa.ForeignKey('wards.id'), primary_key=True),
        sa.Column('entity_tag', sa.String(length=50), primary_key=True),
        sa.Column('last_value', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'properties',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('property_number', sa.String(length=50), nullable=False),
        sa.Column('unique_code', sa.String(length=50), nullable=False),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('owner_name', sa.String(length=100), nullable=True),
        sa.Column('owner_phone', sa.String(length=20), nullable=True),
        sa.Column('ward_id', sa.Integer(), sa.ForeignKey('wards.id'), nullable=False),
        sa.Column('property_type', sa.String(length=30), nullable=False),
        sa.Column('usage_type', sa.String(length=30), nullable=True),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=False),
        sa.Column('pincode', sa.String(length=10), nullable=False),
        sa.Column('area', sa.Numeric(10, 2), nullable=False),
        sa.Column('built_up_area', sa.Numeric(10, 2), nullable=True),
        sa.Column('floors', sa.Integer(), nullable=True),
        sa.Column('construction_type', sa.String(length=20), nullable=True),
        sa.Column('construction_year', sa.Integer(), nullable=True),
        sa.Column('occupancy_status', sa.String(length=30), nullable=True),
        sa.Column('geolocation', sa.JSON(), nullable=True),
        sa.Column('photos', sa.JSON(), nullable=True),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='active'),
        sa.Column('source_application_id', sa.Integer(), nullable=False),
        sa.Column('created_by_kind', sa.String(length=20), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_properties_id', 'properties', ['id'])
    op.create_index('ix_properties_unique_code', 'properties', ['unique_code'], unique=True)
    op.create_index('ix_properties_owner_id', 'properties', ['owner_id'])
    op.create_index('ix_properties_ward_id', 'properties', ['ward_id'])
    op.create_index('ix_properties_source_application_id', 'properties', ['source_application_id'], unique=True)

    op.create_table(
        'property_applications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('application_number', sa.String(length=50), nullable=False),
        sa.Column('status', sa.String(length=30), nullable=False, server_default='DRAFT'),
        sa.Column('ward_id', sa.Integer(), sa.ForeignKey('wards.id'), nullable=False),
        sa.Column('applicant_id', sa.Integer(), sa.ForeignKey('accounts.id'), nullable=False),
        sa.Column('created_by_kind', sa.String(length=20), nullable=False),
        sa.Column('created_by_id', sa.Integer(), nullable=True),
        sa.Column('owner_name', sa.String(length=100), nullable=False),
        sa.Column('owner_phone', sa.String(length=20), nullable=True),
        sa.Column('property_type', sa.String(length=30), nullable=False),
        sa.Column('usage_type', sa.String(length=30), nullable=True),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('city', sa.String(length=100), nullable=False),
        sa.Column('state', sa.String(length=100), nullable=False),
        sa.Column('pincode', sa.String(length=10), nullable=False),
        sa.Column('area', sa.Numeric(10, 2), nullable=False),
        sa.Column('built_up_area', sa.Numeric(10, 2), nullable=True),
        sa.Column('floors', sa.Integer(), nullable=True),
        sa.Column('construction_type', sa.String(length=20), nullable=True),
        sa.Column('construction_year', sa.Integer(), nullable=True),
        sa.Column('occupancy_status', sa.String(length=30), nullable=True),
        sa.Column('geolocation', sa.JSON(), nullable=True),
        sa.Column('photos', sa.JSON(), nullable=True),
        sa.Column('documents', sa.JSON(), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('inspection_remarks', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('inspected_by_kind', sa.String(length=20), nullable=True),
        sa.Column('inspected_by_id', sa.Integer(), nullable=True),
        sa.Column('inspected_at', sa.DateTime(), nullable=True),
        sa.Column('approved_property_id', sa.Integer(), sa.ForeignKey('properties.id'), nullable=True),
        *_timestamps(),
        sqlite_autoincrement=True,
    )
    op.create_index('ix_property_applications_id', 'property_applications', ['id'])
    op.create_index(
        'ix_property_applications_application_number', 'property_applications', ['application_number'], unique=True
    )
    op.create_index('ix_property_applications_status', 'property_applications', ['status'])
    op.create_index('ix_property_applications_ward_id', 'property_applications', ['ward_id'])
    op.create_index('ix_property_applications_applicant_id', 'property_applications', ['applicant_id'])
    op.create_index('ix_property_applications_created_by_id', 'property_applications', ['created_by_id'])
    op.create_index(
        'ix_property_applications_approved_property_id', 'property_applications', ['approved_property_id']
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=True),
        sa.Column('actor_role', sa.String(length=50), nullable=False),
        sa.Column('action_type', sa.String(length=50), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('previous_data', sa.JSON(), nullable=True),
        sa.Column('new_data', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_actor_role', 'audit_logs', ['actor_role'])
    op.create_index('ix_audit_logs_action_type', 'audit_logs', ['action_type'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_logs_actor_timestamp', 'audit_logs', ['actor_user_id', 'timestamp'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('property_applications')
    op.drop_table('properties')
    op.drop_table('sequence_counters')
    op.drop_table('staff_members')
    op.drop_table('accounts')
    op.drop_table('wards')
