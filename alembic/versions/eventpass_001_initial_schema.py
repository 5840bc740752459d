"""initial_schema

Revision ID: eventpass_001
Revises: 
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'eventpass_001'
down_revision = None
branch_labels = None
depends_on = None

def _timestamps():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    ]

def upgrade() -> None:
    op.create_table(
        'tenants',
        *_timestamps(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tenants_id', 'tenants', ['id'])
    op.create_index('ix_tenants_slug', 'tenants', ['slug'], unique=True)

    op.create_table(
        'events',
        *_timestamps(),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id'), nullable=True),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=150), nullable=False),
        sa.Column('participant_capacity', sa.Integer(), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('event_logo', sa.String(length=500), nullable=True),
        sa.Column('event_image', sa.String(length=500), nullable=True),
        sa.Column('default_ticket_id', sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_events_id', 'events', ['id'])
    op.create_index('ix_events_slug', 'events', ['slug'], unique=True)

    op.create_table(
        'tickets',
        *_timestamps(),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id'), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('ticket_category', sa.String(length=100), nullable=True),
        sa.Column('serial_no_prefix', sa.String(length=50), nullable=True),
        sa.Column('start_count', sa.String(length=20), nullable=True),
        sa.Column('auto_approve', sa.Boolean(), nullable=True),
        sa.Column('buy_limit_max', sa.Integer(), nullable=True),
        sa.Column('field_map', sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tickets_id', 'tickets', ['id'])
    op.create_index('ix_tickets_event_id', 'tickets', ['event_id'])

    op.create_table(
        'participant_identities',
        *_timestamps(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('dynamic_fields', sa.JSON(), nullable=False),
        sa.Column('is_blocked', sa.Boolean(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_participant_identities_id', 'participant_identities', ['id'])
    op.create_index('ix_participant_identities_email', 'participant_identities', ['email'], unique=True)

    op.create_table(
        'event_registrations',
        *_timestamps(),
        sa.Column('identity_id', sa.Integer(), sa.ForeignKey('participant_identities.id'), nullable=False),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id'), nullable=False),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id'), nullable=True),
        sa.Column('dedupe_key', sa.String(length=100), nullable=False),
        sa.Column('registration_number', sa.String(length=100), nullable=True),
        sa.Column('form_data', sa.JSON(), nullable=False),
        sa.Column('source', sa.String(length=20), nullable=True),
        sa.Column('face_ref', sa.String(length=255), nullable=True),
        sa.Column('face_image', sa.String(length=500), nullable=True),
        sa.Column('qr_token', sa.String(length=64), nullable=False),
        sa.Column('qr_image', sa.String(length=500), nullable=True),
        sa.Column('approved', sa.Boolean(), nullable=True),
        sa.Column('status', sa.String(length=10), nullable=True),
        sa.Column('checkin_time', sa.DateTime(), nullable=True),
        sa.Column('checkout_time', sa.DateTime(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('dedupe_key'),
        sa.UniqueConstraint('qr_token'),
    )
    op.create_index('ix_event_registrations_id', 'event_registrations', ['id'])
    op.create_index('ix_event_registrations_identity_id', 'event_registrations', ['identity_id'])
    op.create_index('ix_event_registrations_event_id', 'event_registrations', ['event_id'])
    op.create_index('ix_event_registrations_ticket_id', 'event_registrations', ['ticket_id'])
    op.create_index('ix_event_registrations_registration_number', 'event_registrations', ['registration_number'])

    op.create_table(
        'sequence_counters',
        *_timestamps(),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id'), nullable=False),
        sa.Column('ticket_id', sa.Integer(), sa.ForeignKey('tickets.id'), nullable=False),
        sa.Column('prefix', sa.String(length=50), nullable=False),
        sa.Column('last_value', sa.Integer(), nullable=False),
        sa.Column('width', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'ticket_id', name='uq_sequence_counter_event_ticket'),
    )
    op.create_index('ix_sequence_counters_id', 'sequence_counters', ['id'])

    op.create_table(
        'short_links',
        *_timestamps(),
        sa.Column('short_id', sa.String(length=32), nullable=False),
        sa.Column('kind', sa.String(length=10), nullable=False),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id'), nullable=False),
        sa.Column('event_slug', sa.String(length=150), nullable=False),
        sa.Column('device_key', sa.Text(), nullable=True),
        sa.Column('form_id', sa.String(length=100), nullable=True),
        sa.Column('encrypted_event_data', sa.Text(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_short_links_id', 'short_links', ['id'])
    op.create_index('ix_short_links_short_id', 'short_links', ['short_id'], unique=True)
    op.create_index('ix_short_links_event_id', 'short_links', ['event_id'])
    op.create_index('ix_short_links_expires_at', 'short_links', ['expires_at'])

    op.create_table(
        'scanner_devices',
        *_timestamps(),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('device_type', sa.String(length=50), nullable=False),
        sa.Column('device_key', sa.String(length=255), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_scanner_devices_id', 'scanner_devices', ['id'])
    op.create_index('ix_scanner_devices_tenant_id', 'scanner_devices', ['tenant_id'])

    op.create_table(
        'event_packages',
        *_timestamps(),
        sa.Column('tenant_id', sa.Integer(), sa.ForeignKey('tenants.id'), nullable=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('entries', sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_event_packages_id', 'event_packages', ['id'])

def downgrade() -> None:
    op.drop_table('event_packages')
    op.drop_table('scanner_devices')
    op.drop_table('short_links')
    op.drop_table('sequence_counters')
    op.drop_table('event_registrations')
    op.drop_table('participant_identities')
    op.drop_table('tickets')
    op.drop_table('events')
    op.drop_table('tenants')
