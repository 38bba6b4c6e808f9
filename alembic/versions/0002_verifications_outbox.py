"""ticket verifications and notification outbox

Revision ID: 0002_verifications_outbox
Revises: 0001_initial
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = '0002_verifications_outbox'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'ticket_verifications',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('reservation_kind', sa.String(length=10), nullable=False),
        sa.Column('reservation_id', sa.String(length=36), nullable=False),
        sa.Column('ticket_id', sa.String(length=40), nullable=False, server_default=''),
        sa.Column('verified_by', sa.String(length=36), nullable=False),
        sa.Column('result', sa.String(length=10), nullable=False),
        sa.Column('location', sa.String(length=200), nullable=False, server_default=''),
        sa.Column('bus_used', sa.String(length=36), nullable=False, server_default=''),
        sa.Column('notes', sa.String(length=500), nullable=False, server_default=''),
        sa.Column('is_manual', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('verified_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_ticket_verifications_reservation_kind', 'ticket_verifications', ['reservation_kind'])
    op.create_index('ix_ticket_verifications_reservation_id', 'ticket_verifications', ['reservation_id'])

    op.create_table(
        'notification_events',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('recipient_id', sa.String(length=36), nullable=False),
        sa.Column('type', sa.String(length=40), nullable=False),
        sa.Column('reservation_kind', sa.String(length=10), nullable=False, server_default=''),
        sa.Column('reservation_id', sa.String(length=36), nullable=False, server_default=''),
        sa.Column('payload_json', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='queued'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('dispatched_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_notification_events_recipient_id', 'notification_events', ['recipient_id'])
    op.create_index('ix_notification_events_type', 'notification_events', ['type'])
    op.create_index('ix_notification_events_reservation_id', 'notification_events', ['reservation_id'])
    op.create_index('ix_notification_events_status', 'notification_events', ['status'])


def downgrade():
    op.drop_table('notification_events')
    op.drop_table('ticket_verifications')
