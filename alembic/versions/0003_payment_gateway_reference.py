"""unique gateway reference per payment, fractional promo percent

Revision ID: 0003_payment_gateway_reference
Revises: 0002_verifications_outbox
Create Date: 2026-10-17
"""

from alembic import op
import sqlalchemy as sa

revision = '0003_payment_gateway_reference'
down_revision = '0002_verifications_outbox'
branch_labels = None
depends_on = None


def upgrade():
    op.create_index(
        'uq_payments_gateway_reference',
        'payments',
        ['gateway', 'reference'],
        unique=True,
        postgresql_where=sa.text("gateway <> ''"),
        sqlite_where=sa.text("gateway <> ''"),
    )
    with op.batch_alter_table('bookings') as batch:
        batch.alter_column(
            'discount_pct',
            existing_type=sa.Integer(),
            type_=sa.Numeric(5, 2),
            existing_nullable=False,
            existing_server_default='0',
        )


def downgrade():
    with op.batch_alter_table('bookings') as batch:
        batch.alter_column(
            'discount_pct',
            existing_type=sa.Numeric(5, 2),
            type_=sa.Integer(),
            existing_nullable=False,
            existing_server_default='0',
        )
    op.drop_index('uq_payments_gateway_reference', table_name='payments')
