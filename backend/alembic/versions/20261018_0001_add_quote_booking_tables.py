"""add quote request, revision and booking deposit tables

Revision ID: 1c2d3e4f5a6b
Revises:
Create Date: 2026-10-18 00:01:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '1c2d3e4f5a6b'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create quote_requests table
    op.create_table(
        'quote_requests',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('client_id', sa.Integer, nullable=False),
        sa.Column('vendor_id', sa.Integer, nullable=False),
        sa.Column('client_name', sa.String(200), nullable=True),
        sa.Column('client_email', sa.String(320), nullable=True),
        sa.Column('event_type', sa.String(100), nullable=True),
        sa.Column('event_date', sa.Date, nullable=True),
        sa.Column('details', sa.Text, nullable=True),
        sa.Column('budget', sa.String(100), nullable=True),
        sa.Column('status', sa.String(14), nullable=False, server_default='pending'),
        sa.Column('quote_amount', sa.Numeric(12, 2), nullable=True),
        sa.Column('client_notes', sa.Text, nullable=True),
        sa.Column('responded_at', sa.TIMESTAMP, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )

    op.create_index('ix_quote_requests_client_id', 'quote_requests', ['client_id'])
    op.create_index('ix_quote_requests_vendor_id', 'quote_requests', ['vendor_id'])
    op.create_index('ix_quote_requests_status', 'quote_requests', ['status'])

    # Create quote_revisions table
    op.create_table(
        'quote_revisions',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('quote_request_id', sa.Integer, sa.ForeignKey('quote_requests.id'), nullable=False),
        sa.Column('vendor_id', sa.Integer, nullable=False),
        sa.Column('revision_number', sa.Integer, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('terms', sa.Text, nullable=True),
        sa.Column('validity_days', sa.Integer, nullable=False, server_default='7'),
        sa.Column('status', sa.String(10), nullable=False, server_default='draft'),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('sent_at', sa.TIMESTAMP, nullable=True),
        sa.UniqueConstraint('quote_request_id', 'revision_number', name='uq_quote_revisions_number'),
    )

    op.create_index('ix_quote_revisions_quote_request_id', 'quote_revisions', ['quote_request_id'])
    op.create_index('ix_quote_revisions_status', 'quote_revisions', ['status'])

    # Create booking_deposits table
    op.create_table(
        'booking_deposits',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('quote_request_id', sa.Integer, sa.ForeignKey('quote_requests.id'), nullable=False),
        sa.Column('client_id', sa.Integer, nullable=False),
        sa.Column('vendor_id', sa.Integer, nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_status', sa.String(7), nullable=False, server_default='pending'),
        sa.Column('gateway_payment_id', sa.String(64), nullable=True),
        sa.Column('failure_reason', sa.Text, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('paid_at', sa.TIMESTAMP, nullable=True),
    )

    op.create_index('ix_booking_deposits_quote_request_id', 'booking_deposits', ['quote_request_id'])
    op.create_index('ix_booking_deposits_client_id', 'booking_deposits', ['client_id'])
    op.create_index('ix_booking_deposits_vendor_id', 'booking_deposits', ['vendor_id'])
    op.create_index('ix_booking_deposits_payment_status', 'booking_deposits', ['payment_status'])

    # One live (non-failed) deposit per quote request
    op.create_index(
        'uq_booking_deposits_live_quote',
        'booking_deposits',
        ['quote_request_id'],
        unique=True,
        sqlite_where=sa.text("payment_status != 'failed'"),
        postgresql_where=sa.text("payment_status != 'failed'"),
    )


def downgrade() -> None:
    op.drop_index('uq_booking_deposits_live_quote', table_name='booking_deposits')
    op.drop_index('ix_booking_deposits_payment_status', table_name='booking_deposits')
    op.drop_index('ix_booking_deposits_vendor_id', table_name='booking_deposits')
    op.drop_index('ix_booking_deposits_client_id', table_name='booking_deposits')
    op.drop_index('ix_booking_deposits_quote_request_id', table_name='booking_deposits')
    op.drop_table('booking_deposits')

    op.drop_index('ix_quote_revisions_status', table_name='quote_revisions')
    op.drop_index('ix_quote_revisions_quote_request_id', table_name='quote_revisions')
    op.drop_table('quote_revisions')

    op.drop_index('ix_quote_requests_status', table_name='quote_requests')
    op.drop_index('ix_quote_requests_vendor_id', table_name='quote_requests')
    op.drop_index('ix_quote_requests_client_id', table_name='quote_requests')
    op.drop_table('quote_requests')
