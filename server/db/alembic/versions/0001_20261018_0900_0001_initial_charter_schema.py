"""Initial charter lifecycle schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create parties table
    op.create_table('parties',
        sa.Column('user_code', sa.String(length=32), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=True),
        sa.Column('company', sa.String(length=200), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('length(email) > 0', name='ck_party_email_not_empty'),
        sa.PrimaryKeyConstraint('user_code'),
        sa.UniqueConstraint('email')
    )
    op.create_index(op.f('ix_parties_role'), 'parties', ['role'], unique=False)

    # Create quote_requests table
    op.create_table('quote_requests',
        sa.Column('request_code', sa.String(length=40), nullable=False),
        sa.Column('client_code', sa.String(length=32), nullable=False),
        sa.Column('operator_code', sa.String(length=32), nullable=True),
        sa.Column('trip_type', sa.String(length=16), nullable=False),
        sa.Column('departure_airport', sa.String(length=8), nullable=False),
        sa.Column('arrival_airport', sa.String(length=8), nullable=False),
        sa.Column('departure_date', sa.DateTime(), nullable=False),
        sa.Column('return_date', sa.DateTime(), nullable=True),
        sa.Column('flexible_dates', sa.Boolean(), nullable=False),
        sa.Column('passenger_count', sa.Integer(), nullable=False),
        sa.Column('cabin_class', sa.String(length=16), nullable=False),
        sa.Column('special_requirements', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('quoted_operator_codes', sa.JSON(), nullable=False),
        sa.Column('accepted_quote_id', sa.String(length=40), nullable=True),
        sa.Column('accepted_operator_code', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint('passenger_count > 0', name='ck_quote_request_passenger_count_positive'),
        sa.CheckConstraint('length(client_code) > 0', name='ck_quote_request_client_code_not_empty'),
        sa.PrimaryKeyConstraint('request_code')
    )
    op.create_index(op.f('ix_quote_requests_client_code'), 'quote_requests', ['client_code'], unique=False)
    op.create_index(op.f('ix_quote_requests_operator_code'), 'quote_requests', ['operator_code'], unique=False)
    op.create_index(op.f('ix_quote_requests_status'), 'quote_requests', ['status'], unique=False)
    op.create_index(op.f('ix_quote_requests_created_at'), 'quote_requests', ['created_at'], unique=False)
    op.create_index(op.f('ix_quote_requests_expires_at'), 'quote_requests', ['expires_at'], unique=False)

    # Create quotes table
    op.create_table('quotes',
        sa.Column('quote_id', sa.String(length=40), nullable=False),
        sa.Column('request_code', sa.String(length=40), nullable=False),
        sa.Column('operator_code', sa.String(length=32), nullable=False),
        sa.Column('client_code', sa.String(length=32), nullable=False),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('commission', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('response_time_minutes', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint('price > 0', name='ck_quote_price_positive'),
        sa.CheckConstraint('commission >= 0', name='ck_quote_commission_non_negative'),
        sa.CheckConstraint('length(currency) = 3', name='ck_quote_currency_length'),
        sa.ForeignKeyConstraint(['request_code'], ['quote_requests.request_code'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('quote_id')
    )
    op.create_index(op.f('ix_quotes_request_code'), 'quotes', ['request_code'], unique=False)
    op.create_index(op.f('ix_quotes_operator_code'), 'quotes', ['operator_code'], unique=False)
    op.create_index(op.f('ix_quotes_client_code'), 'quotes', ['client_code'], unique=False)
    op.create_index(op.f('ix_quotes_status'), 'quotes', ['status'], unique=False)
    op.create_index(op.f('ix_quotes_created_at'), 'quotes', ['created_at'], unique=False)
    op.create_index('uq_quote_request_operator', 'quotes', ['request_code', 'operator_code'], unique=True)
    # At most one accepted quote per request
    op.create_index(
        'uq_quote_one_accepted_per_request',
        'quotes',
        ['request_code'],
        unique=True,
        postgresql_where=sa.text("status = 'accepted'"),
        sqlite_where=sa.text("status = 'accepted'"),
    )

    # Create bookings table
    op.create_table('bookings',
        sa.Column('booking_id', sa.String(length=40), nullable=False),
        sa.Column('request_code', sa.String(length=40), nullable=False),
        sa.Column('quote_id', sa.String(length=40), nullable=False),
        sa.Column('operator_code', sa.String(length=32), nullable=False),
        sa.Column('client_code', sa.String(length=32), nullable=False),
        sa.Column('trip_type', sa.String(length=16), nullable=False),
        sa.Column('departure_airport', sa.String(length=8), nullable=False),
        sa.Column('arrival_airport', sa.String(length=8), nullable=False),
        sa.Column('departure_date', sa.DateTime(), nullable=False),
        sa.Column('return_date', sa.DateTime(), nullable=True),
        sa.Column('passenger_count', sa.Integer(), nullable=False),
        sa.Column('cabin_class', sa.String(length=16), nullable=False),
        sa.Column('special_requirements', sa.Text(), nullable=True),
        sa.Column('price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('is_paid', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint('passenger_count > 0', name='ck_booking_passenger_count_positive'),
        sa.CheckConstraint('total_price >= price', name='ck_booking_total_covers_price'),
        sa.PrimaryKeyConstraint('booking_id'),
        sa.UniqueConstraint('quote_id')
    )
    op.create_index(op.f('ix_bookings_request_code'), 'bookings', ['request_code'], unique=False)
    op.create_index(op.f('ix_bookings_operator_code'), 'bookings', ['operator_code'], unique=False)
    op.create_index(op.f('ix_bookings_client_code'), 'bookings', ['client_code'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)

    # Create passengers table
    op.create_table('passengers',
        sa.Column('passenger_id', sa.String(length=40), nullable=False),
        sa.Column('booking_id', sa.String(length=40), nullable=False),
        sa.Column('added_by_code', sa.String(length=32), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=True),
        sa.Column('nationality', sa.String(length=64), nullable=True),
        sa.Column('passport_number', sa.String(length=32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('passenger_id')
    )
    op.create_index(op.f('ix_passengers_booking_id'), 'passengers', ['booking_id'], unique=False)

    # Create invoices table
    op.create_table('invoices',
        sa.Column('invoice_id', sa.String(length=40), nullable=False),
        sa.Column('booking_id', sa.String(length=40), nullable=False),
        sa.Column('client_code', sa.String(length=32), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('amount_paid', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('amount_pending', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('paid_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.CheckConstraint('amount >= 0', name='ck_invoice_amount_non_negative'),
        sa.CheckConstraint('amount_paid >= 0', name='ck_invoice_amount_paid_non_negative'),
        sa.CheckConstraint('amount_pending >= 0', name='ck_invoice_amount_pending_non_negative'),
        sa.PrimaryKeyConstraint('invoice_id')
    )
    op.create_index(op.f('ix_invoices_booking_id'), 'invoices', ['booking_id'], unique=False)
    op.create_index(op.f('ix_invoices_client_code'), 'invoices', ['client_code'], unique=False)
    op.create_index(op.f('ix_invoices_status'), 'invoices', ['status'], unique=False)
    op.create_index(op.f('ix_invoices_created_at'), 'invoices', ['created_at'], unique=False)

    # Create payments table
    op.create_table('payments',
        sa.Column('payment_id', sa.String(length=40), nullable=False),
        sa.Column('booking_id', sa.String(length=40), nullable=False),
        sa.Column('invoice_id', sa.String(length=40), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('payment_method', sa.String(length=32), nullable=False),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('payment_date', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('processed_by', sa.String(length=32), nullable=True),
        sa.Column('processed_date', sa.DateTime(), nullable=True),
        sa.Column('operator_paid', sa.Boolean(), nullable=False),
        sa.Column('operator_paid_by', sa.String(length=32), nullable=True),
        sa.Column('operator_paid_date', sa.DateTime(), nullable=True),
        sa.Column('operator_payment_notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
        sa.CheckConstraint('length(payment_method) > 0', name='ck_payment_method_not_empty'),
        sa.PrimaryKeyConstraint('payment_id')
    )
    op.create_index(op.f('ix_payments_booking_id'), 'payments', ['booking_id'], unique=False)
    op.create_index(op.f('ix_payments_invoice_id'), 'payments', ['invoice_id'], unique=False)
    op.create_index(op.f('ix_payments_status'), 'payments', ['status'], unique=False)
    op.create_index(op.f('ix_payments_created_at'), 'payments', ['created_at'], unique=False)

    # Create ratings table
    op.create_table('ratings',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('booking_id', sa.String(length=40), nullable=False),
        sa.Column('operator_code', sa.String(length=32), nullable=False),
        sa.Column('customer_user_code', sa.String(length=32), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('rating >= 1', name='ck_rating_min'),
        sa.CheckConstraint('rating <= 5', name='ck_rating_max'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_id')
    )
    op.create_index(op.f('ix_ratings_operator_code'), 'ratings', ['operator_code'], unique=False)
    op.create_index(op.f('ix_ratings_customer_user_code'), 'ratings', ['customer_user_code'], unique=False)

    # Create notification_events table
    op.create_table('notification_events',
        sa.Column('event_id', sa.String(length=64), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('recipient_code', sa.String(length=32), nullable=False),
        sa.Column('aggregate_code', sa.String(length=40), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('event_id')
    )
    op.create_index(op.f('ix_notification_events_recipient_code'), 'notification_events', ['recipient_code'], unique=False)
    op.create_index(op.f('ix_notification_events_aggregate_code'), 'notification_events', ['aggregate_code'], unique=False)
    op.create_index(op.f('ix_notification_events_status'), 'notification_events', ['status'], unique=False)
    op.create_index(op.f('ix_notification_events_created_at'), 'notification_events', ['created_at'], unique=False)

    # Create idempotency_records table
    op.create_table('idempotency_records',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('method', sa.String(length=100), nullable=False),
        sa.Column('request_body_hash', sa.String(length=64), nullable=False),
        sa.Column('response_status_code', sa.Integer(), nullable=False),
        sa.Column('response_body', sa.Text(), nullable=False),
        sa.Column('response_headers', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('length(request_body_hash) = 64', name='ck_idempotency_hash_length'),
        sa.CheckConstraint('response_status_code BETWEEN 100 AND 599', name='ck_idempotency_status_code_range'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key', 'method', name='uq_idempotency_key_method')
    )
    op.create_index(op.f('ix_idempotency_records_idempotency_key'), 'idempotency_records', ['idempotency_key'], unique=False)
    op.create_index(op.f('ix_idempotency_records_expires_at'), 'idempotency_records', ['expires_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('idempotency_records')
    op.drop_table('notification_events')
    op.drop_table('ratings')
    op.drop_table('payments')
    op.drop_table('invoices')
    op.drop_table('passengers')
    op.drop_table('bookings')
    op.drop_index('uq_quote_one_accepted_per_request', table_name='quotes')
    op.drop_index('uq_quote_request_operator', table_name='quotes')
    op.drop_table('quotes')
    op.drop_table('quote_requests')
    op.drop_table('parties')
