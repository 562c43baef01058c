"""initial schema

Revision ID: 3f1c9a7d2b60
Revises:
Create Date: 2026-10-19 15:40:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2b60'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


# --- ENUM types, stored by member name ---
userrole_enum = sa.Enum('GUEST', 'HOST', 'ADMIN', name='userrole')
cancellationpolicy_enum = sa.Enum('FLEXIBLE', 'MODERATE', 'STRICT', name='cancellationpolicy')
bookingstatus_enum = sa.Enum('PENDING', 'CONFIRMED', 'CANCELLED', 'COMPLETED', 'REFUNDED', name='bookingstatus')
paymentstatus_enum = sa.Enum('PENDING', 'PAID', 'FAILED', 'REFUNDED', name='paymentstatus')
paymentrecordstatus_enum = sa.Enum(
    'PENDING', 'AUTHORIZED', 'CAPTURED', 'FAILED', 'REFUNDED', name='paymentrecordstatus'
)

ALL_ENUMS = (
    userrole_enum, cancellationpolicy_enum, bookingstatus_enum, paymentstatus_enum, paymentrecordstatus_enum,
)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=True),
        sa.Column('last_name', sa.String(100), nullable=True),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('bio', sa.Text(), nullable=True),
        sa.Column('profile_image', sa.String(), nullable=True),
        sa.Column('role', userrole_enum, nullable=False, server_default='GUEST'),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_suspended', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'listings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('price_per_night', sa.Integer(), nullable=False),
        sa.Column('max_guests', sa.Integer(), nullable=False),
        sa.Column('bedrooms', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('bathrooms', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('address', sa.String(255), nullable=False),
        sa.Column('zip_code', sa.String(20), nullable=True),
        sa.Column('lat', sa.Float(), nullable=True),
        sa.Column('lng', sa.Float(), nullable=True),
        sa.Column('amenities', sa.JSON(), nullable=False),
        sa.Column('rules_and_policies', sa.Text(), nullable=True),
        sa.Column('cancellation_policy', cancellationpolicy_enum, nullable=False, server_default='MODERATE'),
        sa.Column('average_rating', sa.Float(), nullable=False, server_default='0'),
        sa.Column('review_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.CheckConstraint('price_per_night > 0', name='ck_listings_price_positive'),
        sa.CheckConstraint('max_guests >= 1', name='ck_listings_max_guests'),
    )
    op.create_index('ix_listings_id', 'listings', ['id'])
    op.create_index('ix_listings_host_id', 'listings', ['host_id'])
    op.create_index('ix_listings_city', 'listings', ['city'])
    op.create_index('ix_listings_is_active', 'listings', ['is_active'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('listing_id', sa.Integer(), sa.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('guest_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('check_in', sa.DateTime(), nullable=False),
        sa.Column('check_out', sa.DateTime(), nullable=False),
        sa.Column('number_of_guests', sa.Integer(), nullable=False),
        sa.Column('number_of_nights', sa.Integer(), nullable=False),
        sa.Column('price_per_night', sa.Integer(), nullable=False),
        sa.Column('subtotal', sa.Integer(), nullable=False),
        sa.Column('platform_fee', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Integer(), nullable=False),
        sa.Column('status', bookingstatus_enum, nullable=False, server_default='PENDING'),
        sa.Column('payment_status', paymentstatus_enum, nullable=False, server_default='PENDING'),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('check_out > check_in', name='ck_bookings_dates'),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('ix_bookings_guest_id', 'bookings', ['guest_id'])
    op.create_index('ix_bookings_host_id', 'bookings', ['host_id'])
    op.create_index('ix_bookings_listing_status', 'bookings', ['listing_id', 'status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('gateway_order_id', sa.String(64), nullable=True),
        sa.Column('gateway_payment_id', sa.String(64), nullable=True, unique=True),
        sa.Column('gateway_signature', sa.String(128), nullable=True),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='INR'),
        sa.Column('status', paymentrecordstatus_enum, nullable=False, server_default='PENDING'),
        sa.Column('method', sa.String(32), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('refund_amount', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('refunded_at', sa.DateTime(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_payments_id', 'payments', ['id'])
    op.create_index('ix_payments_gateway_order_id', 'payments', ['gateway_order_id'], unique=True)

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('listing_id', sa.Integer(), sa.ForeignKey('listings.id', ondelete='CASCADE'), nullable=False),
        sa.Column('guest_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('host_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(200), nullable=True),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('cleanliness', sa.Integer(), nullable=True),
        sa.Column('communication', sa.Integer(), nullable=True),
        sa.Column('accuracy', sa.Integer(), nullable=True),
        sa.Column('location', sa.Integer(), nullable=True),
        sa.Column('value', sa.Integer(), nullable=True),
        sa.Column('host_reply', sa.Text(), nullable=True),
        sa.Column('host_replied_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_reviews_rating'),
    )
    op.create_index('ix_reviews_id', 'reviews', ['id'])
    op.create_index('ix_reviews_listing_id', 'reviews', ['listing_id'])
    op.create_index('ix_reviews_guest_id', 'reviews', ['guest_id'])
    op.create_index('ix_reviews_host_id', 'reviews', ['host_id'])

    # --- No two confirmed stays of one listing may overlap (PostgreSQL only) ---
    if op.get_bind().dialect.name == 'postgresql':
        op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')
        op.execute(
            "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_confirmed_overlap "
            "EXCLUDE USING gist (listing_id WITH =, tsrange(check_in, check_out, '[)') WITH &&) "
            "WHERE (status = 'CONFIRMED')"
        )


def downgrade() -> None:
    """Downgrade schema."""
    # --- Drop the tables first, children before parents ---
    op.drop_table('reviews')
    op.drop_table('payments')
    op.drop_table('bookings')
    op.drop_table('listings')
    op.drop_table('users')

    # --- Then, drop the ENUM types ---
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.drop(bind, checkfirst=True)
