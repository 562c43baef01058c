import datetime
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Index, Integer, JSON, String, Text
)
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.orm import relationship

from .database import Base


def utcnow() -> datetime.datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


# --- Enums ---
class UserRole(PyEnum):
    GUEST = "guest"
    HOST = "host"
    ADMIN = "admin"


class CancellationPolicy(PyEnum):
    FLEXIBLE = "flexible"
    MODERATE = "moderate"
    STRICT = "strict"


class BookingStatus(PyEnum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    REFUNDED = "refunded"


class PaymentStatus(PyEnum):
    """Payment state as seen on the booking."""
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentRecordStatus(PyEnum):
    """Payment state as tracked against the gateway."""
    PENDING = "pending"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"


# --- User Model ---
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String(100), nullable=True)
    last_name = Column(String(100), nullable=True)
    phone = Column(String(32), nullable=True)
    bio = Column(Text, nullable=True)
    profile_image = Column(String, nullable=True)
    role = Column(SQLEnum(UserRole), default=UserRole.GUEST, nullable=False, index=True)
    is_verified = Column(Boolean, default=False, nullable=False)
    is_suspended = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    listings = relationship("Listing", back_populates="host", cascade="all, delete-orphan")


# --- Listing Model ---
class Listing(Base):
    __tablename__ = "listings"

    id = Column(Integer, primary_key=True, index=True)
    host_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)

    # Minor currency units (paise, cents)
    price_per_night = Column(Integer, nullable=False)
    max_guests = Column(Integer, nullable=False)
    bedrooms = Column(Integer, default=1, nullable=False)
    bathrooms = Column(Integer, default=1, nullable=False)

    # Location
    city = Column(String(100), nullable=False, index=True)
    state = Column(String(100), nullable=True)
    address = Column(String(255), nullable=False)
    zip_code = Column(String(20), nullable=True)
    lat = Column(Float, nullable=True)
    lng = Column(Float, nullable=True)

    amenities = Column(JSON, default=list, nullable=False)
    rules_and_policies = Column(Text, nullable=True)
    cancellation_policy = Column(
        SQLEnum(CancellationPolicy), default=CancellationPolicy.MODERATE, nullable=False
    )

    # Aggregates maintained from reviews
    average_rating = Column(Float, default=0.0, nullable=False)
    review_count = Column(Integer, default=0, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    host = relationship("User", back_populates="listings")
    bookings = relationship("Booking", back_populates="listing", cascade="all, delete-orphan")
    reviews = relationship("Review", back_populates="listing", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("price_per_night > 0", name="ck_listings_price_positive"),
        CheckConstraint("max_guests >= 1", name="ck_listings_max_guests"),
    )


# --- Booking Model ---
class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False)
    guest_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Copied from the listing when the booking is made
    host_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    check_in = Column(DateTime, nullable=False)
    check_out = Column(DateTime, nullable=False)
    number_of_guests = Column(Integer, nullable=False)
    number_of_nights = Column(Integer, nullable=False)

    # Pricing snapshot, minor units
    price_per_night = Column(Integer, nullable=False)
    subtotal = Column(Integer, nullable=False)
    platform_fee = Column(Integer, nullable=False)
    total_price = Column(Integer, nullable=False)

    status = Column(SQLEnum(BookingStatus), default=BookingStatus.PENDING, nullable=False)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    cancellation_reason = Column(Text, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    listing = relationship("Listing", back_populates="bookings")
    guest = relationship("User", foreign_keys=[guest_id])
    payment = relationship("Payment", back_populates="booking", uselist=False, cascade="all, delete-orphan")
    review = relationship("Review", back_populates="booking", uselist=False, cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint("check_out > check_in", name="ck_bookings_dates"),
        # The overlap check filters on listing and status
        Index("ix_bookings_listing_status", "listing_id", "status"),
    )


# --- Payment Model ---
class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)

    gateway_order_id = Column(String(64), unique=True, nullable=True, index=True)
    gateway_payment_id = Column(String(64), unique=True, nullable=True)
    gateway_signature = Column(String(128), nullable=True)

    amount = Column(Integer, nullable=False)
    currency = Column(String(3), default="INR", nullable=False)
    status = Column(SQLEnum(PaymentRecordStatus), default=PaymentRecordStatus.PENDING, nullable=False)
    method = Column(String(32), nullable=True)
    failure_reason = Column(Text, nullable=True)
    refund_amount = Column(Integer, default=0, nullable=False)
    refunded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    booking = relationship("Booking", back_populates="payment")


# --- Review Model ---
class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    listing_id = Column(Integer, ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    guest_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    host_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    rating = Column(Integer, nullable=False)
    title = Column(String(200), nullable=True)
    comment = Column(Text, nullable=False)

    # Optional sub-ratings, 1-5
    cleanliness = Column(Integer, nullable=True)
    communication = Column(Integer, nullable=True)
    accuracy = Column(Integer, nullable=True)
    location = Column(Integer, nullable=True)
    value = Column(Integer, nullable=True)

    host_reply = Column(Text, nullable=True)
    host_replied_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    booking = relationship("Booking", back_populates="review")
    listing = relationship("Listing", back_populates="reviews")
    guest = relationship("User", foreign_keys=[guest_id])

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )

    @property
    def author(self) -> User:
        return self.guest
