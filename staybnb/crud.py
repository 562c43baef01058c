import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Query, Session, joinedload

from . import models, schemas


def paginate(query: Query, page: int, limit: int) -> Tuple[list, int]:
    """
    Returns one page of `query` plus the total row count of the unpaged query.
    """
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    return items, total


# --- Users ---
def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(func.lower(models.User.email) == email.lower()).first()


def create_user(
        db: Session,
        email: str,
        hashed_password: str,
        first_name: str,
        last_name: str,
        role: models.UserRole,
) -> models.User:
    db_user = models.User(
        email=email,
        hashed_password=hashed_password,
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


# --- Listings ---
def get_listing(db: Session, listing_id: int) -> Optional[models.Listing]:
    return db.query(models.Listing).filter(models.Listing.id == listing_id).first()


def get_listing_for_update(db: Session, listing_id: int) -> Optional[models.Listing]:
    """
    Loads a listing and row-locks it until the current transaction ends.
    Booking writes for one listing serialize on this lock.
    """
    return db.query(models.Listing).filter(models.Listing.id == listing_id).with_for_update().first()


def create_listing(db: Session, listing: schemas.ListingCreate, host_id: int) -> models.Listing:
    db_listing = models.Listing(**listing.model_dump(), host_id=host_id, is_active=True)
    db.add(db_listing)
    db.commit()
    db.refresh(db_listing)
    return db_listing


def update_listing(db: Session, db_listing: models.Listing, changes: dict) -> models.Listing:
    for key, value in changes.items():
        setattr(db_listing, key, value)
    db.commit()
    db.refresh(db_listing)
    return db_listing


def delete_listing(db: Session, db_listing: models.Listing):
    db.delete(db_listing)
    db.commit()


def search_listings_query(db: Session, filters: schemas.ListingFilters) -> Query:
    query = db.query(models.Listing).filter(models.Listing.is_active.is_(True))

    if filters.city:
        query = query.filter(models.Listing.city == filters.city)
    if filters.min_price is not None:
        query = query.filter(models.Listing.price_per_night >= filters.min_price)
    if filters.max_price is not None:
        query = query.filter(models.Listing.price_per_night <= filters.max_price)
    if filters.guests is not None:
        query = query.filter(models.Listing.max_guests >= filters.guests)
    if filters.min_rating is not None:
        query = query.filter(models.Listing.average_rating >= filters.min_rating)

    sort = filters.sort_by
    if sort == schemas.ListingSort.PRICE_ASC:
        query = query.order_by(models.Listing.price_per_night.asc(), models.Listing.id.asc())
    elif sort == schemas.ListingSort.PRICE_DESC:
        query = query.order_by(models.Listing.price_per_night.desc(), models.Listing.id.desc())
    elif sort == schemas.ListingSort.RATING_DESC:
        query = query.order_by(models.Listing.average_rating.desc(), models.Listing.id.desc())
    else:
        query = query.order_by(models.Listing.created_at.desc(), models.Listing.id.desc())
    return query


def host_listings_query(db: Session, host_id: int) -> Query:
    return (
        db.query(models.Listing)
        .filter(models.Listing.host_id == host_id)
        .order_by(models.Listing.created_at.desc(), models.Listing.id.desc())
    )


def refresh_listing_rating(db: Session, listing_id: int):
    """
    Recomputes the listing's average rating and review count from its reviews.
    Does NOT commit.
    """
    average, count = db.query(
        func.avg(models.Review.rating), func.count(models.Review.id)
    ).filter(models.Review.listing_id == listing_id).one()

    db_listing = get_listing(db, listing_id)
    if db_listing:
        db_listing.average_rating = round(float(average or 0), 2)
        db_listing.review_count = count


# --- Bookings ---
def check_booking_conflict(
        db: Session,
        listing_id: int,
        check_in: datetime.datetime,
        check_out: datetime.datetime,
        exclude_booking_id: Optional[int] = None,
) -> bool:
    """
    Checks if a date range for a listing overlaps any CONFIRMED booking.

    Returns True if a conflict exists, False otherwise.
    """
    # The logic for an overlap is:
    # (Existing Check-in < New Check-out) AND (Existing Check-out > New Check-in)
    query = db.query(models.Booking).filter(
        models.Booking.listing_id == listing_id,
        models.Booking.status == models.BookingStatus.CONFIRMED,
        models.Booking.check_in < check_out,
        models.Booking.check_out > check_in,
    )
    if exclude_booking_id is not None:
        query = query.filter(models.Booking.id != exclude_booking_id)
    existing_booking = query.first()

    return existing_booking is not None


def get_booking(db: Session, booking_id: int) -> Optional[models.Booking]:
    return db.query(models.Booking).filter(models.Booking.id == booking_id).first()


def add_booking_with_payment(
        db: Session,
        db_booking: models.Booking,
        db_payment: models.Payment,
) -> models.Booking:
    """
    Adds a booking and its payment record in one transaction.
    """
    db.add(db_booking)
    db.flush()  # assigns the booking id

    db_payment.booking_id = db_booking.id
    db.add(db_payment)

    db.commit()
    db.refresh(db_booking)
    return db_booking


def guest_bookings_query(db: Session, guest_id: int) -> Query:
    return (
        db.query(models.Booking)
        .filter(models.Booking.guest_id == guest_id)
        .order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
    )


def host_bookings_query(db: Session, host_id: int) -> Query:
    return (
        db.query(models.Booking)
        .filter(models.Booking.host_id == host_id)
        .order_by(models.Booking.created_at.desc(), models.Booking.id.desc())
    )


def get_bookings_with_listing_by_guest(db: Session, guest_id: int) -> List[models.Booking]:
    return guest_bookings_query(db, guest_id).options(joinedload(models.Booking.listing)).all()


def get_bookings_to_complete(db: Session, now: datetime.datetime) -> List[models.Booking]:
    """
    Retrieves confirmed bookings whose stay has ended by `now`.
    """
    return db.query(models.Booking).filter(
        models.Booking.status == models.BookingStatus.CONFIRMED,
        models.Booking.check_out <= now,
    ).all()


def get_payment_for_booking(db: Session, booking_id: int) -> Optional[models.Payment]:
    return db.query(models.Payment).filter(models.Payment.booking_id == booking_id).first()


# --- Reviews ---
def get_review(db: Session, review_id: int) -> Optional[models.Review]:
    return db.query(models.Review).filter(models.Review.id == review_id).first()


def get_review_for_booking(db: Session, booking_id: int) -> Optional[models.Review]:
    return db.query(models.Review).filter(models.Review.booking_id == booking_id).first()


def create_review(db: Session, db_review: models.Review) -> models.Review:
    db.add(db_review)
    db.flush()
    refresh_listing_rating(db, db_review.listing_id)
    db.commit()
    db.refresh(db_review)
    return db_review


def get_reviews_by_listing(db: Session, listing_id: int) -> List[models.Review]:
    return (
        db.query(models.Review)
        .options(joinedload(models.Review.guest))
        .filter(models.Review.listing_id == listing_id)
        .order_by(models.Review.created_at.desc(), models.Review.id.desc())
        .all()
    )
