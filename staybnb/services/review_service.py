import logging
from typing import List

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud, models, schemas
from ..auth import CurrentUser
from ..errors import Conflict, Forbidden, InvalidState, NotFound, ValidationFailed
from .listing_service import get_listing

logger = logging.getLogger("review_service")


def _review_exists() -> Conflict:
    return Conflict("Review already exists for this booking", code="REVIEW_EXISTS")


def create_review(
        db: Session, guest: CurrentUser, listing_id: int, data: schemas.ReviewCreate
) -> models.Review:
    # A reviewed booking is a conflict whoever asks
    if crud.get_review_for_booking(db, data.booking_id):
        raise _review_exists()

    db_booking = crud.get_booking(db, data.booking_id)
    if db_booking is None or db_booking.guest_id != guest.id:
        raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
    if db_booking.listing_id != listing_id:
        raise ValidationFailed("Booking does not belong to this listing", field="bookingId")
    if db_booking.status != models.BookingStatus.COMPLETED:
        raise InvalidState("Reviews can only be left for completed stays")

    db_review = models.Review(
        booking_id=db_booking.id,
        listing_id=listing_id,
        guest_id=guest.id,
        host_id=db_booking.host_id,
        **data.model_dump(exclude={"booking_id"}),
    )
    try:
        db_review = crud.create_review(db, db_review)
    except IntegrityError:
        db.rollback()
        raise _review_exists()

    logger.info(f"Review {db_review.id} created for booking {db_booking.id}")
    return db_review


def list_reviews(db: Session, listing_id: int) -> List[models.Review]:
    get_listing(db, listing_id)
    return crud.get_reviews_by_listing(db, listing_id)


def reply_to_review(db: Session, review_id: int, actor: CurrentUser, reply: str) -> models.Review:
    db_review = crud.get_review(db, review_id)
    if db_review is None:
        raise NotFound("Review not found", code="REVIEW_NOT_FOUND")
    if db_review.host_id != actor.id:
        raise Forbidden("Not authorized to reply to this review")

    db_review.host_reply = reply
    db_review.host_replied_at = models.utcnow()
    db.commit()
    db.refresh(db_review)
    return db_review
