"""
Booking workflows: creation with double-booking prevention, queries,
cancellation and the payment lifecycle (confirm, refund, completion).

Writes that depend on the overlap check lock the listing row first, so the
check and the insert or status change happen in one transaction.
"""
import datetime
import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import crud, models, pricing, schemas
from ..auth import CurrentUser
from ..config import Settings
from ..errors import Conflict, Forbidden, InvalidState, NotFound, PaymentFailed, ValidationFailed
from ..payments import PaymentGatewayError, RazorpayGateway
from .listing_service import page_result

logger = logging.getLogger("booking_service")

CANCELLABLE_STATUSES = (models.BookingStatus.PENDING, models.BookingStatus.CONFIRMED)


def _double_booking() -> Conflict:
    return Conflict("Dates already booked", code="DOUBLE_BOOKING")


def _commit(db: Session):
    try:
        db.commit()
    except IntegrityError:
        # The exclusion constraint caught an overlap the lock did not
        db.rollback()
        raise _double_booking()


def create_booking(
        db: Session,
        gateway: RazorpayGateway,
        guest: CurrentUser,
        data: schemas.BookingCreate,
        settings: Settings,
) -> dict:
    """
    Creates a pending booking and its payment order for the authenticated guest.

    The gateway order is created before the listing lock is taken, so a slow
    gateway never holds up other bookings for the listing. If the insert then
    fails the order is left unpaid and expires on the gateway side.
    """
    if data.check_out <= data.check_in:
        raise ValidationFailed("Check-out must be after check-in", field="checkOut")

    db_listing = crud.get_listing(db, data.listing_id)
    if db_listing is None:
        raise NotFound("Listing not found", code="LISTING_NOT_FOUND")
    if not db_listing.is_active:
        raise InvalidState("Listing is not accepting bookings")
    if data.number_of_guests > db_listing.max_guests:
        raise ValidationFailed(
            f"This listing allows at most {db_listing.max_guests} guests", field="numberOfGuests"
        )
    if crud.check_booking_conflict(db, db_listing.id, data.check_in, data.check_out):
        logger.warning(f"Double booking rejected for listing {db_listing.id}")
        raise _double_booking()

    quote = pricing.quote(
        db_listing.price_per_night, data.check_in, data.check_out, settings.PLATFORM_COMMISSION_PERCENT
    )
    if quote.nights < 1:
        raise ValidationFailed("A booking must cover at least one night", field="checkOut")

    listing_id, host_id, price_per_night = db_listing.id, db_listing.host_id, db_listing.price_per_night
    # Ends the read transaction before the network call
    db.rollback()

    try:
        order = gateway.create_order(
            amount=quote.total_price,
            currency=settings.PAYMENT_CURRENCY,
            receipt=f"rcpt_{uuid.uuid4().hex[:16]}",
            notes={
                "listingId": str(listing_id),
                "guestId": str(guest.id),
                "hostId": str(host_id),
            },
        )
    except PaymentGatewayError:
        raise PaymentFailed("Could not create payment order")

    try:
        db_listing = crud.get_listing_for_update(db, listing_id)
        if db_listing is None:
            raise NotFound("Listing not found", code="LISTING_NOT_FOUND")
        # Repeated under the lock, the dates may have been confirmed meanwhile
        if crud.check_booking_conflict(db, listing_id, data.check_in, data.check_out):
            logger.warning(f"Double booking rejected for listing {listing_id}, order {order.id} unused")
            raise _double_booking()

        db_booking = models.Booking(
            listing_id=listing_id,
            guest_id=guest.id,
            host_id=host_id,
            check_in=data.check_in,
            check_out=data.check_out,
            number_of_guests=data.number_of_guests,
            number_of_nights=quote.nights,
            price_per_night=price_per_night,
            subtotal=quote.subtotal,
            platform_fee=quote.platform_fee,
            total_price=quote.total_price,
            status=models.BookingStatus.PENDING,
            payment_status=models.PaymentStatus.PENDING,
        )
        db_payment = models.Payment(
            gateway_order_id=order.id,
            amount=quote.total_price,
            currency=order.currency,
            status=models.PaymentRecordStatus.PENDING,
        )
        crud.add_booking_with_payment(db, db_booking, db_payment)
    except Exception:
        # Releases the listing lock
        db.rollback()
        raise

    logger.info(
        f"Created booking {db_booking.id} for listing {listing_id}: "
        f"{quote.nights} nights, total {quote.total_price}"
    )
    return {"booking": db_booking, "external_order": order}


def get_booking(db: Session, booking_id: int, actor: CurrentUser) -> models.Booking:
    db_booking = crud.get_booking(db, booking_id)
    if db_booking is None:
        raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
    if actor.id not in (db_booking.guest_id, db_booking.host_id):
        raise Forbidden("Unauthorized to view this booking")
    return db_booking


def list_guest_bookings(db: Session, guest: CurrentUser, page: int, limit: int) -> dict:
    limit = pricing.clamp_limit(limit)
    items, total = crud.paginate(crud.guest_bookings_query(db, guest.id), page, limit)
    return page_result(items, total, page, limit)


def list_host_bookings(db: Session, host: CurrentUser, page: int, limit: int) -> dict:
    limit = pricing.clamp_limit(limit)
    items, total = crud.paginate(crud.host_bookings_query(db, host.id), page, limit)
    return page_result(items, total, page, limit)


def list_guest_bookings_with_listing(db: Session, guest: CurrentUser) -> List[models.Booking]:
    return crud.get_bookings_with_listing_by_guest(db, guest.id)


def cancel_booking(
        db: Session, booking_id: int, actor: CurrentUser, reason: Optional[str] = None
) -> models.Booking:
    db_booking = get_booking(db, booking_id, actor)

    if db_booking.guest_id != actor.id:
        raise Forbidden("Only the guest can cancel this booking")
    if db_booking.status not in CANCELLABLE_STATUSES:
        raise InvalidState(f"Cannot cancel a {db_booking.status.value} booking")

    db_booking.status = models.BookingStatus.CANCELLED
    db_booking.cancellation_reason = reason
    db_booking.cancelled_at = models.utcnow()
    db.commit()
    db.refresh(db_booking)

    logger.info(f"Booking {db_booking.id} cancelled by guest {actor.id}")
    return db_booking


def confirm_payment(
        db: Session,
        gateway: RazorpayGateway,
        booking_id: int,
        actor: CurrentUser,
        data: schemas.PaymentConfirmation,
) -> models.Booking:
    """
    Records a completed checkout and confirms the booking.

    The overlap check is repeated under the listing lock: only confirmed
    bookings block dates, so this is where two pending bookings race.
    """
    db_booking = get_booking(db, booking_id, actor)
    if db_booking.guest_id != actor.id:
        raise Forbidden("Only the guest can pay for this booking")
    if db_booking.status != models.BookingStatus.PENDING:
        raise InvalidState(f"Cannot confirm a {db_booking.status.value} booking")

    db_payment = crud.get_payment_for_booking(db, db_booking.id)
    if db_payment is None or not db_payment.gateway_order_id:
        raise InvalidState("Booking has no payment order")

    if not gateway.verify_signature(db_payment.gateway_order_id, data.payment_id, data.signature):
        db_payment.status = models.PaymentRecordStatus.FAILED
        db_payment.failure_reason = "Signature verification failed"
        db_booking.payment_status = models.PaymentStatus.FAILED
        db.commit()
        logger.warning(f"Payment signature mismatch for booking {db_booking.id}")
        raise PaymentFailed("Payment verification failed", status_code=400)

    try:
        crud.get_listing_for_update(db, db_booking.listing_id)
        db.refresh(db_booking)
        if db_booking.status != models.BookingStatus.PENDING:
            raise InvalidState(f"Cannot confirm a {db_booking.status.value} booking")
        if crud.check_booking_conflict(
                db, db_booking.listing_id, db_booking.check_in, db_booking.check_out,
                exclude_booking_id=db_booking.id,
        ):
            logger.warning(f"Booking {db_booking.id} lost its dates before payment completed")
            raise _double_booking()
    except Exception:
        db.rollback()
        raise

    db_booking.status = models.BookingStatus.CONFIRMED
    db_booking.payment_status = models.PaymentStatus.PAID
    db_payment.status = models.PaymentRecordStatus.CAPTURED
    db_payment.gateway_payment_id = data.payment_id
    db_payment.gateway_signature = data.signature
    db_payment.failure_reason = None
    _commit(db)
    db.refresh(db_booking)

    logger.info(f"Booking {db_booking.id} confirmed, payment {data.payment_id}")
    return db_booking


def refund_booking(
        db: Session, gateway: RazorpayGateway, booking_id: int, actor: CurrentUser
) -> models.Booking:
    if not actor.is_admin:
        raise Forbidden("Admin access required")

    db_booking = crud.get_booking(db, booking_id)
    if db_booking is None:
        raise NotFound("Booking not found", code="BOOKING_NOT_FOUND")
    if db_booking.status != models.BookingStatus.CONFIRMED:
        raise InvalidState(f"Cannot refund a {db_booking.status.value} booking")

    db_payment = crud.get_payment_for_booking(db, db_booking.id)
    if db_payment is None or not db_payment.gateway_payment_id:
        raise InvalidState("Booking has no captured payment")

    try:
        gateway.refund(db_payment.gateway_payment_id, db_payment.amount)
    except PaymentGatewayError:
        raise PaymentFailed("Could not refund payment")

    now = models.utcnow()
    db_payment.status = models.PaymentRecordStatus.REFUNDED
    db_payment.refund_amount = db_payment.amount
    db_payment.refunded_at = now
    db_booking.status = models.BookingStatus.REFUNDED
    db_booking.payment_status = models.PaymentStatus.REFUNDED
    db.commit()
    db.refresh(db_booking)

    logger.info(f"Booking {db_booking.id} refunded by admin {actor.id}")
    return db_booking


def complete_finished_stays(db: Session, now: Optional[datetime.datetime] = None) -> int:
    """
    Marks confirmed bookings whose check-out has passed as completed.
    Returns the number of bookings updated.
    """
    now = now or models.utcnow()
    finished = crud.get_bookings_to_complete(db, now)
    for db_booking in finished:
        db_booking.status = models.BookingStatus.COMPLETED
    if finished:
        db.commit()
        logger.info(f"Completed {len(finished)} finished stays.")
    return len(finished)
