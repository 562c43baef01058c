from typing import Annotated, List

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi_limiter.depends import RateLimiter
from jose import jwt, JWTError
from sqlalchemy.orm import Session

from .. import pricing, schemas
from ..auth import CurrentUser, get_current_admin_user, get_current_user, get_settings
from ..config import Settings
from ..database import get_db
from ..payments import RazorpayGateway, get_payment_gateway
from ..services import booking_service

router = APIRouter(prefix="/api/bookings", tags=["Bookings"])


async def get_key_by_user_id_or_ip(request: Request) -> str:
    """
    Tries to get the user ID from the JWT token.
    If it fails (no token, invalid token), it falls back to the client's IP.
    """
    settings = request.app.state.settings
    try:
        token = request.headers.get("Authorization")
        scheme, jwt_token = token.split()
        if scheme.lower() != "bearer":
            return request.client.host  # Fallback to IP

        payload = jwt.decode(jwt_token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        user_id = payload.get("sub")

        if user_id:
            return f"user:{user_id}"
    except (JWTError, ValueError, AttributeError, TypeError):
        # If token is invalid, missing, or malformed, limit by IP
        pass
    return request.client.host


class BookingRateLimiter:
    """
    fastapi-limiter dependency that stays inert while the limiter is not initialised.
    """

    def __init__(self, times: int, minutes: int):
        self._limiter = RateLimiter(times=times, minutes=minutes, identifier=get_key_by_user_id_or_ip)

    async def __call__(self, request: Request, response: Response):
        if not getattr(request.app.state, "rate_limit_active", False):
            return
        await self._limiter(request, response)


@router.post(
    "",
    response_model=schemas.ApiResponse[schemas.BookingCreated],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(BookingRateLimiter(times=30, minutes=1))],
)
def create_booking(
        booking: schemas.BookingCreate,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        gateway: RazorpayGateway = Depends(get_payment_gateway),
        settings: Settings = Depends(get_settings),
):
    """
    Create a new booking for the authenticated user.
    """
    result = booking_service.create_booking(db, gateway, current_user, booking, settings)
    return {"success": True, "data": result, "message": "Booking created successfully"}


@router.get("", response_model=schemas.ApiResponse[List[schemas.BookingWithListing]])
def read_user_bookings(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    """
    Get all bookings for the authenticated user, each with its listing.
    """
    return {"success": True, "data": booking_service.list_guest_bookings_with_listing(db, current_user)}


@router.get("/guest", response_model=schemas.ApiResponse[schemas.Page[schemas.BookingRead]])
def read_guest_bookings(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        page: int = Query(1, ge=1),
        limit: int = Query(pricing.DEFAULT_PAGE_LIMIT, ge=1),
        db: Session = Depends(get_db),
):
    return {"success": True, "data": booking_service.list_guest_bookings(db, current_user, page, limit)}


@router.get("/host", response_model=schemas.ApiResponse[schemas.Page[schemas.BookingRead]])
def read_host_bookings(
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        page: int = Query(1, ge=1),
        limit: int = Query(pricing.DEFAULT_PAGE_LIMIT, ge=1),
        db: Session = Depends(get_db),
):
    return {"success": True, "data": booking_service.list_host_bookings(db, current_user, page, limit)}


@router.get("/{booking_id}", response_model=schemas.ApiResponse[schemas.BookingRead])
def read_booking(
        booking_id: int,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    return {"success": True, "data": booking_service.get_booking(db, booking_id, current_user)}


@router.post("/{booking_id}/cancel", response_model=schemas.ApiResponse[schemas.BookingRead])
def cancel_booking(
        booking_id: int,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        body: schemas.BookingCancel = schemas.BookingCancel(),
        db: Session = Depends(get_db),
):
    db_booking = booking_service.cancel_booking(db, booking_id, current_user, body.reason)
    return {"success": True, "data": db_booking, "message": "Booking cancelled successfully"}


@router.post(
    "/{booking_id}/confirm-payment",
    response_model=schemas.ApiResponse[schemas.BookingRead],
    dependencies=[Depends(BookingRateLimiter(times=10, minutes=1))],
)
def confirm_payment(
        booking_id: int,
        confirmation: schemas.PaymentConfirmation,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
        gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    db_booking = booking_service.confirm_payment(db, gateway, booking_id, current_user, confirmation)
    return {"success": True, "data": db_booking, "message": "Payment confirmed"}


@router.post("/{booking_id}/refund", response_model=schemas.ApiResponse[schemas.BookingRead])
def refund_booking(
        booking_id: int,
        current_user: Annotated[CurrentUser, Depends(get_current_admin_user)],
        db: Session = Depends(get_db),
        gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    db_booking = booking_service.refund_booking(db, gateway, booking_id, current_user)
    return {"success": True, "data": db_booking, "message": "Booking refunded"}
