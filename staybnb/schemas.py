import datetime
from enum import Enum
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel

from .models import (
    BookingStatus, CancellationPolicy, PaymentRecordStatus, PaymentStatus, UserRole
)

DataT = TypeVar("DataT")
ItemT = TypeVar("ItemT")


class CamelModel(BaseModel):
    # camelCase on the wire, snake_case accepted on input too
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# --- Envelope ---
class ApiResponse(BaseModel, Generic[DataT]):
    success: bool = True
    data: Optional[DataT] = None
    error: Optional[str] = None
    message: Optional[str] = None
    field: Optional[str] = None


class Page(CamelModel, Generic[ItemT]):
    items: List[ItemT]
    total: int
    page: int
    limit: int
    total_pages: int


# --- Users / Auth ---
class RegistrationRole(str, Enum):
    GUEST = "guest"
    HOST = "host"


class UserCreate(CamelModel):
    email: EmailStr
    # bcrypt only looks at the first 72 bytes
    password: str = Field(min_length=8, max_length=72)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    role: RegistrationRole = RegistrationRole.GUEST


class UserLogin(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class UserRead(CamelModel):
    id: int
    email: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: UserRole
    profile_image: Optional[str] = None
    is_verified: bool


class AuthResult(CamelModel):
    user: UserRead
    token: str


class CurrentUserRead(CamelModel):
    id: int
    email: str
    role: UserRole


# --- Listings ---
class ListingBase(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    price_per_night: int = Field(gt=0, description="Minor currency units")
    max_guests: int = Field(ge=1)
    bedrooms: int = Field(default=1, ge=0)
    bathrooms: int = Field(default=1, ge=0)
    city: str = Field(min_length=1, max_length=100)
    state: Optional[str] = None
    address: str = Field(min_length=1, max_length=255)
    zip_code: Optional[str] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    amenities: List[str] = Field(default_factory=list)
    rules_and_policies: Optional[str] = None


class ListingCreate(ListingBase):
    cancellation_policy: CancellationPolicy = CancellationPolicy.MODERATE


class ListingUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1)
    price_per_night: Optional[int] = Field(default=None, gt=0)
    max_guests: Optional[int] = Field(default=None, ge=1)
    bedrooms: Optional[int] = Field(default=None, ge=0)
    bathrooms: Optional[int] = Field(default=None, ge=0)
    city: Optional[str] = Field(default=None, min_length=1, max_length=100)
    state: Optional[str] = None
    address: Optional[str] = Field(default=None, min_length=1, max_length=255)
    zip_code: Optional[str] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    amenities: Optional[List[str]] = None
    rules_and_policies: Optional[str] = None
    cancellation_policy: Optional[CancellationPolicy] = None
    is_active: Optional[bool] = None


class ListingRead(ListingBase):
    id: int
    host_id: int
    cancellation_policy: CancellationPolicy
    average_rating: float
    review_count: int
    is_active: bool
    created_at: datetime.datetime
    updated_at: datetime.datetime


class ListingSort(str, Enum):
    PRICE_ASC = "price_asc"
    PRICE_DESC = "price_desc"
    RATING_DESC = "rating_desc"
    NEWEST = "newest"


class ListingFilters(BaseModel):
    city: Optional[str] = None
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    guests: Optional[int] = None
    min_rating: Optional[float] = None
    sort_by: ListingSort = ListingSort.NEWEST
    page: int = 1
    limit: int = 20


# --- Bookings ---
class BookingCreate(CamelModel):
    listing_id: int
    check_in: datetime.datetime
    check_out: datetime.datetime
    number_of_guests: int = Field(ge=1)

    @field_validator("check_in", "check_out")
    @classmethod
    def to_naive_utc(cls, value: datetime.datetime) -> datetime.datetime:
        # Stored timestamps are naive UTC
        if value.tzinfo is not None:
            value = value.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return value


class BookingCancel(CamelModel):
    reason: Optional[str] = Field(default=None, max_length=1000)


class PaymentConfirmation(CamelModel):
    payment_id: str = Field(min_length=1, max_length=64)
    signature: str = Field(min_length=1, max_length=128)


class BookingRead(CamelModel):
    id: int
    listing_id: int
    guest_id: int
    host_id: int
    check_in: datetime.datetime
    check_out: datetime.datetime
    number_of_guests: int
    number_of_nights: int
    price_per_night: int
    subtotal: int
    platform_fee: int
    total_price: int
    status: BookingStatus
    payment_status: PaymentStatus
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime
    updated_at: datetime.datetime


class BookingWithListing(BookingRead):
    listing: ListingRead


class PaymentOrder(CamelModel):
    """Order as returned by the payment gateway."""
    id: str
    amount: int
    currency: str
    receipt: Optional[str] = None
    status: str = "created"


class BookingCreated(CamelModel):
    booking: BookingRead
    external_order: PaymentOrder


class PaymentRead(CamelModel):
    id: int
    booking_id: int
    gateway_order_id: Optional[str] = None
    gateway_payment_id: Optional[str] = None
    amount: int
    currency: str
    status: PaymentRecordStatus
    refund_amount: int
    refunded_at: Optional[datetime.datetime] = None


# --- Reviews ---
SubRating = Optional[int]


class ReviewCreate(CamelModel):
    booking_id: int
    rating: int = Field(ge=1, le=5)
    title: Optional[str] = Field(default=None, max_length=200)
    comment: str = Field(min_length=1)
    cleanliness: SubRating = Field(default=None, ge=1, le=5)
    communication: SubRating = Field(default=None, ge=1, le=5)
    accuracy: SubRating = Field(default=None, ge=1, le=5)
    location: SubRating = Field(default=None, ge=1, le=5)
    value: SubRating = Field(default=None, ge=1, le=5)


class ReviewReply(CamelModel):
    reply: str = Field(min_length=1)


class ReviewRead(CamelModel):
    id: int
    booking_id: int
    listing_id: int
    guest_id: int
    host_id: int
    rating: int
    title: Optional[str] = None
    comment: str
    cleanliness: SubRating = None
    communication: SubRating = None
    accuracy: SubRating = None
    location: SubRating = None
    value: SubRating = None
    host_reply: Optional[str] = None
    host_replied_at: Optional[datetime.datetime] = None
    created_at: datetime.datetime


class ReviewAuthor(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class ReviewWithAuthor(ReviewRead):
    author: ReviewAuthor
