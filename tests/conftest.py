# Imports for testing tools
import datetime
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

# Import your application code
from staybnb import auth, crud, models, pricing
from staybnb.config import Settings
from staybnb.database import Base
from staybnb.main import create_app
from staybnb.payments import PaymentGatewayError, RazorpayGateway, get_payment_gateway
from staybnb.schemas import PaymentOrder

TEST_PASSWORD = "password123"
VALID_SIGNATURE = "valid_signature"


# --- Application Fixtures ---
@pytest.fixture(scope="function")
def settings():
    """Settings for a throwaway in-memory database with no redis or scheduler."""
    return Settings(
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret-key",
        RATE_LIMIT_ENABLED=False,
        STAY_COMPLETION_INTERVAL_SECONDS=0,
        BCRYPT_ROUNDS=4,
        RAZORPAY_KEY_ID="",
        RAZORPAY_KEY_SECRET="",
    )


@pytest.fixture(scope="function")
def app(settings):
    app = create_app(settings)
    Base.metadata.create_all(bind=app.state.engine)
    yield app
    Base.metadata.drop_all(bind=app.state.engine)
    app.state.engine.dispose()


@pytest.fixture(scope="function")
def db_session(app):
    """Provides a session on the same database the app uses."""
    session = app.state.session_factory()
    yield session
    session.close()


# --- Mocking External Services ---
@pytest.fixture(scope="function", autouse=True)
def mock_background_tasks(mocker):
    """
    Mocks the scheduler that runs on app lifespan.
    """
    mocker.patch("staybnb.main.run_booking_scheduler", new_callable=AsyncMock)


@pytest.fixture(scope="function")
def payment_gateway(mocker):
    """A gateway that hands out orders and accepts VALID_SIGNATURE only."""
    gateway = mocker.MagicMock(spec=RazorpayGateway)

    def create_order(amount, currency, receipt, notes=None):
        return PaymentOrder(id=f"order_{receipt}", amount=amount, currency=currency, receipt=receipt)

    gateway.create_order.side_effect = create_order
    gateway.verify_signature.side_effect = (
        lambda order_id, payment_id, signature: signature == VALID_SIGNATURE
    )
    gateway.refund.return_value = "rfnd_test"
    return gateway


@pytest.fixture(scope="function")
def failing_gateway(payment_gateway):
    payment_gateway.create_order.side_effect = PaymentGatewayError("Gateway unreachable")
    return payment_gateway


# --- API Test Client Fixture ---
@pytest.fixture(scope="function")
def client(app, payment_gateway):
    app.dependency_overrides[get_payment_gateway] = lambda: payment_gateway

    with TestClient(app) as c:
        yield c

    # Clean up overrides
    app.dependency_overrides.clear()


# --- Users ---
@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(role=models.UserRole.GUEST, email=None, first_name="Test", **fields):
        counter["n"] += 1
        email = email or f"{role.value}{counter['n']}@example.com"
        db_user = crud.create_user(
            db_session,
            email=email,
            hashed_password=auth.hash_password(TEST_PASSWORD, rounds=4),
            first_name=first_name,
            last_name="User",
            role=role,
        )
        for key, value in fields.items():
            setattr(db_user, key, value)
        if fields:
            db_session.commit()
        return db_user

    return _make_user


@pytest.fixture
def auth_headers_for(settings):
    def _headers(user: models.User) -> dict:
        return {"Authorization": f"Bearer {auth.create_access_token(user, settings)}"}

    return _headers


@pytest.fixture
def host(make_user):
    return make_user(models.UserRole.HOST, first_name="Hosty")


@pytest.fixture
def guest(make_user):
    return make_user(models.UserRole.GUEST, first_name="Gus")


@pytest.fixture
def admin(make_user):
    return make_user(models.UserRole.ADMIN)


@pytest.fixture
def host_headers(host, auth_headers_for):
    return auth_headers_for(host)


@pytest.fixture
def guest_headers(guest, auth_headers_for):
    return auth_headers_for(guest)


@pytest.fixture
def admin_headers(admin, auth_headers_for):
    return auth_headers_for(admin)


# --- Listings and bookings ---
def listing_payload(**overrides) -> dict:
    payload = {
        "title": "Sea view flat",
        "description": "Two rooms by the beach",
        "pricePerNight": 100,
        "maxGuests": 4,
        "bedrooms": 2,
        "bathrooms": 1,
        "city": "Goa",
        "address": "1 Beach Road",
        "amenities": ["wifi", "kitchen"],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def make_listing(db_session):
    def _make_listing(host: models.User, **fields) -> models.Listing:
        values = {
            "title": "Sea view flat",
            "description": "Two rooms by the beach",
            "price_per_night": 100,
            "max_guests": 4,
            "city": "Goa",
            "address": "1 Beach Road",
            "amenities": [],
        }
        values.update(fields)
        db_listing = models.Listing(host_id=host.id, **values)
        db_session.add(db_listing)
        db_session.commit()
        db_session.refresh(db_listing)
        return db_listing

    return _make_listing


@pytest.fixture
def listing(make_listing, host):
    return make_listing(host)


@pytest.fixture
def make_booking(db_session):
    """Inserts a booking (and a pending payment order) straight into the database."""
    def _make_booking(
            listing: models.Listing,
            guest: models.User,
            check_in: datetime.datetime,
            check_out: datetime.datetime,
            status: models.BookingStatus = models.BookingStatus.CONFIRMED,
            number_of_guests: int = 2,
            gateway_payment_id: str = None,
    ) -> models.Booking:
        quote = pricing.quote(listing.price_per_night, check_in, check_out)
        db_booking = models.Booking(
            listing_id=listing.id,
            guest_id=guest.id,
            host_id=listing.host_id,
            check_in=check_in,
            check_out=check_out,
            number_of_guests=number_of_guests,
            number_of_nights=quote.nights,
            price_per_night=listing.price_per_night,
            subtotal=quote.subtotal,
            platform_fee=quote.platform_fee,
            total_price=quote.total_price,
            status=status,
        )
        db_payment = models.Payment(
            gateway_order_id=f"order_seed_{guest.id}_{check_in:%Y%m%d%H%M%S}_{listing.id}",
            gateway_payment_id=gateway_payment_id,
            amount=quote.total_price,
            currency="INR",
        )
        return crud.add_booking_with_payment(db_session, db_booking, db_payment)

    return _make_booking
