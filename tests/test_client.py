import datetime

import pytest
from fastapi.testclient import TestClient

from staybnb.client import ApiClientError, StayBnBClient

from .conftest import listing_payload

CHECK_IN = datetime.datetime(2030, 5, 1, 14, 0)


@pytest.fixture
def host_client(client: TestClient) -> StayBnBClient:
    api = StayBnBClient(client)
    api.register("host@example.com", "supersecret1", "Hana", "Host", role="host")
    return api


@pytest.fixture
def guest_client(client: TestClient) -> StayBnBClient:
    api = StayBnBClient(client)
    api.register("guest@example.com", "supersecret1", "Gita", "Guest")
    return api


def test_register_remembers_token(client: TestClient):
    api = StayBnBClient(client)
    user = api.register("someone@example.com", "supersecret1", "Some", "One")

    assert user["role"] == "guest"
    assert api.token


def test_login_after_register(client: TestClient, guest_client):
    api = StayBnBClient(client)
    user = api.login("guest@example.com", "supersecret1")

    assert user["email"] == "guest@example.com"
    assert api.token


def test_booking_flow(host_client, guest_client):
    listing = host_client.create_listing(listing_payload(city="Pune"))

    page = guest_client.search_listings(city="Pune")
    assert page["total"] == 1
    assert guest_client.list_listings(city="Pune")[0]["id"] == listing["id"]
    assert guest_client.get_listing(listing["id"])["title"] == listing["title"]

    created = guest_client.create_booking(listing["id"], CHECK_IN, CHECK_IN + datetime.timedelta(days=3), 2)
    assert created["booking"]["totalPrice"] == 336
    assert created["externalOrder"]["amount"] == 336

    bookings = guest_client.list_bookings()
    assert [b["id"] for b in bookings] == [created["booking"]["id"]]

    cancelled = guest_client.cancel_booking(created["booking"]["id"], reason="Changed plans")
    assert cancelled["status"] == "cancelled"

    assert guest_client.list_reviews(listing["id"]) == []


def test_error_envelope_raises(guest_client):
    with pytest.raises(ApiClientError) as exc_info:
        guest_client.create_listing(listing_payload())

    assert exc_info.value.status_code == 403
    assert exc_info.value.code == "FORBIDDEN"


def test_missing_listing_raises(guest_client):
    with pytest.raises(ApiClientError) as exc_info:
        guest_client.get_listing(9999)

    assert exc_info.value.code == "LISTING_NOT_FOUND"


def test_create_review_for_unknown_booking(guest_client, host_client):
    listing = host_client.create_listing(listing_payload())

    with pytest.raises(ApiClientError) as exc_info:
        guest_client.create_review(listing["id"], {"bookingId": 9999, "rating": 5, "comment": "Great"})

    assert exc_info.value.status_code == 404
