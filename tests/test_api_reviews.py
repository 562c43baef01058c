import datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from staybnb import models

PAST = datetime.datetime(2020, 3, 1, 14, 0)


def review_payload(booking_id: int, **overrides) -> dict:
    payload = {"bookingId": booking_id, "rating": 4, "title": "Lovely", "comment": "Would stay again"}
    payload.update(overrides)
    return payload


@pytest.fixture
def completed_booking(listing, guest, make_booking):
    return make_booking(
        listing, guest, PAST, PAST + datetime.timedelta(days=2), status=models.BookingStatus.COMPLETED
    )


def test_create_review(client: TestClient, listing, guest, guest_headers, completed_booking,
                       db_session: Session):
    response = client.post(
        f"/api/listings/{listing.id}/reviews",
        json=review_payload(completed_booking.id, cleanliness=5),
        headers=guest_headers,
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["guestId"] == guest.id
    assert data["hostId"] == listing.host_id
    assert data["rating"] == 4
    assert data["cleanliness"] == 5

    db_session.refresh(listing)
    assert listing.review_count == 1
    assert listing.average_rating == 4.0


def test_listing_rating_is_average_of_reviews(client: TestClient, listing, make_user, make_booking,
                                              auth_headers_for, db_session: Session):
    for offset, rating in enumerate((5, 4, 4)):
        reviewer = make_user()
        start = PAST + datetime.timedelta(days=offset * 5)
        db_booking = make_booking(
            listing, reviewer, start, start + datetime.timedelta(days=2), status=models.BookingStatus.COMPLETED
        )
        response = client.post(
            f"/api/listings/{listing.id}/reviews",
            json=review_payload(db_booking.id, rating=rating),
            headers=auth_headers_for(reviewer),
        )
        assert response.status_code == 201

    db_session.refresh(listing)
    assert listing.review_count == 3
    assert listing.average_rating == 4.33


def test_review_conflict_regardless_of_requester(client: TestClient, listing, guest_headers,
                                                 completed_booking, make_user, auth_headers_for):
    first = client.post(
        f"/api/listings/{listing.id}/reviews", json=review_payload(completed_booking.id), headers=guest_headers
    )
    assert first.status_code == 201

    again = client.post(
        f"/api/listings/{listing.id}/reviews", json=review_payload(completed_booking.id), headers=guest_headers
    )
    stranger = client.post(
        f"/api/listings/{listing.id}/reviews",
        json=review_payload(completed_booking.id),
        headers=auth_headers_for(make_user()),
    )

    for response in (again, stranger):
        assert response.status_code == 409
        assert response.json()["error"] == "REVIEW_EXISTS"


def test_review_of_someone_elses_booking(client: TestClient, listing, completed_booking, make_user,
                                         auth_headers_for):
    response = client.post(
        f"/api/listings/{listing.id}/reviews",
        json=review_payload(completed_booking.id),
        headers=auth_headers_for(make_user()),
    )
    assert response.status_code == 404
    assert response.json()["error"] == "BOOKING_NOT_FOUND"


def test_review_for_wrong_listing(client: TestClient, host, make_listing, guest_headers, completed_booking):
    other_listing = make_listing(host, title="Another place")

    response = client.post(
        f"/api/listings/{other_listing.id}/reviews", json=review_payload(completed_booking.id), headers=guest_headers
    )
    assert response.status_code == 400
    assert response.json()["field"] == "bookingId"


def test_review_requires_completed_stay(client: TestClient, listing, guest, guest_headers, make_booking):
    db_booking = make_booking(listing, guest, PAST, PAST + datetime.timedelta(days=2))

    response = client.post(
        f"/api/listings/{listing.id}/reviews", json=review_payload(db_booking.id), headers=guest_headers
    )
    assert response.status_code == 400
    assert response.json()["error"] == "INVALID_STATE"


def test_review_rating_out_of_range(client: TestClient, listing, guest_headers, completed_booking):
    response = client.post(
        f"/api/listings/{listing.id}/reviews",
        json=review_payload(completed_booking.id, rating=6),
        headers=guest_headers,
    )
    assert response.status_code == 400
    assert response.json()["field"] == "rating"


def test_list_reviews_with_author(client: TestClient, listing, guest_headers, completed_booking):
    client.post(
        f"/api/listings/{listing.id}/reviews", json=review_payload(completed_booking.id), headers=guest_headers
    )

    response = client.get(f"/api/listings/{listing.id}/reviews")

    assert response.status_code == 200
    reviews = response.json()["data"]
    assert len(reviews) == 1
    assert reviews[0]["author"] == {"firstName": "Gus", "lastName": "User"}


def test_list_reviews_for_missing_listing(client: TestClient):
    response = client.get("/api/listings/9999/reviews")
    assert response.status_code == 404


def test_host_reply(client: TestClient, listing, guest_headers, host_headers, completed_booking):
    review = client.post(
        f"/api/listings/{listing.id}/reviews", json=review_payload(completed_booking.id), headers=guest_headers
    ).json()["data"]

    response = client.post(
        f"/api/reviews/{review['id']}/reply", json={"reply": "Thanks for staying!"}, headers=host_headers
    )

    assert response.status_code == 200
    assert response.json()["data"]["hostReply"] == "Thanks for staying!"
    assert response.json()["data"]["hostRepliedAt"] is not None


def test_reply_by_other_host_is_forbidden(client: TestClient, listing, guest_headers, completed_booking,
                                          make_user, auth_headers_for):
    review = client.post(
        f"/api/listings/{listing.id}/reviews", json=review_payload(completed_booking.id), headers=guest_headers
    ).json()["data"]

    other_host = make_user(models.UserRole.HOST)
    response = client.post(
        f"/api/reviews/{review['id']}/reply", json={"reply": "Hi"}, headers=auth_headers_for(other_host)
    )
    assert response.status_code == 403


def test_reply_to_missing_review(client: TestClient, host_headers):
    response = client.post("/api/reviews/9999/reply", json={"reply": "Hi"}, headers=host_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "REVIEW_NOT_FOUND"
