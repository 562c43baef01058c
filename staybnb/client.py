"""
Synchronous Python client for the StayBnB HTTP API.

Wraps an ``httpx.Client`` (a real one pointed at a server, or a FastAPI
``TestClient``), unwraps the response envelope and remembers the bearer token
after ``register`` / ``login``.
"""
import datetime
from typing import Any, Dict, List, Optional

import httpx


class ApiClientError(Exception):
    """Raised for any response whose envelope has ``success: false``."""

    def __init__(self, status_code: int, code: Optional[str], message: Optional[str]):
        super().__init__(f"{status_code} {code}: {message}")
        self.status_code = status_code
        self.code = code
        self.message = message


def _iso(value: datetime.datetime) -> str:
    return value.isoformat()


class StayBnBClient:
    def __init__(self, http: httpx.Client, token: Optional[str] = None):
        self.http = http
        self.token = token

    def _headers(self) -> Dict[str, str]:
        if self.token:
            return {"Authorization": f"Bearer {self.token}"}
        return {}

    def _request(self, method: str, path: str, **kwargs) -> Any:
        response = self.http.request(method, path, headers=self._headers(), **kwargs)
        try:
            body = response.json()
        except ValueError:
            raise ApiClientError(response.status_code, "INVALID_RESPONSE", response.text)
        if response.is_error or not body.get("success", False):
            raise ApiClientError(response.status_code, body.get("error"), body.get("message"))
        return body.get("data")

    # --- Auth ---
    def register(
            self, email: str, password: str, first_name: str, last_name: str, role: str = "guest"
    ) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/register", json={
            "email": email,
            "password": password,
            "firstName": first_name,
            "lastName": last_name,
            "role": role,
        })
        self.token = data["token"]
        return data["user"]

    def login(self, email: str, password: str) -> Dict[str, Any]:
        data = self._request("POST", "/api/auth/login", json={"email": email, "password": password})
        self.token = data["token"]
        return data["user"]

    # --- Listings ---
    def search_listings(self, **filters) -> Dict[str, Any]:
        """
        Paginated search. Filters use the query names of the API
        (city, minPrice, maxPrice, guests, minRating, sortBy, page, limit).
        """
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/api/listings/search", params=params)

    def list_listings(self, **filters) -> List[Dict[str, Any]]:
        params = {k: v for k, v in filters.items() if v is not None}
        return self._request("GET", "/api/listings", params=params)

    def get_listing(self, listing_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/listings/{listing_id}")

    def create_listing(self, listing: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/listings", json=listing)

    # --- Bookings ---
    def list_bookings(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/bookings")

    def create_booking(
            self,
            listing_id: int,
            check_in: datetime.datetime,
            check_out: datetime.datetime,
            number_of_guests: int,
    ) -> Dict[str, Any]:
        """Returns ``{"booking": ..., "externalOrder": ...}``."""
        return self._request("POST", "/api/bookings", json={
            "listingId": listing_id,
            "checkIn": _iso(check_in),
            "checkOut": _iso(check_out),
            "numberOfGuests": number_of_guests,
        })

    def cancel_booking(self, booking_id: int, reason: Optional[str] = None) -> Dict[str, Any]:
        return self._request("POST", f"/api/bookings/{booking_id}/cancel", json={"reason": reason})

    # --- Reviews ---
    def list_reviews(self, listing_id: int) -> List[Dict[str, Any]]:
        return self._request("GET", f"/api/listings/{listing_id}/reviews")

    def create_review(self, listing_id: int, review: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", f"/api/listings/{listing_id}/reviews", json=review)
