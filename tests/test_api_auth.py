import datetime

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from staybnb import auth, models
from staybnb.errors import Unauthorized

from .conftest import TEST_PASSWORD


def register_payload(**overrides) -> dict:
    payload = {
        "email": "new.user@example.com",
        "password": "supersecret1",
        "firstName": "New",
        "lastName": "User",
    }
    payload.update(overrides)
    return payload


def test_register_returns_user_and_token(client: TestClient, settings):
    response = client.post("/api/auth/register", json=register_payload(role="host"))

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    user = body["data"]["user"]
    assert user["email"] == "new.user@example.com"
    assert user["role"] == "host"
    assert user["firstName"] == "New"
    assert "hashedPassword" not in user

    claims = jwt.decode(body["data"]["token"], settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    assert claims["sub"] == str(user["id"])
    assert claims["role"] == "host"


def test_register_defaults_to_guest(client: TestClient):
    response = client.post("/api/auth/register", json=register_payload())
    assert response.json()["data"]["user"]["role"] == "guest"


def test_register_rejects_admin_role(client: TestClient):
    response = client.post("/api/auth/register", json=register_payload(role="admin"))
    assert response.status_code == 400
    assert response.json()["error"] == "VALIDATION_ERROR"
    assert response.json()["field"] == "role"


def test_register_duplicate_email_conflicts(client: TestClient):
    client.post("/api/auth/register", json=register_payload())
    response = client.post("/api/auth/register", json=register_payload(email="NEW.USER@example.com"))

    assert response.status_code == 409
    assert response.json()["error"] == "USER_ALREADY_EXISTS"


def test_register_invalid_email_names_field(client: TestClient):
    response = client.post("/api/auth/register", json=register_payload(email="not-an-email"))

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "VALIDATION_ERROR"
    assert body["field"] == "email"


def test_register_short_password(client: TestClient):
    response = client.post("/api/auth/register", json=register_payload(password="short"))
    assert response.status_code == 400
    assert response.json()["field"] == "password"


def test_login_success(client: TestClient, guest):
    response = client.post("/api/auth/login", json={"email": guest.email, "password": TEST_PASSWORD})

    assert response.status_code == 200
    assert response.json()["data"]["user"]["id"] == guest.id
    assert response.json()["data"]["token"]


@pytest.mark.parametrize("email, password", [
    ("unknown@example.com", TEST_PASSWORD),
    (None, "wrong-password"),
])
def test_login_invalid_credentials(client: TestClient, guest, email, password):
    response = client.post("/api/auth/login", json={"email": email or guest.email, "password": password})

    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_CREDENTIALS"
    assert response.json()["message"] == "Invalid credentials"


def test_login_suspended_account(client: TestClient, make_user):
    suspended = make_user(is_suspended=True)
    response = client.post("/api/auth/login", json={"email": suspended.email, "password": TEST_PASSWORD})

    assert response.status_code == 403
    assert response.json()["error"] == "ACCOUNT_SUSPENDED"


def test_me_returns_identity(client: TestClient, guest, guest_headers):
    response = client.get("/api/auth/me", headers=guest_headers)

    assert response.status_code == 200
    assert response.json()["data"] == {"id": guest.id, "email": guest.email, "role": "guest"}


def test_me_without_token(client: TestClient):
    response = client.get("/api/auth/me")
    assert response.status_code == 401
    assert response.json()["error"] == "NO_TOKEN"


@pytest.mark.parametrize("header", ["Bearer garbage", "Token abc", "Bearer"])
def test_me_with_bad_token(client: TestClient, header):
    response = client.get("/api/auth/me", headers={"Authorization": header})
    assert response.status_code == 401
    assert response.json()["error"] == "INVALID_TOKEN"


def test_expired_token_is_rejected(client: TestClient, guest, settings):
    payload = {
        "sub": str(guest.id),
        "email": guest.email,
        "role": "guest",
        "exp": datetime.datetime.now(datetime.timezone.utc) - datetime.timedelta(minutes=1),
    }
    token = jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

    response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert response.json()["error"] == "INVALID_TOKEN"


def test_decode_access_token_round_trips_identity(settings):
    user = models.User(id=5, email="h@example.com", role=models.UserRole.HOST)
    current = auth.decode_access_token(auth.create_access_token(user, settings), settings)

    assert current == auth.CurrentUser(id=5, email="h@example.com", role=models.UserRole.HOST)
    assert not current.is_admin


def test_decode_access_token_wrong_secret(settings):
    user = models.User(id=5, email="h@example.com", role=models.UserRole.HOST)
    token = auth.create_access_token(user, settings)

    with pytest.raises(Unauthorized) as exc_info:
        auth.decode_access_token(token, settings.model_copy(update={"SECRET_KEY": "other"}))
    assert exc_info.value.code == "INVALID_TOKEN"


def test_password_hashing():
    hashed = auth.hash_password("hunter22", rounds=4)
    assert auth.verify_password("hunter22", hashed)
    assert not auth.verify_password("hunter23", hashed)
    assert not auth.verify_password("hunter22", "not-a-bcrypt-hash")


@pytest.mark.parametrize("rounds", [4, 12])
def test_unknown_email_is_checked_at_configured_cost(client: TestClient, settings, mocker, rounds):
    spy = mocker.spy(auth, "verify_password")
    settings.BCRYPT_ROUNDS = rounds

    response = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": TEST_PASSWORD})

    assert response.json()["error"] == "INVALID_CREDENTIALS"
    checked_hash = spy.call_args.args[1]
    assert checked_hash.startswith(f"$2b${rounds:02d}$")
