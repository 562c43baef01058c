import datetime
from dataclasses import dataclass
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, Request
from fastapi.security import APIKeyHeader
from jose import jwt, JWTError

from . import models
from .config import Settings
from .errors import Forbidden, Unauthorized

# auto_error is off so a missing header maps to NO_TOKEN instead of FastAPI's 403
api_key_header = APIKeyHeader(name="Authorization", auto_error=False)


@dataclass(frozen=True)
class CurrentUser:
    """Identity decoded from the bearer token, passed explicitly to handlers."""
    id: int
    email: str
    role: models.UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == models.UserRole.ADMIN


def hash_password(password: str, rounds: int = 12) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(password: str, hashed_password: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        # Malformed stored hash
        return False


def create_access_token(user: models.User, settings: Settings) -> str:
    expire = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(
        minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES
    )
    payload = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
        "exp": expire,
    }
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> CurrentUser:
    """
    Decodes a bearer token into the request identity.
    Raises Unauthorized(INVALID_TOKEN) on bad signature, expiry or missing claims.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        return CurrentUser(
            id=int(payload["sub"]),
            email=payload["email"],
            role=models.UserRole(payload["role"]),
        )
    except (JWTError, KeyError, TypeError, ValueError):
        raise Unauthorized("Invalid token", code="INVALID_TOKEN")


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_current_user(
        request: Request,
        authorization: Annotated[Optional[str], Depends(api_key_header)],
) -> CurrentUser:
    """
    Reads the 'Authorization: Bearer ...' header and returns the caller's identity.
    """
    if not authorization:
        raise Unauthorized("No token provided", code="NO_TOKEN")
    try:
        scheme, token = authorization.split()
    except ValueError:
        raise Unauthorized("Invalid token", code="INVALID_TOKEN")
    if scheme.lower() != "bearer":
        raise Unauthorized("Invalid token", code="INVALID_TOKEN")
    return decode_access_token(token, get_settings(request))


def get_current_host_user(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    if current_user.role not in (models.UserRole.HOST, models.UserRole.ADMIN):
        raise Forbidden("Host access required")
    return current_user


def get_current_admin_user(current_user: Annotated[CurrentUser, Depends(get_current_user)]) -> CurrentUser:
    if not current_user.is_admin:
        raise Forbidden("Admin access required")
    return current_user
