import logging
from functools import lru_cache

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import auth, crud, models, schemas
from ..config import Settings
from ..errors import Conflict, Forbidden, Unauthorized

logger = logging.getLogger("auth_service")


@lru_cache(maxsize=None)
def _dummy_hash(rounds: int) -> str:
    # Checked when the email is unknown, at the same cost as stored hashes
    return auth.hash_password("not-a-real-password", rounds=rounds)


def _result(user: models.User, settings: Settings) -> dict:
    return {"user": user, "token": auth.create_access_token(user, settings)}


def register(db: Session, data: schemas.UserCreate, settings: Settings) -> dict:
    email = data.email.lower()
    if crud.get_user_by_email(db, email):
        raise Conflict("Email already registered", code="USER_ALREADY_EXISTS")

    hashed = auth.hash_password(data.password, rounds=settings.BCRYPT_ROUNDS)
    try:
        db_user = crud.create_user(
            db,
            email=email,
            hashed_password=hashed,
            first_name=data.first_name,
            last_name=data.last_name,
            role=models.UserRole(data.role.value),
        )
    except IntegrityError:
        # Lost a race with a concurrent registration of the same email
        db.rollback()
        raise Conflict("Email already registered", code="USER_ALREADY_EXISTS")

    logger.info(f"Registered user {db_user.id} as {db_user.role.value}")
    return _result(db_user, settings)


def login(db: Session, data: schemas.UserLogin, settings: Settings) -> dict:
    db_user = crud.get_user_by_email(db, data.email)
    if db_user is None:
        auth.verify_password(data.password, _dummy_hash(settings.BCRYPT_ROUNDS))
        raise Unauthorized("Invalid credentials", code="INVALID_CREDENTIALS")

    if not auth.verify_password(data.password, db_user.hashed_password):
        logger.warning(f"Failed login for user {db_user.id}")
        raise Unauthorized("Invalid credentials", code="INVALID_CREDENTIALS")

    if db_user.is_suspended:
        raise Forbidden("Account is suspended", code="ACCOUNT_SUSPENDED")

    return _result(db_user, settings)
