from typing import Annotated

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import CurrentUser, get_current_user, get_settings
from ..config import Settings
from ..database import get_db
from ..services import auth_service

router = APIRouter(prefix="/api/auth", tags=["Auth"])


@router.post(
    "/register",
    response_model=schemas.ApiResponse[schemas.AuthResult],
    status_code=status.HTTP_201_CREATED,
)
def register(
        user: schemas.UserCreate,
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    result = auth_service.register(db, user, settings)
    return {"success": True, "data": result, "message": "User registered successfully"}


@router.post("/login", response_model=schemas.ApiResponse[schemas.AuthResult])
def login(
        credentials: schemas.UserLogin,
        db: Session = Depends(get_db),
        settings: Settings = Depends(get_settings),
):
    result = auth_service.login(db, credentials, settings)
    return {"success": True, "data": result, "message": "Logged in successfully"}


@router.get("/me", response_model=schemas.ApiResponse[schemas.CurrentUserRead])
def read_current_user(current_user: Annotated[CurrentUser, Depends(get_current_user)]):
    return {"success": True, "data": current_user}
