from typing import Annotated, List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from .. import schemas
from ..auth import CurrentUser, get_current_host_user, get_current_user
from ..database import get_db
from ..services import review_service

router = APIRouter(prefix="/api", tags=["Reviews"])


@router.get(
    "/listings/{listing_id}/reviews",
    response_model=schemas.ApiResponse[List[schemas.ReviewWithAuthor]],
)
def read_listing_reviews(listing_id: int, db: Session = Depends(get_db)):
    """
    Reviews for a listing, newest first, with the author's name.
    """
    return {"success": True, "data": review_service.list_reviews(db, listing_id)}


@router.post(
    "/listings/{listing_id}/reviews",
    response_model=schemas.ApiResponse[schemas.ReviewRead],
    status_code=status.HTTP_201_CREATED,
)
def create_review(
        listing_id: int,
        review: schemas.ReviewCreate,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    db_review = review_service.create_review(db, current_user, listing_id, review)
    return {"success": True, "data": db_review, "message": "Review created successfully"}


@router.post("/reviews/{review_id}/reply", response_model=schemas.ApiResponse[schemas.ReviewRead])
def reply_to_review(
        review_id: int,
        body: schemas.ReviewReply,
        current_user: Annotated[CurrentUser, Depends(get_current_host_user)],
        db: Session = Depends(get_db),
):
    db_review = review_service.reply_to_review(db, review_id, current_user, body.reply)
    return {"success": True, "data": db_review, "message": "Reply added"}
