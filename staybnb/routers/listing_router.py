from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import pricing, schemas
from ..auth import CurrentUser, get_current_host_user, get_current_user
from ..database import get_db
from ..services import listing_service

router = APIRouter(prefix="/api/listings", tags=["Listings"])


def listing_filters(
        city: Optional[str] = None,
        min_price: Optional[int] = Query(None, alias="minPrice", ge=0),
        max_price: Optional[int] = Query(None, alias="maxPrice", ge=0),
        guests: Optional[int] = Query(None, ge=1),
        min_rating: Optional[float] = Query(None, alias="minRating", ge=0, le=5),
        sort_by: schemas.ListingSort = Query(schemas.ListingSort.NEWEST, alias="sortBy"),
        page: int = Query(1, ge=1),
        limit: int = Query(pricing.DEFAULT_PAGE_LIMIT, ge=1),
) -> schemas.ListingFilters:
    return schemas.ListingFilters(
        city=city,
        min_price=min_price,
        max_price=max_price,
        guests=guests,
        min_rating=min_rating,
        sort_by=sort_by,
        page=page,
        limit=limit,
    )


@router.get("", response_model=schemas.ApiResponse[List[schemas.ListingRead]])
def read_listings(
        filters: schemas.ListingFilters = Depends(listing_filters),
        db: Session = Depends(get_db),
):
    return {"success": True, "data": listing_service.list_listings(db, filters)}


@router.get("/search", response_model=schemas.ApiResponse[schemas.Page[schemas.ListingRead]])
def search_listings(
        filters: schemas.ListingFilters = Depends(listing_filters),
        db: Session = Depends(get_db),
):
    return {"success": True, "data": listing_service.search_listings(db, filters)}


@router.get("/host", response_model=schemas.ApiResponse[schemas.Page[schemas.ListingRead]])
def read_host_listings(
        current_user: Annotated[CurrentUser, Depends(get_current_host_user)],
        page: int = Query(1, ge=1),
        limit: int = Query(pricing.DEFAULT_PAGE_LIMIT, ge=1),
        db: Session = Depends(get_db),
):
    return {"success": True, "data": listing_service.list_host_listings(db, current_user, page, limit)}


@router.get("/{listing_id}", response_model=schemas.ApiResponse[schemas.ListingRead])
def read_listing(listing_id: int, db: Session = Depends(get_db)):
    return {"success": True, "data": listing_service.get_listing(db, listing_id)}


@router.post(
    "",
    response_model=schemas.ApiResponse[schemas.ListingRead],
    status_code=status.HTTP_201_CREATED,
)
def create_listing(
        listing: schemas.ListingCreate,
        current_user: Annotated[CurrentUser, Depends(get_current_host_user)],
        db: Session = Depends(get_db),
):
    db_listing = listing_service.create_listing(db, current_user, listing)
    return {"success": True, "data": db_listing, "message": "Listing created successfully"}


@router.put("/{listing_id}", response_model=schemas.ApiResponse[schemas.ListingRead])
def update_listing(
        listing_id: int,
        changes: schemas.ListingUpdate,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    db_listing = listing_service.update_listing(db, listing_id, current_user, changes)
    return {"success": True, "data": db_listing, "message": "Listing updated successfully"}


@router.delete("/{listing_id}", response_model=schemas.ApiResponse[None])
def delete_listing(
        listing_id: int,
        current_user: Annotated[CurrentUser, Depends(get_current_user)],
        db: Session = Depends(get_db),
):
    listing_service.delete_listing(db, listing_id, current_user)
    return {"success": True, "message": "Listing deleted successfully"}
