from typing import List

from sqlalchemy.orm import Session

from .. import crud, models, pricing, schemas
from ..auth import CurrentUser
from ..errors import Forbidden, NotFound

# Fields an update may explicitly clear
NULLABLE_FIELDS = {"state", "zip_code", "lat", "lng", "rules_and_policies"}


def page_result(items: list, total: int, page: int, limit: int) -> dict:
    return {
        "items": items,
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": pricing.total_pages(total, limit),
    }


def create_listing(db: Session, host: CurrentUser, data: schemas.ListingCreate) -> models.Listing:
    return crud.create_listing(db, data, host_id=host.id)


def get_listing(db: Session, listing_id: int) -> models.Listing:
    db_listing = crud.get_listing(db, listing_id)
    if db_listing is None:
        raise NotFound("Listing not found", code="LISTING_NOT_FOUND")
    return db_listing


def list_listings(db: Session, filters: schemas.ListingFilters) -> List[models.Listing]:
    """Every active listing matching the filters, unpaged."""
    return crud.search_listings_query(db, filters).all()


def search_listings(db: Session, filters: schemas.ListingFilters) -> dict:
    limit = pricing.clamp_limit(filters.limit)
    items, total = crud.paginate(crud.search_listings_query(db, filters), filters.page, limit)
    return page_result(items, total, filters.page, limit)


def list_host_listings(db: Session, host: CurrentUser, page: int, limit: int) -> dict:
    limit = pricing.clamp_limit(limit)
    items, total = crud.paginate(crud.host_listings_query(db, host.id), page, limit)
    return page_result(items, total, page, limit)


def _owned_listing(db: Session, listing_id: int, actor: CurrentUser, action: str) -> models.Listing:
    db_listing = get_listing(db, listing_id)
    if db_listing.host_id != actor.id:
        raise Forbidden(f"Unauthorized to {action} this listing")
    return db_listing


def update_listing(
        db: Session, listing_id: int, actor: CurrentUser, changes: schemas.ListingUpdate
) -> models.Listing:
    db_listing = _owned_listing(db, listing_id, actor, "update")
    values = {
        key: value for key, value in changes.model_dump(exclude_unset=True).items()
        if value is not None or key in NULLABLE_FIELDS
    }
    return crud.update_listing(db, db_listing, values)


def delete_listing(db: Session, listing_id: int, actor: CurrentUser):
    db_listing = _owned_listing(db, listing_id, actor, "delete")
    crud.delete_listing(db, db_listing)
