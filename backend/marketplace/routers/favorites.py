from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import require_principal
from marketplace.models.bookmark import SavedCreator
from marketplace.models.creator import Creator
from marketplace.schemas.bookmark import FavoriteCreator, FavoriteListResponse, FavoriteRequest, RemovedResponse
from marketplace.services import bookmark_service
from marketplace.services.authorization import Principal

router = APIRouter(prefix="/favorites", tags=["favorites"])


def _to_response(favorite: SavedCreator, creator: Creator) -> FavoriteCreator:
    return FavoriteCreator(
        id=creator.id,
        name=creator.name,
        location=creator.location,
        categories=creator.categories or [],
        rating=creator.average_rating,
        total_reviews=creator.total_reviews or 0,
        saved_at=favorite.saved_at,
    )


@router.get("", response_model=FavoriteListResponse)
async def list_favorites(
    business_id: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    rows = bookmark_service.list_favorites(db, principal, business_id)
    return FavoriteListResponse(favorites=[_to_response(fav, creator) for fav, creator in rows])


@router.post("", response_model=FavoriteCreator, status_code=201)
async def add_favorite(
    req: FavoriteRequest,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    favorite = bookmark_service.add_favorite(db, principal, req.creator_id, req.business_id)
    creator = db.query(Creator).filter(Creator.id == favorite.creator_id).first()
    return _to_response(favorite, creator)


@router.delete("", response_model=RemovedResponse)
async def remove_favorite(
    creator_id: str,
    business_id: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    removed = bookmark_service.remove_favorite(db, principal, creator_id, business_id)
    return RemovedResponse(success=True, removed=removed)
