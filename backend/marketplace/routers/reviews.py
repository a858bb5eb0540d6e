from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import get_principal, require_principal
from marketplace.models.business import Business
from marketplace.models.creator import Creator
from marketplace.models.review import Review
from marketplace.schemas.review import (
    ReviewCreate,
    ReviewListResponse,
    ReviewReject,
    ReviewReply,
    ReviewResponse,
    ReviewUpdate,
)
from marketplace.services import review_service
from marketplace.services.authorization import Principal
from marketplace.services.errors import InvalidInput

router = APIRouter(prefix="/reviews", tags=["reviews"])


def _to_responses(db: Session, reviews: list[Review]) -> list[ReviewResponse]:
    business_ids = {r.business_id for r in reviews}
    creator_ids = {r.creator_id for r in reviews}
    businesses = dict(
        db.query(Business.id, Business.company_name).filter(Business.id.in_(business_ids)).all()
    ) if business_ids else {}
    creators = dict(db.query(Creator.id, Creator.name).filter(Creator.id.in_(creator_ids)).all()) if creator_ids else {}
    return [
        ReviewResponse(
            id=r.id,
            business_id=r.business_id,
            business_name=businesses.get(r.business_id),
            creator_id=r.creator_id,
            creator_name=creators.get(r.creator_id),
            rating=r.rating,
            comment=r.comment,
            status=r.status,
            rejection_reason=r.rejection_reason,
            reply=r.reply,
            reply_date=r.reply_date,
            created_at=r.created_at,
            updated_at=r.updated_at,
        )
        for r in reviews
    ]


def _single(db: Session, review: Review) -> ReviewResponse:
    return _to_responses(db, [review])[0]


@router.get("", response_model=ReviewListResponse)
async def list_reviews(
    business_id: str | None = None,
    creator_id: str | None = None,
    status: str | None = None,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    reviews = review_service.list_reviews(
        db, principal, business_id=business_id, creator_id=creator_id, status=status,
    )
    return ReviewListResponse(reviews=_to_responses(db, reviews))


@router.post("", response_model=ReviewResponse, status_code=201)
async def create_review(
    req: ReviewCreate,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return _single(db, review_service.create_review(db, principal, req))


@router.put("", response_model=ReviewResponse)
async def update_review(
    req: ReviewUpdate,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return _single(db, review_service.update_review(db, principal, req))


@router.delete("")
async def delete_review(
    review_id: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    if not review_id:
        raise InvalidInput("review_id is required")
    review_service.delete_review(db, principal, review_id)
    return {"success": True}


@router.post("/{review_id}/approve", response_model=ReviewResponse)
async def approve_review(
    review_id: str,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return _single(db, review_service.moderate(db, principal, review_id, "approved"))


@router.post("/{review_id}/reject", response_model=ReviewResponse)
async def reject_review(
    review_id: str,
    req: ReviewReject | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    reason = req.reason if req else None
    return _single(db, review_service.moderate(db, principal, review_id, "rejected", reason))


@router.post("/{review_id}/reply", response_model=ReviewResponse)
@router.put("/{review_id}/reply", response_model=ReviewResponse)
async def reply_to_review(
    review_id: str,
    req: ReviewReply,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return _single(db, review_service.set_reply(db, principal, review_id, req.reply))


@router.delete("/{review_id}/reply", response_model=ReviewResponse)
async def delete_reply(
    review_id: str,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return _single(db, review_service.set_reply(db, principal, review_id, None))
