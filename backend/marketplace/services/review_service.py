import logging
import uuid

from sqlalchemy import func
from sqlalchemy.orm import Session

from marketplace.models.creator import Creator
from marketplace.models.review import Review
from marketplace.schemas.review import ReviewCreate, ReviewUpdate
from marketplace.services import authorization as authz
from marketplace.services.authorization import Principal
from marketplace.services.errors import Conflict, Forbidden, InvalidInput, NotFound
from marketplace.services.store import commit
from marketplace.utils.timestamps import utcnow

logger = logging.getLogger("marketplace.reviews")


def get_review(db: Session, review_id: str) -> Review:
    review = db.query(Review).filter(Review.id == review_id).first()
    if not review:
        raise NotFound("Review not found")
    return review


def recompute_creator_rating(db: Session, creator_id: str) -> None:
    """Refresh a creator's average_rating and total_reviews from approved reviews."""
    avg, total = (
        db.query(func.avg(Review.rating), func.count(Review.id))
        .filter(Review.creator_id == creator_id, Review.status == "approved")
        .one()
    )
    db.query(Creator).filter(Creator.id == creator_id).update(
        {
            "average_rating": round(avg, 1) if total else None,
            "total_reviews": total,
        },
        synchronize_session=False,
    )
    commit(db, context=f"recomputing rating for creator {creator_id}")


def create_review(db: Session, principal: Principal, req: ReviewCreate) -> Review:
    authz.enforce(authz.require_role(principal, "business"))
    if req.business_id and req.business_id != principal.business_id:
        raise Forbidden("Cannot review on behalf of another business")
    if not db.query(Creator.id).filter(Creator.id == req.creator_id).first():
        raise NotFound("Creator not found")

    existing = (
        db.query(Review.id)
        .filter(Review.business_id == principal.business_id, Review.creator_id == req.creator_id)
        .first()
    )
    if existing:
        raise Conflict("You have already reviewed this creator")

    now = utcnow()
    review = Review(
        id=str(uuid.uuid4()),
        business_id=principal.business_id,
        creator_id=req.creator_id,
        rating=req.rating,
        comment=req.comment.strip() if req.comment else None,
        status="pending",
        created_at=now,
        updated_at=now,
    )
    db.add(review)
    commit(db, conflict_detail="You have already reviewed this creator",
           context=f"creating review business={principal.business_id} creator={req.creator_id}")
    db.refresh(review)
    logger.info("Review %s submitted for moderation", review.id)
    return review


def list_reviews(
    db: Session,
    principal: Principal,
    *,
    business_id: str | None = None,
    creator_id: str | None = None,
    status: str | None = None,
) -> list[Review]:
    query = db.query(Review)
    if business_id:
        query = query.filter(Review.business_id == business_id)
    if creator_id:
        query = query.filter(Review.creator_id == creator_id)

    # Moderation queues are visible to admins and to the parties the reviews are about.
    sees_all = principal.is_admin or (
        (business_id is not None and principal.is_business and principal.business_id == business_id)
        or (creator_id is not None and principal.is_creator and principal.creator_id == creator_id)
    )
    if sees_all:
        if status:
            query = query.filter(Review.status == status)
    else:
        if status and status != "approved":
            raise Forbidden("Only approved reviews are public")
        query = query.filter(Review.status == "approved")
    return query.order_by(Review.created_at.desc()).all()


def update_review(db: Session, principal: Principal, req: ReviewUpdate) -> Review:
    review = db.query(Review).filter(Review.id == req.review_id).first()
    authz.enforce(authz.is_owner(
        principal,
        business_id=review.business_id if review else None,
        exists=review is not None,
    ))
    updates = req.model_dump(exclude_unset=True, exclude={"review_id"})
    if "status" in updates and not principal.is_admin:
        raise Forbidden("Only an administrator can change a review's status")

    status_before = review.status
    if "rating" in updates and updates["rating"] is None:
        raise InvalidInput("rating cannot be cleared")
    if "rating" in updates:
        review.rating = updates["rating"]
    if "comment" in updates:
        review.comment = updates["comment"].strip() if updates["comment"] else None

    status = updates.get("status")
    if status:
        review.status = status
        review.rejection_reason = updates.get("rejection_reason") if status == "rejected" else None
    elif not principal.is_admin and ("rating" in updates or "comment" in updates):
        # Edited content goes back through moderation.
        review.status = "pending"
        review.rejection_reason = None
    review.updated_at = utcnow()
    commit(db, context=f"updating review {review.id}")
    db.refresh(review)

    if status_before == "approved" or review.status == "approved":
        recompute_creator_rating(db, review.creator_id)
    return review


def delete_review(db: Session, principal: Principal, review_id: str) -> None:
    review = db.query(Review).filter(Review.id == review_id).first()
    authz.enforce(authz.is_owner(
        principal,
        business_id=review.business_id if review else None,
        exists=review is not None,
    ))
    creator_id, was_approved = review.creator_id, review.status == "approved"
    db.delete(review)
    commit(db, context=f"deleting review {review_id}")
    if was_approved:
        recompute_creator_rating(db, creator_id)
    logger.info("Review %s deleted by %s", review_id, principal.role)


def moderate(db: Session, principal: Principal, review_id: str, status: str, reason: str | None = None) -> Review:
    authz.enforce(authz.is_admin(principal))
    review = get_review(db, review_id)
    review.status = status
    review.rejection_reason = reason if status == "rejected" else None
    review.updated_at = utcnow()
    commit(db, context=f"moderating review {review.id}")
    db.refresh(review)
    recompute_creator_rating(db, review.creator_id)
    logger.info("Review %s %s", review.id, status)
    return review


def set_reply(db: Session, principal: Principal, review_id: str, reply: str | None) -> Review:
    """Add, replace or (with ``None``) remove the reviewed creator's reply."""
    authz.enforce(authz.require_role(principal, "creator"))
    review = get_review(db, review_id)
    if principal.creator_id != review.creator_id:
        raise Forbidden("Only the reviewed creator can reply")

    if reply is not None:
        reply = reply.strip()
        if not reply:
            raise InvalidInput("Reply is required")
        review.reply = reply
        review.reply_date = utcnow()
    else:
        review.reply = None
        review.reply_date = None
    commit(db, context=f"replying to review {review.id}")
    db.refresh(review)
    return review
