"""Saved jobs for creators and favorite creators for businesses.

Both are private bookmarks: only their owner (or an administrator acting for
them) reads or changes them, and each pair is stored at most once.
"""

import logging
import uuid

from sqlalchemy.orm import Session

from marketplace.models.bookmark import SavedCreator, SavedJob
from marketplace.models.creator import Creator
from marketplace.models.job import Job
from marketplace.services import authorization as authz
from marketplace.services.authorization import Principal
from marketplace.services.errors import Conflict, Forbidden, InvalidInput, NotFound
from marketplace.services.job_service import get_visible_job
from marketplace.services.store import commit
from marketplace.utils.timestamps import utcnow

logger = logging.getLogger("marketplace.bookmarks")


def _owner_id(principal: Principal, role: str, requested: str | None) -> str:
    authz.enforce(authz.require_role(principal, role, "admin"))
    if principal.is_admin:
        if not requested:
            raise InvalidInput(f"{role}_id is required when an administrator manages bookmarks")
        return requested
    own = principal.party_id(role)
    if requested and requested != own:
        raise Forbidden("You can only manage your own bookmarks")
    return own


# ---------------------------------------------------------------------------
# Saved jobs
# ---------------------------------------------------------------------------

def save_job(db: Session, principal: Principal, job_id: str, creator_id: str | None = None) -> tuple[SavedJob, bool]:
    """Bookmark a job. Saving twice is not an error; returns (row, already_saved)."""
    creator_id = _owner_id(principal, "creator", creator_id)
    job = get_visible_job(db, principal, job_id)

    existing = db.query(SavedJob).filter(SavedJob.creator_id == creator_id, SavedJob.job_id == job.id).first()
    if existing:
        return existing, True

    saved = SavedJob(id=str(uuid.uuid4()), creator_id=creator_id, job_id=job.id, created_at=utcnow())
    db.add(saved)
    try:
        commit(db, context=f"saving job {job.id} for creator {creator_id}")
    except Conflict:
        existing = db.query(SavedJob).filter(SavedJob.creator_id == creator_id, SavedJob.job_id == job.id).first()
        if existing is None:
            raise
        return existing, True
    db.refresh(saved)
    logger.info("Creator %s saved job %s", creator_id, job.id)
    return saved, False


def list_saved_jobs(db: Session, principal: Principal, creator_id: str | None = None) -> list[tuple[SavedJob, Job]]:
    creator_id = _owner_id(principal, "creator", creator_id)
    return (
        db.query(SavedJob, Job)
        .join(Job, Job.id == SavedJob.job_id)
        .filter(SavedJob.creator_id == creator_id, Job.status != "deleted")
        .order_by(SavedJob.created_at.desc())
        .all()
    )


def unsave_job(db: Session, principal: Principal, job_id: str, creator_id: str | None = None) -> bool:
    creator_id = _owner_id(principal, "creator", creator_id)
    removed = (
        db.query(SavedJob)
        .filter(SavedJob.creator_id == creator_id, SavedJob.job_id == job_id)
        .delete(synchronize_session=False)
    )
    commit(db, context=f"unsaving job {job_id} for creator {creator_id}")
    return removed > 0


# ---------------------------------------------------------------------------
# Favorite creators
# ---------------------------------------------------------------------------

def add_favorite(db: Session, principal: Principal, creator_id: str, business_id: str | None = None) -> SavedCreator:
    business_id = _owner_id(principal, "business", business_id)
    creator = db.query(Creator).filter(Creator.id == creator_id).first()
    if creator is None or creator.status == "deactivated":
        raise NotFound("Creator not found")

    if db.query(SavedCreator.id).filter(
        SavedCreator.business_id == business_id, SavedCreator.creator_id == creator_id
    ).first():
        raise Conflict("Creator is already in favorites")

    favorite = SavedCreator(id=str(uuid.uuid4()), business_id=business_id, creator_id=creator_id, saved_at=utcnow())
    db.add(favorite)
    commit(db, conflict_detail="Creator is already in favorites",
           context=f"adding favorite creator={creator_id} business={business_id}")
    db.refresh(favorite)
    logger.info("Business %s added creator %s to favorites", business_id, creator_id)
    return favorite


def list_favorites(db: Session, principal: Principal, business_id: str | None = None) -> list[tuple[SavedCreator, Creator]]:
    business_id = _owner_id(principal, "business", business_id)
    return (
        db.query(SavedCreator, Creator)
        .join(Creator, Creator.id == SavedCreator.creator_id)
        .filter(SavedCreator.business_id == business_id, Creator.status != "deactivated")
        .order_by(SavedCreator.saved_at.desc())
        .all()
    )


def remove_favorite(db: Session, principal: Principal, creator_id: str, business_id: str | None = None) -> bool:
    business_id = _owner_id(principal, "business", business_id)
    removed = (
        db.query(SavedCreator)
        .filter(SavedCreator.business_id == business_id, SavedCreator.creator_id == creator_id)
        .delete(synchronize_session=False)
    )
    commit(db, context=f"removing favorite creator={creator_id} business={business_id}")
    return removed > 0
