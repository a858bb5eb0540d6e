import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.models.application import Application
from marketplace.models.business import Business
from marketplace.models.invitation import Invitation
from marketplace.models.job import Job
from marketplace.schemas.job import JobCreate, JobUpdate
from marketplace.services import authorization as authz
from marketplace.services.authorization import Principal
from marketplace.services.errors import (
    Conflict,
    Forbidden,
    InvalidInput,
    MarketplaceError,
    NotFound,
    SubscriptionRequired,
)
from marketplace.services.store import commit
from marketplace.utils.timestamps import normalize, utcnow

logger = logging.getLogger("marketplace.jobs")

# Forward moves a job owner (or admin) may make. Moving out of "pending" is an
# approval decision and stays with admins; "deleted" is only reachable through
# delete_job so the child cascade always runs.
OWNER_TRANSITIONS = {
    "open": {"closed", "completed"},
    "closed": {"completed", "open"},
}
ADMIN_ONLY_TRANSITIONS = {
    "pending": {"open", "rejected"},
}

APPLICATION_LIVE_STATUSES = ("pending", "accepted", "engaged")
INVITATION_LIVE_STATUSES = ("pending",)


@dataclass
class CascadeStep:
    step: str
    ok: bool
    affected: int = 0
    error: str | None = None


@dataclass
class DeletionResult:
    job: Job
    steps: list[CascadeStep] = field(default_factory=list)

    @property
    def cascade_complete(self) -> bool:
        return all(s.ok for s in self.steps)


def get_job(db: Session, job_id: str) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    if not job:
        raise NotFound("Job not found")
    return job


def is_expired(job: Job, now: str | None = None) -> bool:
    if not job.application_deadline:
        return False
    return job.application_deadline < (now or utcnow())


def subscription_is_active(business: Business, now: str | None = None) -> bool:
    if business.subscription_status == "deactivated":
        return False
    if business.subscription_status == "active":
        return True
    return bool(business.expires_at) and business.expires_at > (now or utcnow())


def business_names(db: Session, business_ids: set[str]) -> dict[str, str]:
    if not business_ids:
        return {}
    rows = db.query(Business.id, Business.company_name).filter(Business.id.in_(business_ids)).all()
    return {bid: name for bid, name in rows}


def _validate_budget(budget_min: float | None, budget_max: float | None) -> None:
    if budget_min is not None and budget_max is not None and budget_min > budget_max:
        raise InvalidInput("budget_min cannot exceed budget_max")


def _deadline(value: str | None) -> str | None:
    try:
        return normalize(value)
    except ValueError as exc:
        raise InvalidInput("application_deadline must be an ISO date or datetime") from exc


def create_job(db: Session, principal: Principal, req: JobCreate) -> Job:
    authz.enforce(authz.require_role(principal, "business", "admin"))

    if principal.is_admin:
        if not req.business_id:
            raise InvalidInput("business_id is required when an administrator posts a job")
        business_id = req.business_id
    else:
        if req.business_id and req.business_id != principal.business_id:
            raise Forbidden("Cannot post jobs on behalf of another business")
        business_id = principal.business_id

    business = db.query(Business).filter(Business.id == business_id).first()
    if not business:
        raise NotFound("Business not found")
    if not principal.is_admin and not subscription_is_active(business):
        raise SubscriptionRequired()

    _validate_budget(req.budget_min, req.budget_max)
    now = utcnow()
    job = Job(
        id=str(uuid.uuid4()),
        business_id=business_id,
        title=req.title,
        description=req.description,
        category=req.category,
        platforms=req.platforms,
        budget_type=req.budget_type,
        budget_min=req.budget_min,
        budget_max=req.budget_max,
        duration=req.duration,
        experience_level=req.experience_level,
        application_deadline=_deadline(req.application_deadline),
        # Business postings wait for moderation; admin postings go live immediately.
        status="open" if principal.is_admin else "pending",
        created_at=now,
        updated_at=now,
    )
    db.add(job)
    commit(db, context=f"creating job for business {business_id}")
    db.refresh(job)
    logger.info("Job %s created by %s (status=%s)", job.id, principal.role, job.status)
    return job


def list_jobs(
    db: Session,
    principal: Principal,
    *,
    business_id: str | None = None,
    include_all: bool = False,
    status: str | None = None,
    category: str | None = None,
    platform: str | None = None,
    budget_min: float | None = None,
    budget_max: float | None = None,
    limit: int = 50,
) -> list[Job]:
    query = db.query(Job)
    public_view = False

    if include_all:
        authz.enforce(authz.is_admin(principal))
        if status:
            query = query.filter(Job.status == status)
    elif business_id and authz.is_owner(principal, business_id=business_id).allowed:
        query = query.filter(Job.business_id == business_id)
        if status:
            query = query.filter(Job.status == status)
        else:
            query = query.filter(Job.status != "deleted")
    else:
        if status and status != "open" and not principal.is_admin:
            raise Forbidden("Only open jobs are publicly listed")
        query = query.filter(Job.status == (status or "open"))
        if business_id:
            query = query.filter(Job.business_id == business_id)
        public_view = not principal.is_admin

    if category:
        query = query.filter(Job.category == category)
    if platform:
        query = query.filter(
            text("EXISTS (SELECT 1 FROM json_each(jobs.platforms) WHERE json_each.value = :platform)")
            .bindparams(platform=platform)
        )
    if budget_min is not None:
        query = query.filter(Job.budget_max >= budget_min)
    if budget_max is not None:
        query = query.filter(Job.budget_min <= budget_max)

    jobs = query.order_by(Job.created_at.desc()).limit(limit).all()
    if public_view:
        now = utcnow()
        jobs = [j for j in jobs if not is_expired(j, now)]
    return jobs


def get_visible_job(db: Session, principal: Principal, job_id: str) -> Job:
    """Open jobs are public; anything else only to those with a stake in it."""
    job = get_job(db, job_id)
    if job.status == "open":
        return job
    if authz.is_owner(principal, business_id=job.business_id).allowed:
        return job
    if principal.is_creator:
        engaged = (
            db.query(Application.id)
            .filter(Application.job_id == job.id, Application.creator_id == principal.creator_id)
            .first()
            or db.query(Invitation.id)
            .filter(Invitation.job_id == job.id, Invitation.creator_id == principal.creator_id)
            .first()
        )
        if engaged:
            return job
    raise NotFound("Job not found")


def _check_transition(principal: Principal, current: str, target: str) -> None:
    if target == current:
        return
    if target == "deleted":
        raise InvalidInput("Use DELETE to remove a job")
    if target in ADMIN_ONLY_TRANSITIONS.get(current, set()):
        if not principal.is_admin:
            raise Forbidden("Only an administrator can approve or reject a job")
        return
    if target in OWNER_TRANSITIONS.get(current, set()):
        return
    raise Conflict(f"Cannot move job from {current} to {target}")


def update_job(db: Session, principal: Principal, req: JobUpdate) -> Job:
    job = db.query(Job).filter(Job.id == req.job_id).first()
    authz.enforce(authz.is_owner(
        principal,
        business_id=job.business_id if job else None,
        exists=job is not None,
    ))
    if job.status == "deleted":
        raise Conflict("Deleted jobs cannot be edited")

    updates = req.model_dump(exclude_unset=True, exclude={"job_id"})
    target = updates.pop("status", None)
    if "application_deadline" in updates:
        updates["application_deadline"] = _deadline(updates["application_deadline"])
    _validate_budget(
        updates.get("budget_min", job.budget_min),
        updates.get("budget_max", job.budget_max),
    )

    observed = job.status
    if target:
        _check_transition(principal, observed, target)
        updates["status"] = target
    updates["updated_at"] = utcnow()

    # Guard against a concurrent status change since the row was read.
    changed = (
        db.query(Job)
        .filter(Job.id == job.id, Job.status == observed)
        .update(updates, synchronize_session=False)
    )
    if changed == 0:
        db.rollback()
        raise Conflict("Job changed while it was being updated; reload and retry")
    commit(db, context=f"updating job {job.id}")
    db.refresh(job)
    logger.info("Job %s updated by %s (status=%s)", job.id, principal.role, job.status)
    return job


def _cascade(db: Session, step: str, model, job_id: str, live_statuses: tuple, values: dict) -> CascadeStep:
    try:
        affected = (
            db.query(model)
            .filter(model.job_id == job_id, model.status.in_(live_statuses))
            .update(values, synchronize_session=False)
        )
        db.commit()
        return CascadeStep(step=step, ok=True, affected=affected)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Cascade step %s failed for job %s: %s", step, job_id, exc)
        return CascadeStep(step=step, ok=False, error=str(exc))


def delete_job(db: Session, principal: Principal, job_id: str) -> DeletionResult:
    """Soft-delete a job after cancelling its live applications and invitations.

    The cascade is best effort: a failed child step is reported in the result
    but never blocks the job's own status change.
    """
    job = db.query(Job).filter(Job.id == job_id).first()
    authz.enforce(authz.is_owner(
        principal,
        business_id=job.business_id if job else None,
        exists=job is not None,
    ))
    if job.status == "deleted":
        raise Conflict("Job is already deleted")

    now = utcnow()
    result = DeletionResult(job=job)
    result.steps.append(_cascade(
        db, "cancel_applications", Application, job.id, APPLICATION_LIVE_STATUSES,
        {"status": "cancelled", "updated_at": now},
    ))
    result.steps.append(_cascade(
        db, "cancel_invitations", Invitation, job.id, INVITATION_LIVE_STATUSES,
        {"status": "cancelled", "responded_at": now},
    ))

    try:
        db.query(Job).filter(Job.id == job.id).update(
            {"status": "deleted", "updated_at": now}, synchronize_session=False
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to mark job %s deleted: %s", job.id, exc)
        raise MarketplaceError("Failed to delete job") from exc

    db.refresh(job)
    if not result.cascade_complete:
        logger.warning("Job %s deleted with incomplete cascade: %s", job.id,
                       [s.step for s in result.steps if not s.ok])
    else:
        logger.info("Job %s deleted by %s", job.id, principal.role)
    return result
