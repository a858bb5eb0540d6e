"""Engagement state machine: applications, invitations and how they converge.

Every guard here is checked twice. The pre-insert reads give a friendly error
message; the unique indexes and insert triggers in the schema are what actually
keep two concurrent requests from producing duplicate or overlapping rows, and
an IntegrityError on commit is reported as the same Conflict. Status
transitions are applied as conditional updates against the statuses they are
allowed to leave, so a transition decided on a stale read cannot land.
"""

import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.models.application import Application
from marketplace.models.creator import Creator
from marketplace.models.invitation import Invitation
from marketplace.models.job import Job
from marketplace.schemas.application import ApplicationCreate
from marketplace.schemas.invitation import InvitationCreate
from marketplace.services import authorization as authz
from marketplace.services.authorization import Principal
from marketplace.services.errors import Conflict, Forbidden, InvalidInput, NotFound
from marketplace.services.job_service import get_job, is_expired
from marketplace.services.store import commit
from marketplace.utils.timestamps import utcnow

logger = logging.getLogger("marketplace.engagement")

ACTIVE_APPLICATION_STATUSES = ("accepted", "engaged")
# Statuses that block a new application or invitation for the same pair.
BLOCKING_APPLICATION_STATUSES = ("pending", "accepted", "engaged", "completed", "rejected", "cancelled")
# Invitations that block a regular application; an accepted one is linked by the
# engagement path instead.
OPEN_INVITATION_STATUSES = ("pending", "accepted")

# target status -> (statuses it may be entered from, who may request it)
APPLICATION_TRANSITIONS = {
    "accepted": (("pending",), "business"),
    "rejected": (("pending", "accepted"), "business"),
    "withdrawn": (("pending",), "applicant"),
    "completed": (("accepted", "engaged"), "business"),
}

ENGAGED_COVER_LETTER = "Accepted an invitation for this job"


@dataclass
class InvitationOutcome:
    invitation: Invitation
    application_id: str | None = None
    job_closed: bool | None = None
    warnings: list[str] = field(default_factory=list)


def get_application(db: Session, application_id: str) -> Application:
    application = db.query(Application).filter(Application.id == application_id).first()
    if not application:
        raise NotFound("Application not found")
    return application


def get_invitation(db: Session, invitation_id: str) -> Invitation:
    invitation = db.query(Invitation).filter(Invitation.id == invitation_id).first()
    if not invitation:
        raise NotFound("Invitation not found")
    return invitation


def _blocking_application(db: Session, job_id: str, creator_id: str) -> Application | None:
    return (
        db.query(Application)
        .filter(
            Application.job_id == job_id,
            Application.creator_id == creator_id,
            Application.status.in_(BLOCKING_APPLICATION_STATUSES),
        )
        .first()
    )


def _invitation_for(db: Session, job_id: str, creator_id: str) -> Invitation | None:
    return (
        db.query(Invitation)
        .filter(Invitation.job_id == job_id, Invitation.creator_id == creator_id)
        .first()
    )


def _require_creator(db: Session, creator_id: str) -> Creator:
    creator = db.query(Creator).filter(Creator.id == creator_id).first()
    if not creator:
        raise NotFound("Creator not found")
    return creator


# ---------------------------------------------------------------------------
# Applications
# ---------------------------------------------------------------------------

def create_application(db: Session, principal: Principal, req: ApplicationCreate) -> Application:
    authz.enforce(authz.require_role(principal, "creator", "admin"))
    if principal.is_admin:
        if not req.creator_id:
            raise InvalidInput("creator_id is required when an administrator submits an application")
        creator_id = req.creator_id
    else:
        if req.creator_id and req.creator_id != principal.creator_id:
            raise Forbidden("Cannot apply on behalf of another creator")
        creator_id = principal.creator_id
    _require_creator(db, creator_id)

    job = get_job(db, req.job_id)
    if job.status != "open":
        raise Conflict("This job is no longer open for applications")
    if is_expired(job):
        raise Conflict("The application deadline for this job has passed")
    if _blocking_application(db, job.id, creator_id):
        raise Conflict("You have already applied to this job")
    invitation = _invitation_for(db, job.id, creator_id)
    if invitation is not None and invitation.status in OPEN_INVITATION_STATUSES:
        raise Conflict("You have already been invited to this job")

    now = utcnow()
    application = Application(
        id=str(uuid.uuid4()),
        job_id=job.id,
        creator_id=creator_id,
        cover_letter=req.cover_letter.strip(),
        proposed_price=req.proposed_price,
        estimated_duration=req.estimated_duration,
        status="pending",
        created_at=now,
        updated_at=now,
    )
    db.add(application)
    commit(db, conflict_detail="You have already applied to this job",
           context=f"creating application job={job.id} creator={creator_id}")
    db.refresh(application)
    logger.info("Application %s created for job %s by creator %s", application.id, job.id, creator_id)
    return application


def list_applications(
    db: Session,
    principal: Principal,
    *,
    job_id: str | None = None,
    creator_id: str | None = None,
    business_id: str | None = None,
    status: str | None = None,
) -> list[Application]:
    authz.enforce(authz.require_role(principal, "creator", "business", "admin"))
    query = db.query(Application)

    if not principal.is_admin:
        if not (job_id or creator_id or business_id):
            raise InvalidInput("job_id, creator_id or business_id is required")
        if creator_id:
            authz.enforce(authz.is_owner(principal, creator_id=creator_id))
        if business_id:
            authz.enforce(authz.is_owner(principal, business_id=business_id))
        if job_id and not (creator_id or business_id):
            job = get_job(db, job_id)
            if principal.is_creator:
                # A creator only ever sees their own application to someone else's job.
                creator_id = principal.creator_id
            else:
                authz.enforce(authz.is_owner(principal, business_id=job.business_id))

    if job_id:
        query = query.filter(Application.job_id == job_id)
    if creator_id:
        query = query.filter(Application.creator_id == creator_id)
    if business_id:
        job_ids = db.query(Job.id).filter(Job.business_id == business_id)
        query = query.filter(Application.job_id.in_(job_ids))
    if status:
        query = query.filter(Application.status == status)

    return query.order_by(Application.created_at.desc()).all()


def transition_application(db: Session, principal: Principal, application_id: str, target: str) -> Application:
    authz.enforce(authz.require_role(principal, "creator", "business", "admin"))
    if target not in APPLICATION_TRANSITIONS:
        raise InvalidInput(f"Applications cannot be set to {target}")

    application = get_application(db, application_id)
    job = db.query(Job).filter(Job.id == application.job_id).first()
    sources, actor = APPLICATION_TRANSITIONS[target]

    if actor == "applicant":
        allowed = principal.is_admin or (
            principal.is_creator and principal.creator_id == application.creator_id
        )
        if not allowed:
            raise Forbidden("Only the applicant can withdraw an application")
    else:
        # Engaging a creator is the job owner's decision; owning the application
        # does not grant it.
        if job is None:
            allowed = principal.is_admin
        else:
            allowed = authz.is_owner(principal, business_id=job.business_id).allowed
        if not allowed:
            if principal.is_creator and principal.creator_id == application.creator_id:
                raise Forbidden("Creators can only withdraw their own applications")
            raise Forbidden("Only the job owner can change this application")

    changed = (
        db.query(Application)
        .filter(Application.id == application.id, Application.status.in_(sources))
        .update({"status": target, "updated_at": utcnow()}, synchronize_session=False)
    )
    if changed == 0:
        db.rollback()
        db.refresh(application)
        raise Conflict(f"Cannot move application from {application.status} to {target}")
    commit(db, context=f"transitioning application {application.id} to {target}")
    db.refresh(application)
    logger.info("Application %s -> %s by %s", application.id, target, principal.role)
    return application


def withdraw_application(db: Session, principal: Principal, application_id: str) -> Application:
    return transition_application(db, principal, application_id, "withdrawn")


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------

def create_invitation(db: Session, principal: Principal, req: InvitationCreate) -> Invitation:
    authz.enforce(authz.require_role(principal, "business", "admin"))
    job = get_job(db, req.job_id)

    if principal.is_admin:
        if req.business_id and req.business_id != job.business_id:
            raise InvalidInput("business_id does not own this job")
        business_id = job.business_id
    else:
        if req.business_id and req.business_id != principal.business_id:
            raise Forbidden("Cannot send invitations on behalf of another business")
        if job.business_id != principal.business_id:
            raise Forbidden("You can only invite creators to your own jobs")
        business_id = principal.business_id

    _require_creator(db, req.creator_id)
    if job.status != "open":
        raise Conflict("Invitations can only be sent for open jobs")
    if _invitation_for(db, job.id, req.creator_id):
        raise Conflict("This creator has already been invited to this job")
    if _blocking_application(db, job.id, req.creator_id):
        raise Conflict("This creator has already applied for this job")

    invitation = Invitation(
        id=str(uuid.uuid4()),
        job_id=job.id,
        business_id=business_id,
        creator_id=req.creator_id,
        message=req.message,
        status="pending",
        created_at=utcnow(),
    )
    db.add(invitation)
    commit(db, conflict_detail="This creator has already been invited to this job",
           context=f"creating invitation job={job.id} creator={req.creator_id}")
    db.refresh(invitation)
    logger.info("Invitation %s sent for job %s to creator %s", invitation.id, job.id, req.creator_id)
    return invitation


def list_invitations(
    db: Session,
    principal: Principal,
    *,
    creator_id: str | None = None,
    business_id: str | None = None,
    job_id: str | None = None,
    status: str | None = None,
) -> list[Invitation]:
    authz.enforce(authz.require_role(principal, "creator", "business", "admin"))
    if not principal.is_admin:
        if not creator_id and not business_id:
            raise InvalidInput("creator_id or business_id is required")
        if creator_id:
            authz.enforce(authz.is_owner(principal, creator_id=creator_id))
        if business_id:
            authz.enforce(authz.is_owner(principal, business_id=business_id))

    query = db.query(Invitation)
    if creator_id:
        query = query.filter(Invitation.creator_id == creator_id)
    if business_id:
        query = query.filter(Invitation.business_id == business_id)
    if job_id:
        query = query.filter(Invitation.job_id == job_id)
    if status:
        query = query.filter(Invitation.status == status)
    return query.order_by(Invitation.created_at.desc()).all()


def _set_invitation_status(db: Session, invitation: Invitation, target: str) -> None:
    changed = (
        db.query(Invitation)
        .filter(Invitation.id == invitation.id, Invitation.status == "pending")
        .update({"status": target, "responded_at": utcnow()}, synchronize_session=False)
    )
    if changed == 0:
        db.rollback()
        db.refresh(invitation)
        raise Conflict(f"Invitation is already {invitation.status}")
    commit(db, context=f"setting invitation {invitation.id} to {target}")
    db.refresh(invitation)


def _link_engagement(db: Session, invitation: Invitation) -> InvitationOutcome:
    """Create the engaged application and close the job for an accepted invitation.

    Runs after the invitation itself is committed. Each step commits on its own
    and a failure is reported as a warning; the gap it leaves is visible to
    find_unlinked_invitations and can be fixed with repair_invitation.
    """
    outcome = InvitationOutcome(invitation=invitation)
    job = db.query(Job).filter(Job.id == invitation.job_id).first()
    if job is None:
        logger.error("Accepted invitation %s points at missing job %s", invitation.id, invitation.job_id)
        outcome.warnings.append("job_missing")
        outcome.job_closed = False
        return outcome

    existing = (
        db.query(Application)
        .filter(
            Application.job_id == invitation.job_id,
            Application.creator_id == invitation.creator_id,
            Application.status.in_(("pending", "accepted", "engaged")),
        )
        .first()
    )
    if existing is not None and existing.status == "engaged":
        outcome.application_id = existing.id
    elif existing is not None:
        logger.error("Invitation %s accepted while application %s is %s",
                     invitation.id, existing.id, existing.status)
        outcome.warnings.append("conflicting_application")
    else:
        now = utcnow()
        application = Application(
            id=str(uuid.uuid4()),
            job_id=invitation.job_id,
            creator_id=invitation.creator_id,
            cover_letter=ENGAGED_COVER_LETTER,
            proposed_price=job.budget_min or job.budget_max or 0,
            status="engaged",
            created_at=now,
            updated_at=now,
        )
        try:
            db.add(application)
            db.commit()
            outcome.application_id = application.id
        except SQLAlchemyError as exc:
            db.rollback()
            logger.error("Could not create engaged application for invitation %s: %s", invitation.id, exc)
            outcome.warnings.append("application_not_created")

    try:
        db.query(Job).filter(Job.id == job.id, Job.status.in_(("pending", "open"))).update(
            {"status": "closed", "updated_at": utcnow()}, synchronize_session=False
        )
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Could not close job %s after invitation %s: %s", job.id, invitation.id, exc)
    db.refresh(job)
    outcome.job_closed = job.status in ("closed", "completed")
    if not outcome.job_closed:
        outcome.warnings.append("job_not_closed")
    return outcome


def respond_to_invitation(db: Session, principal: Principal, invitation_id: str, target: str) -> InvitationOutcome:
    if target == "cancelled":
        return cancel_invitation(db, principal, invitation_id)
    if target not in ("accepted", "rejected"):
        raise InvalidInput("status must be accepted or rejected")

    authz.enforce(authz.require_role(principal, "creator", "business", "admin"))
    invitation = get_invitation(db, invitation_id)
    authz.enforce(authz.is_owner(principal, creator_id=invitation.creator_id))

    _set_invitation_status(db, invitation, target)
    logger.info("Invitation %s %s by %s", invitation.id, target, principal.role)
    if target != "accepted":
        return InvitationOutcome(invitation=invitation)

    outcome = _link_engagement(db, invitation)
    if outcome.warnings:
        logger.warning("Invitation %s accepted with warnings %s", invitation.id, outcome.warnings)
    return outcome


def cancel_invitation(db: Session, principal: Principal, invitation_id: str) -> InvitationOutcome:
    authz.enforce(authz.require_role(principal, "creator", "business", "admin"))
    invitation = get_invitation(db, invitation_id)
    authz.enforce(authz.is_owner(principal, business_id=invitation.business_id))
    _set_invitation_status(db, invitation, "cancelled")
    logger.info("Invitation %s cancelled by %s", invitation.id, principal.role)
    return InvitationOutcome(invitation=invitation)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

def find_unlinked_invitations(db: Session, principal: Principal) -> list[dict]:
    """Accepted invitations whose engagement did not fully land."""
    authz.enforce(authz.is_admin(principal))
    rows = (
        db.query(Invitation, Application, Job)
        .outerjoin(
            Application,
            and_(
                Application.job_id == Invitation.job_id,
                Application.creator_id == Invitation.creator_id,
                Application.status.in_(("engaged", "completed", "cancelled")),
            ),
        )
        .outerjoin(Job, Job.id == Invitation.job_id)
        .filter(Invitation.status == "accepted")
        .order_by(Invitation.responded_at.asc())
        .all()
    )

    items = []
    for invitation, application, job in rows:
        issues = []
        if job is None:
            issues.append("job_missing")
        else:
            if application is None and job.status != "deleted":
                issues.append("missing_application")
            if job.status in ("pending", "open"):
                issues.append("job_not_closed")
        if issues:
            items.append({
                "invitation_id": invitation.id,
                "job_id": invitation.job_id,
                "creator_id": invitation.creator_id,
                "job_status": job.status if job else None,
                "application_id": application.id if application else None,
                "application_status": application.status if application else None,
                "issues": issues,
            })
    return items


def repair_invitation(db: Session, principal: Principal, invitation_id: str) -> InvitationOutcome:
    authz.enforce(authz.is_admin(principal))
    invitation = get_invitation(db, invitation_id)
    if invitation.status != "accepted":
        raise Conflict("Only accepted invitations can be repaired")
    outcome = _link_engagement(db, invitation)
    logger.info("Repaired invitation %s: application=%s job_closed=%s warnings=%s",
                invitation.id, outcome.application_id, outcome.job_closed, outcome.warnings)
    return outcome
