"""Badge counts derived from timestamps and per-user last-viewed markers."""

from sqlalchemy import func
from sqlalchemy.orm import Session

from marketplace.models.application import Application
from marketplace.models.invitation import Invitation
from marketplace.models.job import Job
from marketplace.models.view_marker import ViewMarker
from marketplace.services import authorization as authz
from marketplace.services import messaging_service
from marketplace.services.authorization import Principal
from marketplace.services.store import commit
from marketplace.utils.timestamps import utcnow


def _last_viewed(db: Session, principal: Principal, section: str) -> str | None:
    marker = db.get(ViewMarker, (principal.user_id, section))
    return marker.last_viewed_at if marker else None


def badge_counts(db: Session, principal: Principal) -> dict:
    authz.enforce(authz.require_role(principal, "creator", "business"))
    counts = {"new_invitations": 0, "new_applications": 0}

    if principal.is_creator:
        query = db.query(func.count(Invitation.id)).filter(
            Invitation.creator_id == principal.creator_id,
            Invitation.status == "pending",
        )
        since = _last_viewed(db, principal, "invitations")
        if since:
            query = query.filter(Invitation.created_at > since)
        counts["new_invitations"] = query.scalar() or 0
    else:
        job_ids = db.query(Job.id).filter(Job.business_id == principal.business_id)
        query = db.query(func.count(Application.id)).filter(
            Application.job_id.in_(job_ids),
            Application.status == "pending",
        )
        since = _last_viewed(db, principal, "applications")
        if since:
            query = query.filter(Application.created_at > since)
        counts["new_applications"] = query.scalar() or 0

    counts["unread_messages"] = messaging_service.unread_count(db, principal)
    counts["has_new"] = any(counts.values())
    return counts


def mark_viewed(db: Session, principal: Principal, section: str) -> ViewMarker:
    authz.enforce(authz.require_role(principal, "creator", "business"))
    marker = db.merge(ViewMarker(user_id=principal.user_id, section=section, last_viewed_at=utcnow()))
    commit(db, context=f"marking {section} viewed for user {principal.user_id}")
    return marker
