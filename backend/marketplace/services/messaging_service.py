"""Messaging gate for application conversations.

Reading is open to both participants (and admins) for as long as the
application exists. Writing additionally requires the application to be in an
active state and the declared sender to be the signed-in party.
"""

import logging
import uuid

from sqlalchemy import func
from sqlalchemy.orm import Session

from marketplace.models.application import Application
from marketplace.models.job import Job
from marketplace.models.message import Message
from marketplace.services import authorization as authz
from marketplace.services.authorization import Decision, Principal
from marketplace.services.errors import (
    ConversationNotActive,
    Forbidden,
    InvalidInput,
    NotFound,
)
from marketplace.services.store import commit
from marketplace.utils.timestamps import utcnow

logger = logging.getLogger("marketplace.messaging")

ACTIVE_STATUSES = ("accepted", "engaged")
COUNTERPART = {"creator": "business", "business": "creator"}


def _conversation(db: Session, application_id: str) -> tuple[Application, Job | None]:
    application = db.query(Application).filter(Application.id == application_id).first()
    if not application:
        raise NotFound("Application not found")
    job = db.query(Job).filter(Job.id == application.job_id).first()
    return application, job


def _participant_decision(principal: Principal, application: Application, job: Job | None, *, allow_admin: bool) -> Decision:
    business_id = job.business_id if job else None
    return authz.is_participant(principal, application.creator_id, business_id, allow_admin=allow_admin)


def _own_side(principal: Principal, application: Application, job: Job | None) -> str:
    """Which side of this conversation the principal is on."""
    if principal.is_creator and principal.creator_id == application.creator_id:
        return "creator"
    if principal.is_business and job is not None and principal.business_id == job.business_id:
        return "business"
    raise Forbidden("Only participants of this conversation have access")


def can_read(db: Session, principal: Principal, application_id: str) -> bool:
    application, job = _conversation(db, application_id)
    return _participant_decision(principal, application, job, allow_admin=True).allowed


def can_write(db: Session, principal: Principal, application_id: str) -> bool:
    application, job = _conversation(db, application_id)
    if not _participant_decision(principal, application, job, allow_admin=False).allowed:
        return False
    return application.status in ACTIVE_STATUSES


def list_messages(db: Session, principal: Principal, application_id: str) -> list[Message]:
    application, job = _conversation(db, application_id)
    authz.enforce(_participant_decision(principal, application, job, allow_admin=True))
    return (
        db.query(Message)
        .filter(Message.application_id == application.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )


def send(
    db: Session,
    principal: Principal,
    application_id: str,
    sender_type: str,
    sender_id: str,
    body: str,
) -> Message:
    if sender_type not in COUNTERPART:
        raise InvalidInput("sender_type must be business or creator")
    text = (body or "").strip()
    if not text:
        raise InvalidInput("message cannot be empty")

    application, job = _conversation(db, application_id)
    authz.enforce(_participant_decision(principal, application, job, allow_admin=False))
    if principal.party_id(sender_type) != sender_id or _own_side(principal, application, job) != sender_type:
        raise Forbidden("Sender does not match the signed-in account")

    # Checked after authorization so outsiders learn nothing about the application's state.
    if application.status not in ACTIVE_STATUSES:
        raise ConversationNotActive()

    message = Message(
        id=str(uuid.uuid4()),
        application_id=application.id,
        sender_type=sender_type,
        sender_id=sender_id,
        message=text,
        created_at=utcnow(),
    )
    db.add(message)
    commit(db, context=f"sending message on application {application.id}")
    db.refresh(message)
    logger.debug("Message %s sent on application %s by %s", message.id, application.id, sender_type)
    return message


def mark_read(
    db: Session,
    principal: Principal,
    application_id: str,
    recipient_type: str,
    recipient_id: str,
) -> int:
    """Stamp every unread counterpart message. Returns how many were stamped."""
    if recipient_type not in COUNTERPART:
        raise InvalidInput("recipient_type must be business or creator")
    application, job = _conversation(db, application_id)
    authz.enforce(_participant_decision(principal, application, job, allow_admin=False))
    if principal.party_id(recipient_type) != recipient_id or _own_side(principal, application, job) != recipient_type:
        raise Forbidden("Recipient does not match the signed-in account")

    marked = (
        db.query(Message)
        .filter(
            Message.application_id == application.id,
            Message.sender_type == COUNTERPART[recipient_type],
            Message.read_at.is_(None),
        )
        .update({"read_at": utcnow()}, synchronize_session=False)
    )
    commit(db, context=f"marking messages read on application {application.id}")
    return marked


def active_application_ids(db: Session, principal: Principal):
    """Subquery of application ids where the principal is a participant of a live conversation."""
    query = db.query(Application.id).filter(Application.status.in_(ACTIVE_STATUSES))
    if principal.is_creator:
        return query.filter(Application.creator_id == principal.creator_id)
    job_ids = db.query(Job.id).filter(Job.business_id == principal.business_id)
    return query.filter(Application.job_id.in_(job_ids))


def unread_count(db: Session, principal: Principal, application_id: str | None = None) -> int:
    authz.enforce(authz.require_role(principal, "creator", "business"))
    side = "creator" if principal.is_creator else "business"
    query = db.query(func.count(Message.id)).filter(
        Message.sender_type == COUNTERPART[side],
        Message.read_at.is_(None),
    )

    if application_id:
        application, job = _conversation(db, application_id)
        authz.enforce(_participant_decision(principal, application, job, allow_admin=False))
        query = query.filter(Message.application_id == application.id)
    else:
        query = query.filter(Message.application_id.in_(active_application_ids(db, principal)))
    return query.scalar() or 0
