from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import require_principal
from marketplace.models.creator import Creator
from marketplace.models.invitation import Invitation
from marketplace.models.job import Job
from marketplace.schemas.invitation import (
    InvitationCreate,
    InvitationListResponse,
    InvitationRespond,
    InvitationRespondResponse,
    InvitationResponse,
)
from marketplace.services import engagement_service
from marketplace.services.authorization import Principal
from marketplace.services.engagement_service import InvitationOutcome
from marketplace.services.errors import InvalidInput
from marketplace.services.job_service import business_names

router = APIRouter(prefix="/job-invitations", tags=["invitations"])


def _to_responses(db: Session, invitations: list[Invitation]) -> list[InvitationResponse]:
    job_ids = {i.job_id for i in invitations}
    creator_ids = {i.creator_id for i in invitations}
    titles = dict(db.query(Job.id, Job.title).filter(Job.id.in_(job_ids)).all()) if job_ids else {}
    creators = dict(db.query(Creator.id, Creator.name).filter(Creator.id.in_(creator_ids)).all()) if creator_ids else {}
    names = business_names(db, {i.business_id for i in invitations})
    return [
        InvitationResponse(
            id=inv.id,
            job_id=inv.job_id,
            business_id=inv.business_id,
            creator_id=inv.creator_id,
            message=inv.message,
            status=inv.status,
            created_at=inv.created_at,
            responded_at=inv.responded_at,
            job_title=titles.get(inv.job_id),
            business_name=names.get(inv.business_id),
            creator_name=creators.get(inv.creator_id),
        )
        for inv in invitations
    ]


def outcome_response(db: Session, outcome: InvitationOutcome) -> InvitationRespondResponse:
    return InvitationRespondResponse(
        invitation=_to_responses(db, [outcome.invitation])[0],
        application_id=outcome.application_id,
        job_closed=outcome.job_closed,
        warnings=outcome.warnings,
    )


@router.post("", response_model=InvitationResponse, status_code=201)
async def create_invitation(
    req: InvitationCreate,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    invitation = engagement_service.create_invitation(db, principal, req)
    return _to_responses(db, [invitation])[0]


@router.get("", response_model=InvitationListResponse)
async def list_invitations(
    creator_id: str | None = None,
    business_id: str | None = None,
    job_id: str | None = None,
    status: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    invitations = engagement_service.list_invitations(
        db, principal, creator_id=creator_id, business_id=business_id, job_id=job_id, status=status,
    )
    return InvitationListResponse(invitations=_to_responses(db, invitations))


@router.put("", response_model=InvitationRespondResponse)
async def respond_to_invitation(
    req: InvitationRespond,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    outcome = engagement_service.respond_to_invitation(db, principal, req.invitation_id, req.status)
    return outcome_response(db, outcome)


@router.delete("", response_model=InvitationRespondResponse)
async def cancel_invitation(
    invitation_id: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    if not invitation_id:
        raise InvalidInput("invitation_id is required")
    outcome = engagement_service.cancel_invitation(db, principal, invitation_id)
    return outcome_response(db, outcome)
