from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import require_principal
from marketplace.routers.invitations import outcome_response
from marketplace.schemas.invitation import (
    InvitationRespondResponse,
    ReconciliationItem,
    ReconciliationResponse,
)
from marketplace.services import engagement_service
from marketplace.services.authorization import Principal

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/reconciliation", response_model=ReconciliationResponse)
async def list_unlinked_invitations(
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    items = engagement_service.find_unlinked_invitations(db, principal)
    return ReconciliationResponse(items=[ReconciliationItem(**i) for i in items], total=len(items))


@router.post("/reconciliation/{invitation_id}/repair", response_model=InvitationRespondResponse)
async def repair_invitation(
    invitation_id: str,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    outcome = engagement_service.repair_invitation(db, principal, invitation_id)
    return outcome_response(db, outcome)
