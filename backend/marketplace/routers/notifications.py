from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import require_principal
from marketplace.schemas.notification import MarkViewedRequest, MarkViewedResponse, NotificationCounts
from marketplace.services import notification_service
from marketplace.services.authorization import Principal

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=NotificationCounts)
async def badge_counts(principal: Principal = Depends(require_principal), db: Session = Depends(get_db)):
    return NotificationCounts(**notification_service.badge_counts(db, principal))


@router.post("/viewed", response_model=MarkViewedResponse)
async def mark_viewed(
    req: MarkViewedRequest,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    marker = notification_service.mark_viewed(db, principal, req.section)
    return MarkViewedResponse(section=marker.section, last_viewed_at=marker.last_viewed_at)
