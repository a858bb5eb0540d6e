from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import require_principal
from marketplace.models.application import Application
from marketplace.models.job import Job
from marketplace.schemas.application import (
    ApplicationCreate,
    ApplicationJobSummary,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationTransition,
)
from marketplace.services import engagement_service
from marketplace.services.authorization import Principal
from marketplace.services.errors import InvalidInput
from marketplace.services.job_service import business_names

router = APIRouter(prefix="/job-applications", tags=["applications"])


def _to_responses(db: Session, applications: list[Application]) -> list[ApplicationResponse]:
    job_ids = {a.job_id for a in applications}
    jobs = {j.id: j for j in db.query(Job).filter(Job.id.in_(job_ids)).all()} if job_ids else {}
    names = business_names(db, {j.business_id for j in jobs.values()})

    responses = []
    for app in applications:
        job = jobs.get(app.job_id)
        summary = None
        if job is not None:
            summary = ApplicationJobSummary(
                id=job.id,
                title=job.title,
                status=job.status,
                business_id=job.business_id,
                business_name=names.get(job.business_id, ""),
            )
        responses.append(ApplicationResponse(
            id=app.id,
            job_id=app.job_id,
            creator_id=app.creator_id,
            cover_letter=app.cover_letter,
            proposed_price=app.proposed_price,
            estimated_duration=app.estimated_duration,
            status=app.status,
            created_at=app.created_at,
            updated_at=app.updated_at,
            job=summary,
        ))
    return responses


@router.post("", response_model=ApplicationResponse, status_code=201)
async def create_application(
    req: ApplicationCreate,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    application = engagement_service.create_application(db, principal, req)
    return _to_responses(db, [application])[0]


@router.get("", response_model=ApplicationListResponse)
async def list_applications(
    job_id: str | None = None,
    creator_id: str | None = None,
    business_id: str | None = None,
    status: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    applications = engagement_service.list_applications(
        db, principal, job_id=job_id, creator_id=creator_id, business_id=business_id, status=status,
    )
    return ApplicationListResponse(applications=_to_responses(db, applications))


@router.put("", response_model=ApplicationResponse)
async def transition_application(
    req: ApplicationTransition,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    application = engagement_service.transition_application(db, principal, req.application_id, req.status)
    return _to_responses(db, [application])[0]


@router.delete("", response_model=ApplicationResponse)
async def withdraw_application(
    application_id: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    if not application_id:
        raise InvalidInput("application_id is required")
    application = engagement_service.withdraw_application(db, principal, application_id)
    return _to_responses(db, [application])[0]
