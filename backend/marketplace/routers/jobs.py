from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import get_principal, require_principal
from marketplace.models.job import Job
from marketplace.schemas.job import (
    CascadeStepResponse,
    JobCreate,
    JobCreateResponse,
    JobDeleteResponse,
    JobListResponse,
    JobResponse,
    JobUpdate,
)
from marketplace.services import job_service
from marketplace.services.authorization import Principal
from marketplace.services.errors import InvalidInput
from marketplace.utils.timestamps import utcnow

router = APIRouter(prefix="/jobs", tags=["jobs"])


def _job_to_response(job: Job, names: dict[str, str], now: str) -> JobResponse:
    return JobResponse(
        id=job.id,
        business_id=job.business_id,
        business_name=names.get(job.business_id, ""),
        title=job.title,
        description=job.description,
        category=job.category,
        platforms=job.platforms or [],
        budget_type=job.budget_type,
        budget_min=job.budget_min,
        budget_max=job.budget_max,
        duration=job.duration,
        experience_level=job.experience_level,
        application_deadline=job.application_deadline,
        is_expired=job_service.is_expired(job, now),
        status=job.status,
        created_at=job.created_at,
        updated_at=job.updated_at,
    )


def _single(db: Session, job: Job) -> JobResponse:
    return _job_to_response(job, job_service.business_names(db, {job.business_id}), utcnow())


@router.get("", response_model=JobListResponse)
async def list_jobs(
    business_id: str | None = None,
    include_all: bool = False,
    status: str | None = None,
    category: str | None = None,
    platform: str | None = None,
    budget_min: float | None = None,
    budget_max: float | None = None,
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    jobs = job_service.list_jobs(
        db, principal,
        business_id=business_id,
        include_all=include_all,
        status=status,
        category=category,
        platform=platform,
        budget_min=budget_min,
        budget_max=budget_max,
        limit=limit,
    )
    names = job_service.business_names(db, {j.business_id for j in jobs})
    now = utcnow()
    return JobListResponse(jobs=[_job_to_response(j, names, now) for j in jobs], total=len(jobs))


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, principal: Principal = Depends(get_principal), db: Session = Depends(get_db)):
    return _single(db, job_service.get_visible_job(db, principal, job_id))


@router.post("", response_model=JobCreateResponse, status_code=201)
async def create_job(
    req: JobCreate,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    job = job_service.create_job(db, principal, req)
    return JobCreateResponse(job=_single(db, job), needs_approval=job.status == "pending")


@router.put("", response_model=JobResponse)
async def update_job(
    req: JobUpdate,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    return _single(db, job_service.update_job(db, principal, req))


@router.delete("", response_model=JobDeleteResponse)
async def delete_job(
    job_id: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    if not job_id:
        raise InvalidInput("job_id is required")
    result = job_service.delete_job(db, principal, job_id)
    return JobDeleteResponse(
        job_id=result.job.id,
        status=result.job.status,
        cascade_complete=result.cascade_complete,
        cascade=[
            CascadeStepResponse(step=s.step, ok=s.ok, affected=s.affected, error=s.error)
            for s in result.steps
        ],
    )
