from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import require_principal
from marketplace.schemas.bookmark import (
    RemovedResponse,
    SavedJobListResponse,
    SavedJobResponse,
    SavedJobSummary,
    SaveJobRequest,
    SaveJobResponse,
)
from marketplace.services import bookmark_service
from marketplace.services.authorization import Principal
from marketplace.services.job_service import business_names

router = APIRouter(prefix="/saved-jobs", tags=["saved-jobs"])


@router.get("", response_model=SavedJobListResponse)
async def list_saved_jobs(
    creator_id: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    rows = bookmark_service.list_saved_jobs(db, principal, creator_id)
    names = business_names(db, {job.business_id for _, job in rows})
    return SavedJobListResponse(saved_jobs=[
        SavedJobResponse(
            id=saved.id,
            saved_at=saved.created_at,
            job=SavedJobSummary(
                id=job.id,
                title=job.title,
                description=job.description,
                category=job.category,
                budget_type=job.budget_type,
                budget_min=job.budget_min,
                budget_max=job.budget_max,
                status=job.status,
                created_at=job.created_at,
                business_name=names.get(job.business_id),
            ),
        )
        for saved, job in rows
    ])


@router.post("", response_model=SaveJobResponse)
async def save_job(
    req: SaveJobRequest,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    saved, already_saved = bookmark_service.save_job(db, principal, req.job_id, req.creator_id)
    return SaveJobResponse(id=saved.id, job_id=saved.job_id, saved_at=saved.created_at, already_saved=already_saved)


@router.delete("", response_model=RemovedResponse)
async def unsave_job(
    job_id: str,
    creator_id: str | None = None,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    removed = bookmark_service.unsave_job(db, principal, job_id, creator_id)
    return RemovedResponse(success=True, removed=removed)
