from typing import Literal

from pydantic import BaseModel, Field

ApplicationStatus = Literal["pending", "accepted", "engaged", "completed", "rejected", "withdrawn", "cancelled"]


class ApplicationCreate(BaseModel):
    job_id: str
    creator_id: str | None = None
    cover_letter: str = Field(..., min_length=1)
    proposed_price: float = Field(..., gt=0)
    estimated_duration: str | None = None


class ApplicationTransition(BaseModel):
    application_id: str
    status: ApplicationStatus


class ApplicationJobSummary(BaseModel):
    id: str
    title: str
    status: str
    business_id: str
    business_name: str = ""


class ApplicationResponse(BaseModel):
    id: str
    job_id: str
    creator_id: str
    cover_letter: str
    proposed_price: float
    estimated_duration: str | None
    status: str
    created_at: str
    updated_at: str
    job: ApplicationJobSummary | None = None


class ApplicationListResponse(BaseModel):
    applications: list[ApplicationResponse]
