from typing import Literal

from pydantic import BaseModel, Field

BudgetType = Literal["fixed", "hourly"]
JobStatus = Literal["pending", "open", "closed", "completed", "rejected", "deleted"]


class JobCreate(BaseModel):
    business_id: str | None = None
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    platforms: list[str] = []
    budget_type: BudgetType = "fixed"
    budget_min: float | None = Field(None, ge=0)
    budget_max: float | None = Field(None, ge=0)
    duration: str | None = None
    experience_level: str | None = None
    application_deadline: str | None = None


class JobUpdate(BaseModel):
    job_id: str
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1)
    category: str | None = Field(None, min_length=1)
    platforms: list[str] | None = None
    budget_type: BudgetType | None = None
    budget_min: float | None = Field(None, ge=0)
    budget_max: float | None = Field(None, ge=0)
    duration: str | None = None
    experience_level: str | None = None
    application_deadline: str | None = None
    status: JobStatus | None = None


class JobResponse(BaseModel):
    id: str
    business_id: str
    business_name: str = ""
    title: str
    description: str
    category: str
    platforms: list[str]
    budget_type: str
    budget_min: float | None
    budget_max: float | None
    duration: str | None
    experience_level: str | None
    application_deadline: str | None
    is_expired: bool = False
    status: str
    created_at: str
    updated_at: str


class JobCreateResponse(BaseModel):
    job: JobResponse
    needs_approval: bool


class JobListResponse(BaseModel):
    jobs: list[JobResponse]
    total: int


class CascadeStepResponse(BaseModel):
    step: str
    ok: bool
    affected: int = 0
    error: str | None = None


class JobDeleteResponse(BaseModel):
    job_id: str
    status: str
    cascade_complete: bool
    cascade: list[CascadeStepResponse]
