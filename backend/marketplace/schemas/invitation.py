from typing import Literal

from pydantic import BaseModel, Field


class InvitationCreate(BaseModel):
    job_id: str
    business_id: str | None = None
    creator_id: str
    message: str | None = Field(None, max_length=2000)


class InvitationRespond(BaseModel):
    invitation_id: str
    status: Literal["accepted", "rejected", "cancelled"]


class InvitationResponse(BaseModel):
    id: str
    job_id: str
    business_id: str
    creator_id: str
    message: str | None
    status: str
    created_at: str
    responded_at: str | None
    job_title: str | None = None
    business_name: str | None = None
    creator_name: str | None = None


class InvitationRespondResponse(BaseModel):
    invitation: InvitationResponse
    application_id: str | None = None
    job_closed: bool | None = None
    warnings: list[str] = []


class InvitationListResponse(BaseModel):
    invitations: list[InvitationResponse]


class ReconciliationItem(BaseModel):
    invitation_id: str
    job_id: str
    creator_id: str
    job_status: str | None
    application_id: str | None
    application_status: str | None
    issues: list[str]


class ReconciliationResponse(BaseModel):
    items: list[ReconciliationItem]
    total: int
