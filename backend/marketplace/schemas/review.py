from typing import Literal

from pydantic import BaseModel, Field

ReviewStatus = Literal["pending", "approved", "rejected"]


class ReviewCreate(BaseModel):
    business_id: str | None = None
    creator_id: str
    rating: int = Field(..., ge=1, le=5)
    comment: str | None = Field(None, max_length=1000)


class ReviewUpdate(BaseModel):
    review_id: str
    rating: int | None = Field(None, ge=1, le=5)
    comment: str | None = Field(None, max_length=1000)
    status: ReviewStatus | None = None
    rejection_reason: str | None = None


class ReviewReject(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class ReviewReply(BaseModel):
    reply: str = Field(..., max_length=1000)


class ReviewResponse(BaseModel):
    id: str
    business_id: str
    business_name: str | None = None
    creator_id: str
    creator_name: str | None = None
    rating: int
    comment: str | None
    status: str
    rejection_reason: str | None
    reply: str | None
    reply_date: str | None
    created_at: str
    updated_at: str


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]
