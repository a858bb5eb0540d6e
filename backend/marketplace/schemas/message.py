from typing import Literal

from pydantic import BaseModel, Field

PartyType = Literal["business", "creator"]


class MessageCreate(BaseModel):
    application_id: str
    sender_type: PartyType
    sender_id: str
    message: str = Field(..., max_length=5000)


class MessageMarkRead(BaseModel):
    application_id: str
    recipient_type: PartyType
    recipient_id: str


class MessageResponse(BaseModel):
    id: str
    application_id: str
    sender_type: str
    sender_id: str
    message: str
    read_at: str | None
    created_at: str


class MessageListResponse(BaseModel):
    messages: list[MessageResponse]


class MarkReadResponse(BaseModel):
    success: bool = True
    marked: int


class UnreadCountResponse(BaseModel):
    unread_count: int
