from typing import Literal

from pydantic import BaseModel


class NotificationCounts(BaseModel):
    new_invitations: int = 0
    new_applications: int = 0
    unread_messages: int = 0
    has_new: bool = False


class MarkViewedRequest(BaseModel):
    section: Literal["invitations", "applications"]


class MarkViewedResponse(BaseModel):
    section: str
    last_viewed_at: str
