from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import require_principal
from marketplace.models.message import Message
from marketplace.schemas.message import (
    MarkReadResponse,
    MessageCreate,
    MessageListResponse,
    MessageMarkRead,
    MessageResponse,
    UnreadCountResponse,
)
from marketplace.services import messaging_service
from marketplace.services.authorization import Principal
from marketplace.services.errors import InvalidInput

router = APIRouter(prefix="/job-messages", tags=["messages"])


def _message_to_response(msg: Message) -> MessageResponse:
    return MessageResponse(
        id=msg.id,
        application_id=msg.application_id,
        sender_type=msg.sender_type,
        sender_id=msg.sender_id,
        message=msg.message,
        read_at=msg.read_at,
        created_at=msg.created_at,
    )


@router.get("", response_model=MessageListResponse | UnreadCountResponse)
async def list_messages(
    application_id: str | None = None,
    count_unread: bool = False,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    # Without an application_id only the aggregate unread count is meaningful.
    if count_unread:
        return UnreadCountResponse(unread_count=messaging_service.unread_count(db, principal, application_id))
    if not application_id:
        raise InvalidInput("application_id is required")
    messages = messaging_service.list_messages(db, principal, application_id)
    return MessageListResponse(messages=[_message_to_response(m) for m in messages])


@router.post("", response_model=MessageResponse, status_code=201)
async def send_message(
    req: MessageCreate,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    msg = messaging_service.send(db, principal, req.application_id, req.sender_type, req.sender_id, req.message)
    return _message_to_response(msg)


@router.put("", response_model=MarkReadResponse)
async def mark_read(
    req: MessageMarkRead,
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    marked = messaging_service.mark_read(db, principal, req.application_id, req.recipient_type, req.recipient_id)
    return MarkReadResponse(marked=marked)
