from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.schemas.auth import CheckoutSessionResponse
from marketplace.services import billing_service, webhook_service

router = APIRouter(prefix="/stripe", tags=["stripe"])


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(None),
    db: Session = Depends(get_db),
):
    # The signature covers the exact bytes received, so the body is read raw.
    payload = await request.body()
    result = webhook_service.apply_event(db, payload, stripe_signature)
    return {"received": True, "result": result}


@router.get("/session/{session_id}", response_model=CheckoutSessionResponse)
async def checkout_session(session_id: str):
    # Read before the account exists; session ids are unguessable and short-lived.
    checkout = billing_service.retrieve_checkout(session_id)
    return CheckoutSessionResponse(
        session_id=checkout.session_id,
        customer_id=checkout.customer_id,
        subscription_id=checkout.subscription_id,
        customer_email=checkout.customer_email,
        payment_status=checkout.payment_status,
    )
