"""Stripe webhook ingestion.

Events arrive at least once and in no guaranteed order. The event id is
written to the webhook_events ledger in the same transaction as the effect it
triggers, so an event is either fully applied and recorded or neither. Updates
are last-write-wins on subscription_status and expires_at.
"""

import json
import logging

import stripe
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.models.business import Business
from marketplace.models.webhook_event import WebhookEvent
from marketplace.services.errors import InvalidInput, MarketplaceError, SignatureInvalid
from marketplace.utils.timestamps import from_unix, utcnow

logger = logging.getLogger("marketplace.webhooks")

APPLIED = "applied"
DUPLICATE = "duplicate"


def verify(payload: bytes, sig_header: str | None) -> dict:
    """Check the stripe-signature header and return the decoded event.

    Nothing in the payload is parsed until the signature has been verified.
    """
    if not settings.stripe_webhook_secret:
        logger.error("Rejecting webhook: MARKETPLACE_STRIPE_WEBHOOK_SECRET is not configured")
        raise SignatureInvalid("Webhook secret is not configured")
    if not sig_header:
        raise SignatureInvalid("No signature provided")
    try:
        text = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(
            text,
            sig_header,
            settings.stripe_webhook_secret,
            settings.stripe_webhook_tolerance_seconds,
        )
    except (stripe.SignatureVerificationError, UnicodeDecodeError) as exc:
        logger.warning("Webhook signature verification failed: %s", exc)
        raise SignatureInvalid() from exc

    try:
        event = json.loads(text)
    except json.JSONDecodeError as exc:
        raise InvalidInput("Webhook payload is not valid JSON") from exc
    if not isinstance(event, dict) or not event.get("id") or not event.get("type"):
        raise InvalidInput("Webhook payload is missing id or type")
    data = event.get("data")
    if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
        raise InvalidInput("Webhook payload has no data object")
    return event


def _dict(value) -> dict:
    return value if isinstance(value, dict) else {}


def _first(value) -> dict:
    items = value if isinstance(value, list) else []
    return _dict(items[0]) if items else {}


def _business_for(db: Session, subscription_id: str | None) -> Business | None:
    if not isinstance(subscription_id, str) or not subscription_id:
        return None
    business = db.query(Business).filter(Business.stripe_subscription_id == subscription_id).first()
    if business is None:
        logger.warning("No business linked to subscription %s", subscription_id)
    return business


def _invoice_subscription(invoice: dict) -> str | None:
    if invoice.get("subscription"):
        return invoice["subscription"]
    # Newer API versions nest it under parent.subscription_details.
    details = _dict(_dict(invoice.get("parent")).get("subscription_details"))
    return details.get("subscription")


def _invoice_period_end(invoice: dict) -> int | None:
    line = _first(_dict(invoice.get("lines")).get("data"))
    end = _dict(line.get("period")).get("end")
    if end:
        return end
    return invoice.get("period_end")


def _subscription_period_end(subscription: dict) -> int | None:
    if subscription.get("current_period_end"):
        return subscription["current_period_end"]
    return _first(_dict(subscription.get("items")).get("data")).get("current_period_end")


def _subscription_type(subscription: dict) -> str | None:
    item = _first(_dict(subscription.get("items")).get("data"))
    price_id = _dict(item.get("price")).get("id")
    if price_id and price_id == settings.stripe_price_monthly:
        return "monthly"
    if price_id and price_id == settings.stripe_price_yearly:
        return "yearly"
    return None


def _payment_succeeded(db: Session, invoice: dict) -> None:
    subscription_id = _invoice_subscription(invoice)
    business = _business_for(db, subscription_id)
    if business is None:
        return
    period_end = _invoice_period_end(invoice)
    business.subscription_status = "active"
    if isinstance(period_end, (int, float)):
        business.expires_at = from_unix(period_end)
    logger.info("Subscription %s renewed until %s", subscription_id, business.expires_at)


def _payment_failed(db: Session, invoice: dict) -> None:
    # Stripe's retry schedule decides when the subscription is finally cancelled.
    logger.warning("Payment failed for subscription %s", _invoice_subscription(invoice))


def _subscription_deleted(db: Session, subscription: dict) -> None:
    business = _business_for(db, subscription.get("id"))
    if business is None:
        return
    business.subscription_status = "expired"
    logger.info("Subscription %s cancelled", subscription.get("id"))


def _subscription_updated(db: Session, subscription: dict) -> None:
    status = subscription.get("status")
    business = _business_for(db, subscription.get("id"))
    if business is None:
        return
    if status in ("canceled", "unpaid"):
        business.subscription_status = "expired"
    elif status == "active":
        business.subscription_status = "active"
        period_end = _subscription_period_end(subscription)
        if isinstance(period_end, (int, float)):
            business.expires_at = from_unix(period_end)
        subscription_type = _subscription_type(subscription)
        if subscription_type:
            business.subscription_type = subscription_type
    else:
        logger.info("Subscription %s reported status %s; no change", subscription.get("id"), status)
        return
    logger.info("Subscription %s updated: status=%s", subscription.get("id"), business.subscription_status)


HANDLERS = {
    "invoice.payment_succeeded": _payment_succeeded,
    "invoice.payment_failed": _payment_failed,
    "customer.subscription.deleted": _subscription_deleted,
    "customer.subscription.updated": _subscription_updated,
}


def apply_event(db: Session, payload: bytes, sig_header: str | None) -> str:
    """Verify, deduplicate and apply one delivery. Returns "applied" or "duplicate"."""
    event = verify(payload, sig_header)
    event_id, event_type = event["id"], event["type"]

    if db.query(WebhookEvent).filter(WebhookEvent.event_id == event_id).first():
        logger.info("Duplicate webhook event %s (%s)", event_id, event_type)
        return DUPLICATE

    db.add(WebhookEvent(event_id=event_id, event_type=event_type, processed_at=utcnow()))
    handler = HANDLERS.get(event_type)
    if handler is None:
        logger.info("Ignoring unhandled webhook event type %s", event_type)
    else:
        handler(db, event["data"]["object"])

    try:
        db.commit()
    except IntegrityError:
        # A concurrent delivery of the same event committed first.
        db.rollback()
        logger.info("Duplicate webhook event %s (%s) lost the insert race", event_id, event_type)
        return DUPLICATE
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Failed to apply webhook event %s (%s): %s", event_id, event_type, exc)
        raise MarketplaceError("Webhook handler failed") from exc

    logger.info("Applied webhook event %s (%s)", event_id, event_type)
    return APPLIED
