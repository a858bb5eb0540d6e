"""Stripe checkout sessions and the subscription link they give a business."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import stripe

from marketplace.config import settings
from marketplace.services.errors import InvalidInput, MarketplaceError
from marketplace.utils.timestamps import from_unix, to_timestamp

logger = logging.getLogger("marketplace.billing")

PLAN_DAYS = {"monthly": 30, "yearly": 365}


@dataclass
class CheckoutLink:
    session_id: str
    customer_id: str | None
    subscription_id: str | None
    customer_email: str | None
    payment_status: str | None
    period_end: int | None = None

    @property
    def paid(self) -> bool:
        return self.payment_status in ("paid", "no_payment_required")


def _id_of(value) -> str | None:
    # Expanded fields come back as objects, unexpanded ones as bare ids.
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None)


def _period_end(subscription) -> int | None:
    if subscription is None or isinstance(subscription, str):
        return None
    # Newer API versions only carry the period on subscription items; the plan
    # length is used instead and the first renewal event corrects it.
    return getattr(subscription, "current_period_end", None)


def retrieve_checkout(session_id: str) -> CheckoutLink:
    if not session_id.startswith("cs_"):
        raise InvalidInput("Not a checkout session id")
    if not settings.stripe_secret_key:
        logger.error("Cannot look up checkout session: MARKETPLACE_STRIPE_SECRET_KEY is not configured")
        raise MarketplaceError("Billing is not configured")
    try:
        session = stripe.checkout.Session.retrieve(
            session_id,
            api_key=settings.stripe_secret_key,
            expand=["subscription"],
        )
    except stripe.StripeError as exc:
        logger.warning("Checkout session %s could not be retrieved: %s", session_id, exc)
        raise InvalidInput("Checkout session could not be retrieved") from exc

    subscription = getattr(session, "subscription", None)
    return CheckoutLink(
        session_id=session_id,
        customer_id=_id_of(getattr(session, "customer", None)),
        subscription_id=_id_of(subscription),
        customer_email=getattr(session, "customer_email", None),
        payment_status=getattr(session, "payment_status", None),
        period_end=_period_end(subscription),
    )


def initial_expiry(plan: str | None, period_end: int | None = None) -> str:
    """When a freshly paid subscription lapses unless a renewal event arrives."""
    if period_end:
        return from_unix(period_end)
    days = PLAN_DAYS.get(plan or "monthly", PLAN_DAYS["monthly"])
    return to_timestamp(datetime.now(timezone.utc) + timedelta(days=days))
