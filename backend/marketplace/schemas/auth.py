from typing import Literal

from pydantic import BaseModel, Field


class CreatorRegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str
    name: str = Field(..., min_length=1, max_length=200)
    bio: str | None = None
    location: str | None = None
    categories: list[str] = []


class BusinessRegisterRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)
    password: str
    company_name: str = Field(..., min_length=1, max_length=200)
    industry: str | None = None
    website: str | None = None
    plan: Literal["monthly", "yearly"] | None = None
    # Either a paid checkout session, verified with Stripe, or the ids it produced.
    # Bare ids only link the account; the subscription turns active on its first
    # payment event.
    checkout_session_id: str | None = None
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None


class RegisterResponse(BaseModel):
    user_id: str
    profile_id: str
    role: str
    status: str
    expires_at: str | None = None


class CheckoutSessionResponse(BaseModel):
    session_id: str
    customer_id: str | None = None
    subscription_id: str | None = None
    customer_email: str | None = None
    payment_status: str | None = None


class LoginRequest(BaseModel):
    email: str
    password: str


class LoginResponse(BaseModel):
    token: str
    expires_in_seconds: int
    role: str


class MeResponse(BaseModel):
    user_id: str
    role: str
    creator_id: str | None = None
    business_id: str | None = None
