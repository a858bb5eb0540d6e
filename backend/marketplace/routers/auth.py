from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.dependencies import bearer_token, require_principal
from marketplace.schemas.auth import (
    BusinessRegisterRequest,
    CreatorRegisterRequest,
    LoginRequest,
    LoginResponse,
    MeResponse,
    RegisterResponse,
)
from marketplace.services.auth_service import auth_service
from marketplace.services.authorization import Principal

router = APIRouter(prefix="/auth", tags=["auth"])


def _client_key(request: Request) -> str | None:
    return request.client.host if request.client else None


@router.post("/register/creator", response_model=RegisterResponse, status_code=201)
async def register_creator(req: CreatorRegisterRequest, request: Request, db: Session = Depends(get_db)):
    creator = auth_service.register_creator(
        db, req.email, req.password, req.name,
        client_key=_client_key(request),
        bio=req.bio, location=req.location, categories=req.categories,
    )
    # New creators wait for admin approval before appearing publicly.
    return RegisterResponse(user_id=creator.user_id, profile_id=creator.id, role="creator", status=creator.status)


@router.post("/register/business", response_model=RegisterResponse, status_code=201)
async def register_business(req: BusinessRegisterRequest, request: Request, db: Session = Depends(get_db)):
    business = auth_service.register_business(
        db, req.email, req.password, req.company_name,
        client_key=_client_key(request),
        industry=req.industry,
        website=req.website,
        plan=req.plan,
        checkout_session_id=req.checkout_session_id,
        stripe_customer_id=req.stripe_customer_id,
        stripe_subscription_id=req.stripe_subscription_id,
    )
    return RegisterResponse(
        user_id=business.user_id,
        profile_id=business.id,
        role="business",
        status=business.subscription_status,
        expires_at=business.expires_at,
    )


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest, db: Session = Depends(get_db)):
    return LoginResponse(**auth_service.login(db, req.email, req.password))


@router.post("/logout")
async def logout(
    token: str | None = Depends(bearer_token),
    principal: Principal = Depends(require_principal),
    db: Session = Depends(get_db),
):
    auth_service.logout(db, token)
    return {"success": True}


@router.get("/me", response_model=MeResponse)
async def me(principal: Principal = Depends(require_principal)):
    return MeResponse(
        user_id=principal.user_id,
        role=principal.role,
        creator_id=principal.creator_id,
        business_id=principal.business_id,
    )
