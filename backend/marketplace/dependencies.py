from fastapi import Depends, Header
from sqlalchemy.orm import Session

from marketplace.database import get_db
from marketplace.services.auth_service import auth_service
from marketplace.services.authorization import Principal
from marketplace.services.errors import Unauthenticated


def bearer_token(authorization: str | None = Header(None)) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    return authorization[7:]


async def get_principal(
    token: str | None = Depends(bearer_token),
    db: Session = Depends(get_db),
) -> Principal:
    return auth_service.resolve_principal(db, token)


async def require_principal(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.is_guest:
        raise Unauthenticated()
    return principal
