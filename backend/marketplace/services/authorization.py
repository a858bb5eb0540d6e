"""Authorization context shared by every marketplace component.

A request is resolved once into a :class:`Principal`; services receive it as an
explicit argument. The checks in this module are pure: they look only at the
principal and the ownership attributes handed to them and return a
:class:`Decision`. Callers turn a denial into an exception with
:func:`enforce`, which keeps the 401/403 split in one place.
"""

from dataclasses import dataclass
from enum import Enum

from marketplace.services.errors import Forbidden, NotFound, Unauthenticated

ROLES = ("creator", "business", "admin")


@dataclass(frozen=True)
class Principal:
    user_id: str | None = None
    role: str = "guest"
    creator_id: str | None = None
    business_id: str | None = None

    @property
    def is_guest(self) -> bool:
        return self.role == "guest"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    @property
    def is_creator(self) -> bool:
        return self.role == "creator" and self.creator_id is not None

    @property
    def is_business(self) -> bool:
        return self.role == "business" and self.business_id is not None

    def party_id(self, party_type: str) -> str | None:
        """Profile id this principal holds on one side of the marketplace."""
        if party_type == "creator":
            return self.creator_id if self.is_creator else None
        if party_type == "business":
            return self.business_id if self.is_business else None
        return None


GUEST = Principal()


class Outcome(str, Enum):
    ALLOWED = "allowed"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class Decision:
    outcome: Outcome
    reason: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is Outcome.ALLOWED


ALLOW = Decision(Outcome.ALLOWED)


def forbid(reason: str) -> Decision:
    return Decision(Outcome.FORBIDDEN, reason)


def _authenticated(principal: Principal) -> Decision | None:
    if principal.is_guest:
        return Decision(Outcome.UNAUTHENTICATED, "Not signed in")
    return None


def is_owner(
    principal: Principal,
    creator_id: str | None = None,
    business_id: str | None = None,
    *,
    exists: bool = True,
) -> Decision:
    """Ownership check against a resource's creator_id / business_id."""
    denied = _authenticated(principal)
    if denied:
        return denied
    if not exists:
        return Decision(Outcome.NOT_FOUND, "Not found")
    if principal.is_admin:
        return ALLOW
    if creator_id is not None and principal.is_creator and principal.creator_id == creator_id:
        return ALLOW
    if business_id is not None and principal.is_business and principal.business_id == business_id:
        return ALLOW
    return forbid("You do not own this resource")


def is_admin(principal: Principal) -> Decision:
    denied = _authenticated(principal)
    if denied:
        return denied
    if principal.is_admin:
        return ALLOW
    return forbid("Administrator access required")


def is_participant(
    principal: Principal,
    creator_id: str,
    business_id: str,
    *,
    allow_admin: bool = False,
) -> Decision:
    """Principal is the application's creator or the owning business of its job."""
    denied = _authenticated(principal)
    if denied:
        return denied
    if allow_admin and principal.is_admin:
        return ALLOW
    if principal.is_creator and principal.creator_id == creator_id:
        return ALLOW
    if principal.is_business and principal.business_id == business_id:
        return ALLOW
    return forbid("Only participants of this conversation have access")


def require_role(principal: Principal, *roles: str) -> Decision:
    denied = _authenticated(principal)
    if denied:
        return denied
    if principal.role in roles:
        return ALLOW
    return forbid(f"Requires one of roles: {', '.join(roles)}")


def enforce(decision: Decision) -> None:
    if decision.allowed:
        return
    if decision.outcome is Outcome.UNAUTHENTICATED:
        raise Unauthenticated(decision.reason)
    if decision.outcome is Outcome.NOT_FOUND:
        raise NotFound(decision.reason)
    raise Forbidden(decision.reason)
