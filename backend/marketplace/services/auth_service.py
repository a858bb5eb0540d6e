import logging
import time
import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from marketplace.config import settings
from marketplace.models.business import Business
from marketplace.models.creator import Creator
from marketplace.models.user import AuthSession, User
from marketplace.services import billing_service
from marketplace.services.authorization import GUEST, Principal
from marketplace.services.errors import Conflict, InvalidInput, TooManyAttempts, Unauthenticated
from marketplace.utils.security import generate_token, hash_password, hash_token, verify_password
from marketplace.utils.timestamps import to_timestamp, utcnow

logger = logging.getLogger("marketplace.auth")


class AuthService:
    """Accounts and bearer sessions. All session state lives in the store."""

    def _create_user(self, db: Session, email: str, password: str, role: str) -> User:
        email = email.strip().lower()
        if len(password) < settings.min_password_length:
            raise InvalidInput(f"Password must be at least {settings.min_password_length} characters")
        if db.query(User).filter(User.email == email).first():
            raise Conflict("Email already registered")
        user = User(
            id=str(uuid.uuid4()),
            email=email,
            password_hash=hash_password(password),
            role=role,
            created_at=utcnow(),
        )
        db.add(user)
        return user

    def register_creator(self, db: Session, email: str, password: str, name: str,
                         client_key: str | None = None, **profile) -> Creator:
        if client_key:
            self._check_rate(db, f"register:{client_key}")
        user = self._create_user(db, email, password, "creator")
        creator = Creator(
            id=str(uuid.uuid4()),
            user_id=user.id,
            name=name,
            email=user.email,
            bio=profile.get("bio"),
            location=profile.get("location"),
            categories=profile.get("categories") or [],
            status="pending",
            total_reviews=0,
            created_at=user.created_at,
        )
        db.add(creator)
        self._commit(db)
        db.refresh(creator)
        logger.info("Registered creator %s (user %s)", creator.id, user.id)
        return creator

    def register_business(self, db: Session, email: str, password: str, company_name: str,
                          client_key: str | None = None, **profile) -> Business:
        """Create a business account, linked to its Stripe subscription when one is given.

        A checkout session is looked up with Stripe and, once paid, starts the
        subscription right away. Bare customer and subscription ids are stored
        as a link only: the account stays without a subscription until a
        signed payment event for that subscription arrives.
        """
        if client_key:
            self._check_rate(db, f"register:{client_key}")

        plan = profile.get("plan")
        customer_id = profile.get("stripe_customer_id")
        subscription_id = profile.get("stripe_subscription_id")
        status, expires_at = "none", None
        if profile.get("checkout_session_id"):
            checkout = billing_service.retrieve_checkout(profile["checkout_session_id"])
            if not checkout.paid:
                raise InvalidInput("Checkout session has not been paid")
            customer_id = checkout.customer_id
            subscription_id = checkout.subscription_id
            status = "active"
            expires_at = billing_service.initial_expiry(plan, checkout.period_end)

        if subscription_id and db.query(Business).filter(
            Business.stripe_subscription_id == subscription_id
        ).first():
            raise Conflict("This subscription is already linked to a business")

        user = self._create_user(db, email, password, "business")
        business = Business(
            id=str(uuid.uuid4()),
            user_id=user.id,
            company_name=company_name,
            email=user.email,
            industry=profile.get("industry"),
            website=profile.get("website"),
            subscription_status=status,
            subscription_type=plan,
            expires_at=expires_at,
            stripe_customer_id=customer_id,
            stripe_subscription_id=subscription_id,
            created_at=user.created_at,
        )
        db.add(business)
        self._commit(db)
        db.refresh(business)
        logger.info("Registered business %s (user %s, subscription %s, %s)",
                    business.id, user.id, subscription_id, status)
        return business

    def ensure_admin(self, db: Session, email: str, password: str) -> User:
        existing = db.query(User).filter(User.email == email.strip().lower()).first()
        if existing:
            return existing
        user = self._create_user(db, email, password, "admin")
        self._commit(db)
        logger.info("Seeded admin account %s", user.email)
        return user

    def login(self, db: Session, email: str, password: str) -> dict:
        email = email.strip().lower()
        throttle_key = f"login:{email}"
        delay = self._get_throttle_delay(db, throttle_key)
        if delay > 0:
            logger.warning("Login for %s throttled for %.0fs", email, delay)
            raise TooManyAttempts(delay)

        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(user.password_hash, password):
            self._record_failed_attempt(db, throttle_key)
            raise Unauthenticated("Invalid email or password")

        self._reset_failed_attempts(db, throttle_key)
        token = generate_token()
        expires = datetime.now(timezone.utc) + timedelta(seconds=settings.session_ttl_seconds)
        db.add(AuthSession(
            token_hash=hash_token(token),
            user_id=user.id,
            expires_at=to_timestamp(expires),
            created_at=utcnow(),
        ))
        db.commit()
        return {"token": token, "expires_in_seconds": settings.session_ttl_seconds, "role": user.role}

    def logout(self, db: Session, token: str) -> None:
        db.query(AuthSession).filter(AuthSession.token_hash == hash_token(token)).delete()
        db.commit()

    def resolve_principal(self, db: Session, token: str | None) -> Principal:
        """Map a bearer token to a principal; anything unresolvable is a guest."""
        if not token:
            return GUEST
        session = db.query(AuthSession).filter(AuthSession.token_hash == hash_token(token)).first()
        if not session or session.expires_at <= utcnow():
            return GUEST
        user = db.query(User).filter(User.id == session.user_id).first()
        if not user:
            return GUEST

        if user.role == "creator":
            creator = db.query(Creator).filter(Creator.user_id == user.id).first()
            if creator is None or creator.status == "deactivated":
                return GUEST
            return Principal(user_id=user.id, role="creator", creator_id=creator.id)
        if user.role == "business":
            business = db.query(Business).filter(Business.user_id == user.id).first()
            if business is None:
                return GUEST
            return Principal(user_id=user.id, role="business", business_id=business.id)
        return Principal(user_id=user.id, role="admin")

    def _commit(self, db: Session) -> None:
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            logger.warning("Account insert hit a unique constraint: %s", exc.orig)
            raise Conflict("Account already exists") from exc

    # Throttle counters are persisted so they survive restarts.

    def _get_throttle_delay(self, db: Session, key: str) -> float:
        row = db.execute(
            text("SELECT failed_attempts, last_failed_at FROM auth_throttle WHERE key = :key"),
            {"key": key},
        ).fetchone()
        if not row:
            return 0
        failed_attempts = int(row[0])
        last_failed_at = float(row[1])

        if failed_attempts < 3:
            return 0
        if failed_attempts < 5:
            delay = 5.0
        elif failed_attempts < 10:
            delay = 30.0
        else:
            delay = 300.0
        remaining = delay - (time.time() - last_failed_at)
        return max(0, remaining)

    def _record_failed_attempt(self, db: Session, key: str):
        db.execute(
            text(
                """
                INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                VALUES (:key, 1, :now)
                ON CONFLICT(key) DO UPDATE SET
                    failed_attempts = failed_attempts + 1,
                    last_failed_at = :now
                """
            ),
            {"key": key, "now": time.time()},
        )
        db.commit()

    def _reset_failed_attempts(self, db: Session, key: str):
        db.execute(text("DELETE FROM auth_throttle WHERE key = :key"), {"key": key})
        db.commit()

    def _check_rate(self, db: Session, key: str):
        """Fixed-window counter: the row holds the window start and the attempts in it."""
        now = time.time()
        window = settings.register_rate_window_seconds
        row = db.execute(
            text("SELECT failed_attempts, last_failed_at FROM auth_throttle WHERE key = :key"),
            {"key": key},
        ).fetchone()
        if row and now - float(row[1]) < window:
            if int(row[0]) >= settings.register_rate_limit:
                logger.warning("Registration rate limit hit for %s", key)
                raise TooManyAttempts(window - (now - float(row[1])))
            db.execute(
                text("UPDATE auth_throttle SET failed_attempts = failed_attempts + 1 WHERE key = :key"),
                {"key": key},
            )
        else:
            db.execute(
                text(
                    """
                    INSERT INTO auth_throttle (key, failed_attempts, last_failed_at)
                    VALUES (:key, 1, :now)
                    ON CONFLICT(key) DO UPDATE SET failed_attempts = 1, last_failed_at = :now
                    """
                ),
                {"key": key, "now": now},
            )
        db.commit()


auth_service = AuthService()
