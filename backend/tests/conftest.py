import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from marketplace.config import settings
from marketplace.database import get_db, init_db
from marketplace.main import app
from marketplace.models.business import Business
from marketplace.services.auth_service import auth_service

API = "/api"
WEBHOOK_SECRET = "whsec_test_secret"
STRIPE_SECRET_KEY = "sk_test_marketplace"
PRICE_MONTHLY = "price_monthly_test"
PRICE_YEARLY = "price_yearly_test"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-password"


def _set_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


@pytest.fixture
def test_db(tmp_path):
    db_path = tmp_path / "marketplace.sqlite"
    engine = create_engine(
        f"sqlite:///{db_path}",
        connect_args={"check_same_thread": False},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    TestSession = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    init_db(db_path)

    def override_get_db():
        db = TestSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestSession
    app.dependency_overrides.clear()
    engine.dispose()


@pytest.fixture
def client(tmp_path, test_db):
    original = (
        settings.data_dir,
        settings.stripe_secret_key,
        settings.stripe_webhook_secret,
        settings.stripe_price_monthly,
        settings.stripe_price_yearly,
        settings.register_rate_limit,
    )
    settings.data_dir = tmp_path
    settings.stripe_secret_key = STRIPE_SECRET_KEY
    # Tests register many accounts from the same client address.
    settings.register_rate_limit = 1000
    settings.stripe_webhook_secret = WEBHOOK_SECRET
    settings.stripe_price_monthly = PRICE_MONTHLY
    settings.stripe_price_yearly = PRICE_YEARLY
    c = TestClient(app)
    yield c
    (
        settings.data_dir,
        settings.stripe_secret_key,
        settings.stripe_webhook_secret,
        settings.stripe_price_monthly,
        settings.stripe_price_yearly,
        settings.register_rate_limit,
    ) = original


class Account:
    def __init__(self, token: str, role: str, profile_id: str | None = None):
        self.token = token
        self.role = role
        self.id = profile_id

    @property
    def headers(self):
        return {"Authorization": f"Bearer {self.token}"}


class Marketplace:
    """Drives the API the way a client would, with a few direct store shortcuts."""

    def __init__(self, client: TestClient, session_factory):
        self.client = client
        self.session_factory = session_factory
        self._admin = None

    def login(self, email: str, password: str) -> str:
        r = self.client.post(f"{API}/auth/login", json={"email": email, "password": password})
        assert r.status_code == 200, r.text
        return r.json()["token"]

    def creator(self, email="creator@example.com", name="Cora Creator") -> Account:
        r = self.client.post(f"{API}/auth/register/creator", json={
            "email": email, "password": "creator-pass", "name": name,
        })
        assert r.status_code == 201, r.text
        return Account(self.login(email, "creator-pass"), "creator", r.json()["profile_id"])

    def business(self, email="biz@example.com", company="Acme Media", subscribed=True,
                 subscription_id=None) -> Account:
        body = {"email": email, "password": "business-pass", "company_name": company}
        if subscription_id:
            body["stripe_subscription_id"] = subscription_id
        r = self.client.post(f"{API}/auth/register/business", json=body)
        assert r.status_code == 201, r.text
        business_id = r.json()["profile_id"]
        if subscribed:
            # Stands in for the first paid invoice.
            self.update_business(business_id, subscription_status="active")
        return Account(self.login(email, "business-pass"), "business", business_id)

    def admin(self) -> Account:
        if self._admin is None:
            with self.session_factory() as db:
                auth_service.ensure_admin(db, ADMIN_EMAIL, ADMIN_PASSWORD)
            self._admin = Account(self.login(ADMIN_EMAIL, ADMIN_PASSWORD), "admin")
        return self._admin

    def update_business(self, business_id: str, **values):
        with self.session_factory() as db:
            db.query(Business).filter(Business.id == business_id).update(values)
            db.commit()

    def business_row(self, business_id: str) -> Business:
        with self.session_factory() as db:
            return db.query(Business).filter(Business.id == business_id).first()

    def post_job(self, business: Account, **overrides) -> dict:
        body = {
            "title": "Product launch reel",
            "description": "Three short videos for our spring launch",
            "category": "video",
            "platforms": ["instagram", "tiktok"],
            "budget_type": "fixed",
            "budget_min": 200,
            "budget_max": 500,
        }
        body.update(overrides)
        r = self.client.post(f"{API}/jobs", json=body, headers=business.headers)
        assert r.status_code == 201, r.text
        return r.json()["job"]

    def open_job(self, business: Account, **overrides) -> dict:
        job = self.post_job(business, **overrides)
        r = self.client.put(f"{API}/jobs", json={"job_id": job["id"], "status": "open"},
                            headers=self.admin().headers)
        assert r.status_code == 200, r.text
        return r.json()

    def apply(self, creator: Account, job_id: str, price=150):
        return self.client.post(f"{API}/job-applications", json={
            "job_id": job_id,
            "cover_letter": "I have shot launch reels for three brands.",
            "proposed_price": price,
        }, headers=creator.headers)

    def set_application_status(self, account: Account, application_id: str, status: str):
        return self.client.put(f"{API}/job-applications", json={
            "application_id": application_id, "status": status,
        }, headers=account.headers)

    def invite(self, business: Account, job_id: str, creator_id: str):
        return self.client.post(f"{API}/job-invitations", json={
            "job_id": job_id, "creator_id": creator_id, "message": "We love your work",
        }, headers=business.headers)

    def respond(self, account: Account, invitation_id: str, status: str):
        return self.client.put(f"{API}/job-invitations", json={
            "invitation_id": invitation_id, "status": status,
        }, headers=account.headers)

    def engaged(self):
        """A business, a creator and an accepted application between them."""
        business = self.business()
        creator = self.creator()
        job = self.open_job(business)
        app_id = self.apply(creator, job["id"]).json()["id"]
        r = self.set_application_status(business, app_id, "accepted")
        assert r.status_code == 200, r.text
        return business, creator, job, app_id


@pytest.fixture
def market(client, test_db):
    return Marketplace(client, test_db)
