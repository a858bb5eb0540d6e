import hashlib
import hmac
import json
import time

from marketplace.models.webhook_event import WebhookEvent
from marketplace.utils.timestamps import from_unix

from conftest import API, PRICE_YEARLY, WEBHOOK_SECRET

SUBSCRIPTION = "sub_123"
PERIOD_END = 1893456000  # 2030-01-01


def _signed(event: dict, secret: str = WEBHOOK_SECRET, timestamp: int | None = None):
    payload = json.dumps(event)
    ts = timestamp or int(time.time())
    signature = hmac.new(secret.encode(), f"{ts}.{payload}".encode(), hashlib.sha256).hexdigest()
    return payload, {"stripe-signature": f"t={ts},v1={signature}", "content-type": "application/json"}


def _event(event_id: str, event_type: str, obj: dict) -> dict:
    return {"id": event_id, "type": event_type, "data": {"object": obj}}


def _invoice_paid(event_id="evt_paid_1", period_end=PERIOD_END):
    return _event(event_id, "invoice.payment_succeeded", {
        "id": "in_1",
        "subscription": SUBSCRIPTION,
        "lines": {"data": [{"period": {"start": period_end - 2592000, "end": period_end}}]},
    })


class TestWebhook:
    def _post(self, client, event, **sign_kwargs):
        payload, headers = _signed(event, **sign_kwargs)
        return client.post(f"{API}/stripe/webhook", content=payload, headers=headers)

    def _business(self, market):
        return market.business(subscribed=False, subscription_id=SUBSCRIPTION)

    def test_invalid_signature_touches_nothing(self, market, client, test_db):
        business = self._business(market)
        r = self._post(client, _invoice_paid(), secret="whsec_wrong")
        assert r.status_code == 400
        assert r.json()["code"] == "signature_invalid"
        assert market.business_row(business.id).subscription_status == "none"
        with test_db() as db:
            assert db.query(WebhookEvent).count() == 0

    def test_missing_signature(self, client):
        r = client.post(f"{API}/stripe/webhook", content=json.dumps(_invoice_paid()))
        assert r.status_code == 400

    def test_stale_timestamp_rejected(self, market, client):
        self._business(market)
        r = self._post(client, _invoice_paid(), timestamp=int(time.time()) - 3600)
        assert r.status_code == 400

    def test_payment_succeeded_activates(self, market, client):
        business = self._business(market)
        r = self._post(client, _invoice_paid())
        assert r.status_code == 200
        assert r.json()["result"] == "applied"
        row = market.business_row(business.id)
        assert row.subscription_status == "active"
        assert row.expires_at == from_unix(PERIOD_END)

    def test_replay_is_duplicate(self, market, client):
        business = self._business(market)
        event = _invoice_paid()
        assert self._post(client, event).json()["result"] == "applied"
        expires = market.business_row(business.id).expires_at

        assert self._post(client, event).json()["result"] == "duplicate"
        assert market.business_row(business.id).expires_at == expires

    def test_duplicate_does_not_reapply_after_later_change(self, market, client):
        business = self._business(market)
        event = _invoice_paid()
        self._post(client, event)
        self._post(client, _event("evt_del", "customer.subscription.deleted", {"id": SUBSCRIPTION}))
        assert self._post(client, event).json()["result"] == "duplicate"
        assert market.business_row(business.id).subscription_status == "expired"

    def test_subscription_deleted_expires(self, market, client):
        business = self._business(market)
        market.update_business(business.id, subscription_status="active")
        self._post(client, _event("evt_del", "customer.subscription.deleted", {"id": SUBSCRIPTION}))
        assert market.business_row(business.id).subscription_status == "expired"

    def test_subscription_updated_active_reclassifies_plan(self, market, client):
        business = self._business(market)
        self._post(client, _event("evt_upd", "customer.subscription.updated", {
            "id": SUBSCRIPTION,
            "status": "active",
            "current_period_end": PERIOD_END,
            "items": {"data": [{"price": {"id": PRICE_YEARLY}}]},
        }))
        row = market.business_row(business.id)
        assert row.subscription_status == "active"
        assert row.subscription_type == "yearly"
        assert row.expires_at == from_unix(PERIOD_END)

    def test_subscription_updated_unpaid_expires(self, market, client):
        business = self._business(market)
        market.update_business(business.id, subscription_status="active")
        self._post(client, _event("evt_upd", "customer.subscription.updated", {
            "id": SUBSCRIPTION, "status": "unpaid",
        }))
        assert market.business_row(business.id).subscription_status == "expired"

    def test_payment_failed_changes_nothing(self, market, client):
        business = self._business(market)
        market.update_business(business.id, subscription_status="active")
        r = self._post(client, _event("evt_fail", "invoice.payment_failed", {"subscription": SUBSCRIPTION}))
        assert r.json()["result"] == "applied"
        assert market.business_row(business.id).subscription_status == "active"

    def test_unknown_event_type_accepted(self, client, test_db):
        r = self._post(client, _event("evt_x", "customer.created", {"id": "cus_1"}))
        assert r.status_code == 200
        with test_db() as db:
            assert db.get(WebhookEvent, "evt_x").event_type == "customer.created"

    def test_unlinked_subscription_still_recorded(self, client, test_db):
        r = self._post(client, _invoice_paid(event_id="evt_orphan"))
        assert r.json()["result"] == "applied"
        with test_db() as db:
            assert db.get(WebhookEvent, "evt_orphan") is not None

    def test_webhook_unlocks_job_posting(self, market, client):
        business = self._business(market)
        body = {"title": "Reel", "description": "One reel", "category": "video"}
        assert client.post(f"{API}/jobs", json=body, headers=business.headers).status_code == 403
        self._post(client, _invoice_paid())
        assert client.post(f"{API}/jobs", json=body, headers=business.headers).status_code == 201

    def test_malformed_data_rejected_before_recording(self, client, test_db):
        for i, data in enumerate(("not-an-object", {"object": ["a", "b"]}, None)):
            event = {"id": f"evt_bad_{i}", "type": "invoice.payment_succeeded", "data": data}
            r = self._post(client, event)
            assert r.status_code == 400
            assert r.json()["code"] == "invalid_input"
        with test_db() as db:
            assert db.query(WebhookEvent).count() == 0

    def test_odd_nested_fields_are_ignored(self, market, client):
        business = self._business(market)
        r = self._post(client, _event("evt_odd", "invoice.payment_succeeded", {
            "subscription": SUBSCRIPTION,
            "lines": {"data": ["not-a-line"]},
            "parent": "nope",
            "period_end": "soon",
        }))
        assert r.status_code == 200
        row = market.business_row(business.id)
        assert row.subscription_status == "active"
        assert row.expires_at is None


class TestLinkedRegistration:
    """A business linked to its subscription at sign-up, driven only through the API."""

    def test_register_link_pay_post(self, client):
        r = client.post(f"{API}/auth/register/business", json={
            "email": "paid@example.com", "password": "business-pass", "company_name": "Paid Co",
            "plan": "monthly", "stripe_customer_id": "cus_123", "stripe_subscription_id": SUBSCRIPTION,
        })
        assert r.status_code == 201
        assert r.json()["status"] == "none"
        token = client.post(f"{API}/auth/login", json={
            "email": "paid@example.com", "password": "business-pass",
        }).json()["token"]
        headers = {"Authorization": f"Bearer {token}"}
        body = {"title": "Reel", "description": "One reel", "category": "video"}
        r = client.post(f"{API}/jobs", json=body, headers=headers)
        assert r.status_code == 403
        assert r.json()["code"] == "subscription_required"

        payload, sig = _signed(_invoice_paid())
        r = client.post(f"{API}/stripe/webhook", content=payload, headers=sig)
        assert r.json()["result"] == "applied"
        assert client.post(f"{API}/jobs", json=body, headers=headers).status_code == 201
