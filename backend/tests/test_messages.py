from conftest import API


class _MessagingHelpers:
    def _send(self, client, account, app_id, sender_type, sender_id, text="Hello there"):
        return client.post(f"{API}/job-messages", json={
            "application_id": app_id,
            "sender_type": sender_type,
            "sender_id": sender_id,
            "message": text,
        }, headers=account.headers)

    def _mark_read(self, client, account, app_id, recipient_type):
        return client.put(f"{API}/job-messages", json={
            "application_id": app_id,
            "recipient_type": recipient_type,
            "recipient_id": account.id,
        }, headers=account.headers)

    def _unread(self, client, account, app_id=None):
        params = {"count_unread": True}
        if app_id:
            params["application_id"] = app_id
        r = client.get(f"{API}/job-messages", params=params, headers=account.headers)
        assert r.status_code == 200, r.text
        return r.json()["unread_count"]


class TestMessaging(_MessagingHelpers):
    def test_participants_exchange_messages(self, market, client):
        business, creator, job, app_id = market.engaged()
        r = self._send(client, creator, app_id, "creator", creator.id, "  When do we start?  ")
        assert r.status_code == 201
        assert r.json()["message"] == "When do we start?"
        assert self._send(client, business, app_id, "business", business.id, "Monday").status_code == 201

        r = client.get(f"{API}/job-messages", params={"application_id": app_id}, headers=business.headers)
        assert [m["message"] for m in r.json()["messages"]] == ["When do we start?", "Monday"]

    def test_third_party_cannot_read(self, market, client):
        business, creator, job, app_id = market.engaged()
        stranger = market.creator(email="stranger@example.com", name="Stan")
        r = client.get(f"{API}/job-messages", params={"application_id": app_id}, headers=stranger.headers)
        assert r.status_code == 403
        r = client.get(f"{API}/job-messages", params={"application_id": app_id})
        assert r.status_code == 401

    def test_admin_can_read_but_not_send(self, market, client):
        business, creator, job, app_id = market.engaged()
        admin = market.admin()
        r = client.get(f"{API}/job-messages", params={"application_id": app_id}, headers=admin.headers)
        assert r.status_code == 200
        assert self._send(client, admin, app_id, "business", business.id).status_code == 403

    def test_sender_must_match_principal(self, market, client):
        business, creator, job, app_id = market.engaged()
        assert self._send(client, creator, app_id, "business", business.id).status_code == 403
        assert self._send(client, creator, app_id, "creator", "someone-else").status_code == 403

    def test_pending_application_not_active(self, market, client):
        business = market.business()
        creator = market.creator()
        job = market.open_job(business)
        app_id = market.apply(creator, job["id"]).json()["id"]
        r = self._send(client, creator, app_id, "creator", creator.id)
        assert r.status_code == 409
        assert r.json()["code"] == "conversation_not_active"

    def test_completed_conversation_is_read_only(self, market, client):
        business, creator, job, app_id = market.engaged()
        self._send(client, creator, app_id, "creator", creator.id)
        market.set_application_status(business, app_id, "completed")
        r = self._send(client, business, app_id, "business", business.id)
        assert r.json()["code"] == "conversation_not_active"
        r = client.get(f"{API}/job-messages", params={"application_id": app_id}, headers=business.headers)
        assert len(r.json()["messages"]) == 1

    def test_blank_message_rejected(self, market, client):
        business, creator, job, app_id = market.engaged()
        assert self._send(client, creator, app_id, "creator", creator.id, "   ").status_code == 400

    def test_unknown_application(self, market, client):
        creator = market.creator()
        r = client.get(f"{API}/job-messages", params={"application_id": "nope"}, headers=creator.headers)
        assert r.status_code == 404

    def test_application_id_required(self, market, client):
        creator = market.creator()
        assert client.get(f"{API}/job-messages", headers=creator.headers).status_code == 400


class TestReadReceipts(_MessagingHelpers):
    def test_mark_read_flips_only_counterpart(self, market, client):
        business, creator, job, app_id = market.engaged()
        self._send(client, creator, app_id, "creator", creator.id, "one")
        self._send(client, creator, app_id, "creator", creator.id, "two")
        self._send(client, business, app_id, "business", business.id, "reply")

        r = self._mark_read(client, business, app_id, "business")
        assert r.json()["marked"] == 2
        assert self._unread(client, business, app_id) == 0
        assert self._unread(client, creator, app_id) == 1

    def test_mark_read_is_idempotent(self, market, client):
        business, creator, job, app_id = market.engaged()
        self._send(client, creator, app_id, "creator", creator.id)
        first = self._mark_read(client, business, app_id, "business")
        second = self._mark_read(client, business, app_id, "business")
        assert first.status_code == second.status_code == 200
        assert second.json()["marked"] == 0

        r = client.get(f"{API}/job-messages", params={"application_id": app_id}, headers=business.headers)
        read_at = r.json()["messages"][0]["read_at"]
        assert read_at is not None
        self._mark_read(client, business, app_id, "business")
        r = client.get(f"{API}/job-messages", params={"application_id": app_id}, headers=business.headers)
        assert r.json()["messages"][0]["read_at"] == read_at

    def test_cannot_mark_read_for_other_side(self, market, client):
        business, creator, job, app_id = market.engaged()
        r = client.put(f"{API}/job-messages", json={
            "application_id": app_id, "recipient_type": "business", "recipient_id": business.id,
        }, headers=creator.headers)
        assert r.status_code == 403

    def test_aggregate_unread_counts_active_conversations_only(self, market, client):
        business = market.business()
        c1 = market.creator()
        c2 = market.creator(email="c2@example.com", name="Cy")
        job = market.open_job(business)
        a1 = market.apply(c1, job["id"]).json()["id"]
        a2 = market.apply(c2, job["id"]).json()["id"]
        market.set_application_status(business, a1, "accepted")
        market.set_application_status(business, a2, "accepted")
        self._send(client, c1, a1, "creator", c1.id)
        self._send(client, c2, a2, "creator", c2.id)
        self._send(client, c2, a2, "creator", c2.id)

        assert self._unread(client, business) == 3
        market.set_application_status(business, a2, "completed")
        assert self._unread(client, business) == 1
        # The scoped count still reports the closed conversation.
        assert self._unread(client, business, a2) == 2
