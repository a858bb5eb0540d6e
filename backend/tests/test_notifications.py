from conftest import API


class TestBadges:
    def _counts(self, client, account):
        r = client.get(f"{API}/notifications", headers=account.headers)
        assert r.status_code == 200, r.text
        return r.json()

    def test_nothing_new(self, market, client):
        creator = market.creator()
        assert self._counts(client, creator) == {
            "new_invitations": 0, "new_applications": 0, "unread_messages": 0, "has_new": False,
        }

    def test_creator_invitations_since_last_view(self, market, client):
        business = market.business()
        creator = market.creator()
        first = market.open_job(business, title="First")
        second = market.open_job(business, title="Second")
        market.invite(business, first["id"], creator.id)
        assert self._counts(client, creator)["new_invitations"] == 1

        r = client.post(f"{API}/notifications/viewed", json={"section": "invitations"}, headers=creator.headers)
        assert r.status_code == 200
        counts = self._counts(client, creator)
        assert counts["new_invitations"] == 0
        assert counts["has_new"] is False

        market.invite(business, second["id"], creator.id)
        assert self._counts(client, creator)["new_invitations"] == 1

    def test_business_new_applications(self, market, client):
        business = market.business()
        creator = market.creator()
        job = market.open_job(business)
        market.apply(creator, job["id"])
        counts = self._counts(client, business)
        assert counts["new_applications"] == 1
        assert counts["has_new"] is True

        client.post(f"{API}/notifications/viewed", json={"section": "applications"}, headers=business.headers)
        assert self._counts(client, business)["new_applications"] == 0

    def test_unread_messages_included(self, market, client):
        business, creator, job, app_id = market.engaged()
        client.post(f"{API}/job-messages", json={
            "application_id": app_id, "sender_type": "business",
            "sender_id": business.id, "message": "Welcome aboard",
        }, headers=business.headers)
        counts = self._counts(client, creator)
        assert counts["unread_messages"] == 1
        assert counts["has_new"] is True

    def test_requires_sign_in(self, client):
        assert client.get(f"{API}/notifications").status_code == 401

    def test_unknown_section_rejected(self, market, client):
        creator = market.creator()
        r = client.post(f"{API}/notifications/viewed", json={"section": "jobs"}, headers=creator.headers)
        assert r.status_code == 422
