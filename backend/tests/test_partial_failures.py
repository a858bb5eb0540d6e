"""Store failures injected with SQLite triggers, exercising the best-effort paths."""

from sqlalchemy import text

from marketplace.models.invitation import Invitation
from marketplace.models.job import Job
from marketplace.services import engagement_service, messaging_service
from marketplace.services.authorization import Principal

from conftest import API


def _install_trigger(test_db, name: str, event: str, table: str):
    with test_db() as db:
        db.execute(text(
            f"CREATE TRIGGER {name} BEFORE {event} ON {table} "
            f"BEGIN SELECT RAISE(ABORT, 'injected failure'); END"
        ))
        db.commit()


def _drop_trigger(test_db, name: str):
    with test_db() as db:
        db.execute(text(f"DROP TRIGGER {name}"))
        db.commit()


class TestDeletionCascade:
    def test_failed_step_reported_but_job_deleted(self, market, client, test_db):
        business = market.business()
        creator = market.creator()
        job = market.open_job(business)
        market.invite(business, job["id"], creator.id)
        _install_trigger(test_db, "fail_invitation_update", "UPDATE", "job_invitations")

        r = client.delete(f"{API}/jobs", params={"job_id": job["id"]}, headers=business.headers)
        assert r.status_code == 200
        data = r.json()
        assert data["status"] == "deleted"
        assert data["cascade_complete"] is False
        steps = {s["step"]: s for s in data["cascade"]}
        assert steps["cancel_applications"]["ok"] is True
        assert steps["cancel_invitations"]["ok"] is False
        assert steps["cancel_invitations"]["error"]


class TestInvitationLinking:
    def _invited(self, market):
        business = market.business()
        creator = market.creator()
        job = market.open_job(business)
        inv_id = market.invite(business, job["id"], creator.id).json()["id"]
        return business, creator, job, inv_id

    def test_application_insert_failure_surfaces_warning(self, market, client, test_db):
        business, creator, job, inv_id = self._invited(market)
        _install_trigger(test_db, "fail_application_insert", "INSERT", "job_applications")

        r = market.respond(creator, inv_id, "accepted")
        assert r.status_code == 200
        data = r.json()
        assert data["invitation"]["status"] == "accepted"
        assert data["application_id"] is None
        assert data["warnings"] == ["application_not_created"]
        assert data["job_closed"] is True

        admin = market.admin()
        items = client.get(f"{API}/admin/reconciliation", headers=admin.headers).json()["items"]
        assert items[0]["issues"] == ["missing_application"]

        _drop_trigger(test_db, "fail_application_insert")
        r = client.post(f"{API}/admin/reconciliation/{inv_id}/repair", headers=admin.headers)
        assert r.json()["application_id"]
        assert client.get(f"{API}/admin/reconciliation", headers=admin.headers).json()["total"] == 0

    def test_job_close_failure_never_reports_closed(self, market, client, test_db):
        business, creator, job, inv_id = self._invited(market)
        _install_trigger(test_db, "fail_job_update", "UPDATE", "jobs")

        data = market.respond(creator, inv_id, "accepted").json()
        assert data["application_id"]
        assert data["job_closed"] is False
        assert "job_not_closed" in data["warnings"]
        with test_db() as db:
            assert db.get(Job, job["id"]).status == "open"
            assert db.get(Invitation, inv_id).status == "accepted"


class TestServiceLevel:
    def test_gate_decisions(self, market, test_db):
        business, creator, job, app_id = market.engaged()
        creator_p = Principal(user_id="u", role="creator", creator_id=creator.id)
        business_p = Principal(user_id="u", role="business", business_id=business.id)
        admin_p = Principal(user_id="u", role="admin")
        stranger_p = Principal(user_id="u", role="creator", creator_id="someone-else")

        with test_db() as db:
            assert messaging_service.can_read(db, creator_p, app_id)
            assert messaging_service.can_write(db, business_p, app_id)
            assert messaging_service.can_read(db, admin_p, app_id)
            assert not messaging_service.can_write(db, admin_p, app_id)
            assert not messaging_service.can_read(db, stranger_p, app_id)

            engagement_service.transition_application(db, business_p, app_id, "completed")
            assert messaging_service.can_read(db, creator_p, app_id)
            assert not messaging_service.can_write(db, creator_p, app_id)

    def test_find_unlinked_is_empty_when_consistent(self, market, test_db):
        business = market.business()
        creator = market.creator()
        job = market.open_job(business)
        inv_id = market.invite(business, job["id"], creator.id).json()["id"]
        market.respond(creator, inv_id, "accepted")
        with test_db() as db:
            assert engagement_service.find_unlinked_invitations(db, Principal(user_id="a", role="admin")) == []
