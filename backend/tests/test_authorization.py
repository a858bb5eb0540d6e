import pytest

from marketplace.services import authorization as authz
from marketplace.services.authorization import GUEST, Outcome, Principal
from marketplace.services.errors import Forbidden, NotFound, Unauthenticated

CREATOR = Principal(user_id="u1", role="creator", creator_id="c1")
OTHER_CREATOR = Principal(user_id="u2", role="creator", creator_id="c2")
BUSINESS = Principal(user_id="u3", role="business", business_id="b1")
ADMIN = Principal(user_id="u4", role="admin")


class TestOwnership:
    def test_creator_owns_own_resource(self):
        assert authz.is_owner(CREATOR, creator_id="c1").allowed

    def test_creator_does_not_own_others(self):
        decision = authz.is_owner(OTHER_CREATOR, creator_id="c1")
        assert decision.outcome is Outcome.FORBIDDEN

    def test_business_owns_by_business_id(self):
        assert authz.is_owner(BUSINESS, business_id="b1").allowed
        assert not authz.is_owner(BUSINESS, creator_id="b1").allowed

    def test_admin_passes_every_check(self):
        assert authz.is_owner(ADMIN, creator_id="c1").allowed
        assert authz.is_owner(ADMIN, business_id="zzz").allowed

    def test_guest_is_unauthenticated_not_forbidden(self):
        assert authz.is_owner(GUEST, creator_id="c1").outcome is Outcome.UNAUTHENTICATED

    def test_missing_resource_is_not_found(self):
        assert authz.is_owner(CREATOR, exists=False).outcome is Outcome.NOT_FOUND


class TestParticipants:
    def test_both_sides_participate(self):
        assert authz.is_participant(CREATOR, "c1", "b1").allowed
        assert authz.is_participant(BUSINESS, "c1", "b1").allowed

    def test_third_party_is_forbidden(self):
        assert authz.is_participant(OTHER_CREATOR, "c1", "b1").outcome is Outcome.FORBIDDEN

    def test_admin_only_when_allowed(self):
        assert not authz.is_participant(ADMIN, "c1", "b1").allowed
        assert authz.is_participant(ADMIN, "c1", "b1", allow_admin=True).allowed


class TestEnforce:
    def test_enforce_maps_outcomes(self):
        authz.enforce(authz.ALLOW)
        with pytest.raises(Unauthenticated):
            authz.enforce(authz.require_role(GUEST, "creator"))
        with pytest.raises(Forbidden):
            authz.enforce(authz.require_role(CREATOR, "business"))
        with pytest.raises(NotFound):
            authz.enforce(authz.is_owner(CREATOR, exists=False))

    def test_party_id(self):
        assert CREATOR.party_id("creator") == "c1"
        assert CREATOR.party_id("business") is None
        assert ADMIN.party_id("creator") is None
