"""
Profile and identity tests
"""
import pytest

from fyndak.core.errors import InvalidState, NotFound, Unauthenticated
from fyndak.services import ProfileService


class TestProfiles:

    def test_created_profile_is_never_admin(self, db):
        profile = ProfileService.create_profile(db, "carol", "carol@example.com", "Carol Carlsson")

        assert profile.is_admin is False
        assert ProfileService.get_profile(db, "carol").email == "carol@example.com"

    @pytest.mark.parametrize("profile_id, email", [("alice", "new@example.com"), ("new", "alice@example.com")])
    def test_duplicate_id_or_email(self, db, alice, profile_id, email):
        with pytest.raises(InvalidState):
            ProfileService.create_profile(db, profile_id, email, "Someone")

    def test_update_ignores_admin_flag(self, db, alice):
        profile = ProfileService.update_profile(db, alice.id, {"phone": "+46700000000", "is_admin": True})

        assert profile.phone == "+46700000000"
        assert profile.is_admin is False

    @pytest.mark.parametrize("full_name", [None, ""])
    def test_full_name_cannot_be_cleared(self, db, alice, full_name):
        with pytest.raises(InvalidState):
            ProfileService.update_profile(db, alice.id, {"full_name": full_name})

        db.expire_all()
        assert ProfileService.get_profile(db, alice.id).full_name == "Alice Andersson"

    def test_missing_profile(self, db):
        with pytest.raises(NotFound):
            ProfileService.get_profile(db, "missing")


class TestResolveIdentity:

    def test_known_identity(self, db, bob):
        assert ProfileService.resolve_identity(db, "bob").id == bob.id

    @pytest.mark.parametrize("identity", [None, "", "ghost"])
    def test_missing_or_unknown_identity(self, db, identity):
        with pytest.raises(Unauthenticated):
            ProfileService.resolve_identity(db, identity)
