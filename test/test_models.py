"""
Tests for role resolution and profile views.
"""

from etfuel.auth.models import UserRole, login_user_view, public_profile, resolve_role
from etfuel.identity.interface import AccountRecord


class TestResolveRole:
    def test_stored_role(self) -> None:
        assert resolve_role({"role": "admin"}) == "admin"

    def test_baseline_role(self) -> None:
        assert resolve_role({}) == UserRole.UNION.value
        assert resolve_role({"role": None}) == "union"
        assert resolve_role(None) == "union"


class TestProfileViews:
    def test_public_profile_strips_hash(self) -> None:
        profile = {"name": "Alice", "passwordHash": "$2b$04$abc"}

        assert public_profile(profile) == {"name": "Alice"}
        assert "passwordHash" in profile

    def test_login_view_prefers_account_fields(self) -> None:
        account = AccountRecord(uid="uid-1", email="alice@example.com", display_name="Alice")
        profile = {
            "name": "Old Name",
            "email": "stale@example.com",
            "passwordHash": "$2b$04$abc",
            "status": "active",
        }

        view = login_user_view(account, profile, "driver")

        assert view == {
            "uid": "uid-1",
            "email": "alice@example.com",
            "name": "Alice",
            "emailVerified": False,
            "role": "driver",
            "status": "active",
        }

    def test_login_view_falls_back_to_profile_name(self) -> None:
        account = AccountRecord(uid="uid-1", email="alice@example.com")

        assert login_user_view(account, {"name": "Alice"}, "union")["name"] == "Alice"
