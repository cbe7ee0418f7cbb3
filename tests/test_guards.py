"""Write-action and admin guards."""

import json

import pytest

from primariga.core.errors import AuthenticationError, AuthorizationError, DatabaseError
from primariga.core.result import success
from primariga.guards import admin_required, requires_auth, super_admin_required
from primariga.models.enums import ProfileRole
from primariga.models.profile import Profile
from primariga.services.admin_guard import AdminGuard

from conftest import make_session


class TestRequiresAuth:

    def test_blocks_anonymous_callers(self, store):
        calls = []

        @requires_auth(store)
        def like_book(book_id: str):
            calls.append(book_id)
            return success(None)

        result = like_book("b1")
        assert isinstance(result.error, AuthenticationError)
        assert calls == []

    def test_runs_when_authenticated(self, store):
        @requires_auth(store)
        def like_book(book_id: str):
            return success(book_id)

        store.set_session(make_session("user-1"))
        assert like_book("b1").value == "b1"
        assert like_book.__name__ == "like_book"


@pytest.fixture
def admin_guard(auth_service, profile_repo, logger, db):
    return AdminGuard(
        auth_service=auth_service,
        profiles=profile_repo,  # type: ignore[arg-type]
        logger=logger,
        audit_conn=db.sqlite,
    )


@pytest.fixture
def sign_in_as(provider, profile_repo):
    def _sign_in(role):
        provider.session = make_session("user-1")
        if role is not None:
            profile_repo.profiles["user-1"] = Profile(id="user-1", role=role)

    return _sign_in


class TestAdminGuard:

    @pytest.mark.parametrize(
        ("role", "admin", "super_admin"),
        [
            (ProfileRole.USER, False, False),
            (ProfileRole.ADMIN, True, False),
            (ProfileRole.SUPER_ADMIN, True, True),
        ],
    )
    def test_role_checks(self, admin_guard, profile_repo, role, admin, super_admin):
        profile_repo.profiles["u1"] = Profile(id="u1", role=role)
        assert admin_guard.is_admin("u1") is admin
        assert admin_guard.is_super_admin("u1") is super_admin

    def test_missing_profile_is_not_admin(self, admin_guard):
        assert not admin_guard.is_admin("nobody")
        assert not admin_guard.is_super_admin("nobody")

    def test_lookup_failure_is_not_admin(self, admin_guard, profile_repo):
        profile_repo.profiles["u1"] = Profile(id="u1", role=ProfileRole.ADMIN)
        profile_repo.fail_get = DatabaseError("down")
        assert not admin_guard.is_admin("u1")

    def test_current_user_role(self, admin_guard, sign_in_as):
        assert admin_guard.get_current_user_role() is None
        sign_in_as(ProfileRole.ADMIN)
        assert admin_guard.get_current_user_role() is ProfileRole.ADMIN

    def test_require_admin_when_signed_out(self, admin_guard):
        result = admin_guard.require_admin()
        assert isinstance(result.error, AuthenticationError)

    def test_require_admin_for_plain_user(self, admin_guard, sign_in_as):
        sign_in_as(ProfileRole.USER)
        result = admin_guard.require_admin()
        assert isinstance(result.error, AuthorizationError)
        assert result.error.status_class == 403

    def test_require_admin_without_profile(self, admin_guard, sign_in_as):
        sign_in_as(None)
        assert isinstance(admin_guard.require_admin().error, AuthorizationError)

    def test_require_admin_passes_for_both_admin_roles(self, admin_guard, sign_in_as):
        sign_in_as(ProfileRole.ADMIN)
        assert admin_guard.require_admin().ok
        sign_in_as(ProfileRole.SUPER_ADMIN)
        assert admin_guard.require_admin().ok

    def test_require_super_admin(self, admin_guard, sign_in_as):
        sign_in_as(ProfileRole.ADMIN)
        assert isinstance(admin_guard.require_super_admin().error, AuthorizationError)
        sign_in_as(ProfileRole.SUPER_ADMIN)
        assert admin_guard.require_super_admin().ok

    def test_log_admin_action_is_audited(self, admin_guard, sign_in_as, db, log_stream):
        sign_in_as(ProfileRole.ADMIN)
        admin_guard.log_admin_action(
            "BOOK_HIDDEN", resource_type="book", resource_id="b7", metadata={"reason": "spam"}
        )
        row = db.sqlite.execute(
            "SELECT action, entity_type, user_id, details FROM audit_log"
        ).fetchone()
        assert row[:3] == ("BOOK_HIDDEN", "Admin", "user-1")
        assert json.loads(row[3]) == {
            "resource_type": "book", "resource_id": "b7", "reason": "spam",
        }
        assert "BOOK_HIDDEN" in log_stream.getvalue()

    def test_log_admin_action_never_raises(self, admin_guard, db, log_stream):
        db.sqlite.execute("DROP TABLE audit_log")
        admin_guard.log_admin_action("BOOK_HIDDEN")
        assert "Failed to persist audit event" in log_stream.getvalue()


class TestRoleDecorators:

    def test_admin_required(self, admin_guard, sign_in_as):
        calls = []

        @admin_required(admin_guard)
        def hide_book(book_id: str):
            calls.append(book_id)
            return success(book_id)

        assert isinstance(hide_book("b1").error, AuthenticationError)
        sign_in_as(ProfileRole.USER)
        assert isinstance(hide_book("b1").error, AuthorizationError)
        assert calls == []

        sign_in_as(ProfileRole.ADMIN)
        assert hide_book("b1").value == "b1"
        assert calls == ["b1"]
        assert hide_book.__name__ == "hide_book"

    def test_super_admin_required(self, admin_guard, sign_in_as):
        @super_admin_required(admin_guard)
        def purge_catalog():
            return success("purged")

        sign_in_as(ProfileRole.ADMIN)
        assert isinstance(purge_catalog().error, AuthorizationError)
        sign_in_as(ProfileRole.SUPER_ADMIN)
        assert purge_catalog().value == "purged"
