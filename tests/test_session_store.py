"""Session store: auth transitions, cache invalidation, UI preferences."""

import pytest

from primariga.core.errors import NetworkError
from primariga.models.auth_models import ProviderError
from primariga.models.enums import AuthChangeEvent
from primariga.models.store_models import SessionStoreState
from primariga.services.query_cache import QueryKeys
from primariga.services.session_store import SessionStore

from conftest import make_session


def _seed_cache(cache):
    cache.set(QueryKeys.liked_books, ["b1"])
    cache.set(QueryKeys.is_book_liked("b1"), True)
    cache.set(QueryKeys.user_profile, {"id": "x"})


class TestStateInvariants:

    def test_anonymous_state_rejects_session(self):
        with pytest.raises(ValueError):
            SessionStoreState(session=make_session())

    def test_flags_must_agree(self):
        with pytest.raises(ValueError):
            SessionStoreState(identity_id="u", is_authenticated=True, is_anonymous=True)


class TestInitialize:

    def test_no_session_means_anonymous(self, store):
        state = store.initialize()
        assert state.is_anonymous
        assert state.profile is None
        assert store.requires_auth()

    def test_existing_session_authenticates_and_creates_profile(self, store, provider, profile_repo):
        provider.session = make_session("user-1")
        state = store.initialize()
        assert state.is_authenticated
        assert state.identity_id == "user-1"
        assert state.profile is not None
        assert state.profile.role.value == "user"
        assert profile_repo.created == ["user-1"]
        assert not store.requires_auth()

    def test_session_lookup_failure_is_treated_as_no_session(self, store, provider):
        provider.fail_next["get_session"] = ConnectionError("offline")
        assert store.initialize().is_anonymous

    def test_profile_failure_keeps_authentication(self, store, provider, profile_repo):
        profile_repo.fail_get = NetworkError("down")
        provider.session = make_session("user-1")
        state = store.initialize()
        assert state.is_authenticated
        assert state.profile is None


class TestTransitions:

    def test_identity_change_invalidates_identity_scoped_caches(self, store, query_cache):
        _seed_cache(query_cache)
        store.set_session(make_session("user-1"))
        assert not query_cache.contains(QueryKeys.liked_books)
        assert not query_cache.contains(QueryKeys.is_book_liked("b1"))
        assert query_cache.contains(QueryKeys.user_profile)

    def test_token_refresh_keeps_profile_and_caches(self, store, query_cache, profile_repo):
        store.set_session(make_session("user-1"))
        profile = store.state.profile
        _seed_cache(query_cache)
        count = query_cache.invalidation_count

        store.handle_auth_event(AuthChangeEvent.TOKEN_REFRESHED, make_session("user-1"))

        assert store.state.profile == profile
        assert query_cache.invalidation_count == count
        assert query_cache.contains(QueryKeys.liked_books)

    def test_signed_out_event(self, store):
        store.set_session(make_session("user-1"))
        store.handle_auth_event(AuthChangeEvent.SIGNED_OUT, None)
        assert store.state.is_anonymous
        assert store.state.session is None

    def test_set_user_authenticates_without_session(self, store, analytics_client):
        state = store.set_user("user-9")
        assert state.is_authenticated
        assert state.session is None
        assert analytics_client.identified == ["user-9"]
        assert store.set_user(None).is_anonymous

    def test_stale_profile_is_discarded(self, store, profile_repo):
        profile_repo.on_get = lambda _identity: store.set_session(None)
        state = store.set_session(make_session("user-1"))
        assert state.is_anonymous
        assert store.state.profile is None

    def test_transitions_are_audited(self, store, db):
        store.set_session(make_session("user-1"))
        store.set_session(None)
        actions = [
            row["action"]
            for row in db.sqlite.execute("SELECT action FROM audit_log ORDER BY id")
        ]
        assert actions == ["SIGNED_IN", "SIGNED_OUT"]


class TestLogout:

    def test_logout_resets_auth_and_ui(self, store, provider, analytics_client, query_cache):
        provider.session = make_session("user-1")
        store.initialize()
        store.set_genres(["fantasy"])
        store.set_language("en")
        store.add_seen_book("b1")
        _seed_cache(query_cache)

        state = store.logout()

        assert state.is_anonymous
        assert state.selected_genres == ()
        assert state.selected_language == "it"
        assert state.seen_book_ids == ()
        assert provider.call_count("sign_out") == 1
        assert analytics_client.resets == 1
        assert not query_cache.contains(QueryKeys.liked_books)

    def test_provider_failure_still_clears_local_state(self, store, provider):
        store.set_session(make_session("user-1"))
        provider.fail_next["sign_out"] = ProviderError("Bad gateway", 502)
        assert store.logout().is_anonymous


class TestObservers:

    def test_listeners_receive_each_state(self, store):
        seen = []
        unsubscribe = store.subscribe(seen.append)
        store.set_genres(["horror"])
        unsubscribe()
        store.set_genres(["poetry"])
        assert [state.selected_genres for state in seen] == [("horror",)]

    def test_listener_errors_do_not_propagate(self, store, log_stream):
        def broken(_state):
            raise RuntimeError("listener exploded")

        store.subscribe(broken)
        store.set_language("en")
        assert store.state.selected_language == "en"
        assert "listener exploded" in log_stream.getvalue()


class TestPreferences:

    def test_seen_books_are_idempotent(self, store):
        store.add_seen_book("b1")
        store.add_seen_book("b1")
        store.add_seen_book("b2")
        assert store.state.seen_book_ids == ("b1", "b2")
        store.clear_seen_books()
        assert store.state.seen_book_ids == ()

    def test_reset_filters(self, store):
        store.set_genres(["a", "b"])
        store.set_language("en")
        store.reset_filters()
        assert store.state.selected_genres == ()
        assert store.state.selected_language == "it"

    def test_preferences_survive_restart_but_seen_books_do_not(
        self, store, auth_service, profile_service, query_cache, analytics, logger, storage
    ):
        store.set_genres(["fantasy", "giallo"])
        store.set_language("en")
        store.add_seen_book("b1")

        restarted = SessionStore(
            auth_service, profile_service, query_cache, analytics, logger, storage=storage
        )
        state = restarted.hydrate()
        assert state.selected_genres == ("fantasy", "giallo")
        assert state.selected_language == "en"
        assert state.seen_book_ids == ()

    def test_corrupt_payload_is_ignored(self, store, storage):
        storage.set_item("primariga-storage", "{not json")
        assert store.hydrate().selected_language == "it"


class TestRefreshProfile:

    def test_anonymous_is_noop(self, store):
        result = store.refresh_profile()
        assert result.ok and result.value is None

    def test_overwrites_profile(self, store, profile_repo):
        store.set_session(make_session("user-1"))
        profile_repo.profiles["user-1"] = profile_repo.profiles["user-1"].model_copy(
            update={"bio": "reader"}
        )
        result = store.refresh_profile()
        assert result.value.bio == "reader"
        assert store.state.profile.bio == "reader"

    def test_failure_is_returned(self, store, profile_repo):
        store.set_session(make_session("user-1"))
        profile_repo.fail_get = NetworkError("down")
        assert store.refresh_profile().is_failure()
        assert store.state.profile is not None
