"""
Session Store.

Process-wide, observable container for auth state (identity, session,
profile, authenticated/anonymous flag) plus the UI-preference fields
that share it.

Rules the store maintains:

- State is replaced wholesale on every mutation (``SessionStoreState`` is
  frozen), so readers never observe a torn state.  Concurrent writers
  (UI actions vs. provider callbacks) resolve last-write-wins.
- Every transition that changes ``is_authenticated`` or ``identity_id``
  invalidates the identity-scoped query-cache entries before the action
  returns.
- Only ``selected_genres`` / ``selected_language`` are persisted.  Auth
  truth is re-derived from the identity provider at start-up.
- Profile loading is best-effort: a failure leaves ``profile`` as
  ``None`` without affecting ``is_authenticated``.  A profile fetched
  for a session that has since been replaced is discarded.
"""

from __future__ import annotations

import sqlite3
import threading
from typing import Callable, Iterable, Optional

import pydantic

from primariga.core.errors import AppError
from primariga.core.result import Result, success
from primariga.logger import StructuredLogger
from primariga.models.auth_models import Session
from primariga.models.enums import AuthChangeEvent
from primariga.models.profile import Profile
from primariga.models.store_models import (
    DEFAULT_LANGUAGE,
    PersistedPreferences,
    SessionStoreState,
)
from primariga.services.analytics import AnalyticsService
from primariga.services.auth_service import AuthService
from primariga.services.kv_storage import KeyValueStorage
from primariga.services.profile_service import ProfileService
from primariga.services.query_cache import QueryCache, QueryKeys
from primariga.utils.audit import DetailValue, log_audit_event

StateListener = Callable[[SessionStoreState], None]


class SessionStore:
    """Single source of truth for who is signed in.

    Parameters
    ----------
    auth_service:
        Identity-provider adapter (session probing, sign-out).
    profile_service:
        Lazily provisions and fetches the application profile.
    query_cache:
        Data-fetch cache whose identity-scoped entries are invalidated on
        every auth transition.
    analytics:
        Telemetry facade (``identify`` / ``reset``).
    logger:
        Structured logger instance.
    storage:
        Optional persisted key-value storage for UI preferences.
    storage_key:
        Key under which preferences are stored.
    default_language:
        Language restored by ``reset_filters`` and ``logout``.
    audit_conn:
        Optional SQLite connection for persisted audit events.
    """

    def __init__(
        self,
        auth_service: AuthService,
        profile_service: ProfileService,
        query_cache: QueryCache,
        analytics: AnalyticsService,
        logger: StructuredLogger,
        storage: Optional[KeyValueStorage] = None,
        storage_key: str = "primariga-storage",
        default_language: str = DEFAULT_LANGUAGE,
        audit_conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        self._auth = auth_service
        self._profiles = profile_service
        self._cache = query_cache
        self._analytics = analytics
        self._logger = logger
        self._storage = storage
        self._storage_key = storage_key
        self._default_language = default_language
        self._audit_conn = audit_conn

        self._lock = threading.RLock()
        self._state = SessionStoreState(selected_language=default_language)
        # Bumped on every auth transition; stale profile fetches compare it.
        self._generation: int = 0
        self._listeners: list[StateListener] = []

    # ==================================================================
    # Observation
    # ==================================================================

    @property
    def state(self) -> SessionStoreState:
        with self._lock:
            return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call *listener* with the new state after every replacement."""
        with self._lock:
            self._listeners.append(listener)

        def _unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _unsubscribe

    def requires_auth(self) -> bool:
        """``True`` while anonymous: gate write actions on this."""
        return not self.state.is_authenticated

    # ==================================================================
    # Internal helpers
    # ==================================================================

    def _notify(self, state: SessionStoreState) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception as exc:
                self._logger.warning("Session store listener failed: %s", exc, exc_info=True)

    def _commit(self, **changes: object) -> SessionStoreState:
        """Replace the state with a copy carrying *changes*.  Lock held by caller."""
        self._state = SessionStoreState.model_validate({**dict(self._state), **changes})
        return self._state

    def _invalidate_identity_caches(self) -> None:
        self._cache.invalidate_many(QueryKeys.IDENTITY_SCOPED)

    def _audit(self, action: str, identity_id: Optional[str], **details: DetailValue) -> None:
        log_audit_event(
            self._logger,
            action=action,
            identity_id=identity_id,
            details=dict(details),
            conn=self._audit_conn,
        )

    def _go_anonymous(self, *, reset_ui: bool, reason: str) -> SessionStoreState:
        with self._lock:
            previous = self._state.identity_id
            self._generation += 1
            changes: dict[str, object] = {
                "identity_id": None,
                "session": None,
                "is_authenticated": False,
                "is_anonymous": True,
                "profile": None,
            }
            if reset_ui:
                changes.update(
                    selected_genres=(),
                    selected_language=self._default_language,
                    seen_book_ids=(),
                )
            new_state = self._commit(**changes)

        self._invalidate_identity_caches()
        if previous is not None:
            self._audit("SIGNED_OUT", previous, reason=reason)
        if reset_ui:
            self._persist_preferences(new_state)
        self._notify(new_state)
        return new_state

    def _go_authenticated(
        self, identity_id: str, session: Optional[Session]
    ) -> SessionStoreState:
        with self._lock:
            previous = self._state.identity_id
            same_identity = previous == identity_id
            self._generation += 1
            generation = self._generation
            new_state = self._commit(
                identity_id=identity_id,
                session=session,
                is_authenticated=True,
                is_anonymous=False,
                # A token refresh keeps the profile already loaded.
                profile=self._state.profile if same_identity else None,
            )

        if not same_identity:
            self._invalidate_identity_caches()
            self._audit("SIGNED_IN", identity_id, with_session=session is not None)
            self._analytics.identify(identity_id)
        self._notify(new_state)

        if same_identity and new_state.profile is not None:
            return new_state
        return self._load_profile(identity_id, generation)

    def _load_profile(self, identity_id: str, generation: int) -> SessionStoreState:
        result = self._profiles.get_or_create(identity_id)
        if result.is_failure():
            self._logger.warning(
                "Profile unavailable for %s: %s", identity_id, result.error.code,
            )
            return self.state

        with self._lock:
            if generation != self._generation or self._state.identity_id != identity_id:
                self._logger.debug("Discarding stale profile for %s", identity_id)
                return self._state
            new_state = self._commit(profile=result.value)
        self._notify(new_state)
        return new_state

    # ==================================================================
    # Auth actions
    # ==================================================================

    def initialize(self) -> SessionStoreState:
        """Derive auth state from the provider at start-up.

        Any probing failure is treated as "no session".
        """
        try:
            session = self._auth.get_session()
        except Exception as exc:
            self._logger.warning("Session lookup failed during initialise: %s", exc)
            session = None

        if session is not None:
            return self.set_session(session)
        return self._go_anonymous(reset_ui=False, reason="no_session")

    def set_session(self, session: Optional[Session]) -> SessionStoreState:
        if session is None:
            return self._go_anonymous(reset_ui=False, reason="session_cleared")
        return self._go_authenticated(session.identity.id, session)

    def set_user(self, identity_id: Optional[str]) -> SessionStoreState:
        """Narrow entry point when only the identity id is known."""
        if identity_id is None:
            return self._go_anonymous(reset_ui=False, reason="user_cleared")
        return self._go_authenticated(identity_id, None)

    def logout(self) -> SessionStoreState:
        """Sign out, forget the analytics identity, reset auth and UI state.

        A provider sign-out failure is logged; the local logout still
        completes.
        """
        result = self._auth.sign_out()
        if result.is_failure():
            self._logger.warning(
                "Provider sign-out failed (%s); clearing local state anyway.",
                result.error.code,
            )
        self._analytics.reset()
        return self._go_anonymous(reset_ui=True, reason="logout")

    def refresh_profile(self) -> Result[Optional[Profile], AppError]:
        """Re-fetch and overwrite ``profile``; no-op while anonymous."""
        with self._lock:
            identity_id = self._state.identity_id
            generation = self._generation
        if identity_id is None:
            return success(None)

        result = self._profiles.get(identity_id)
        if result.is_failure():
            self._logger.warning("Profile refresh failed: %s", result.error.code)
            return result

        with self._lock:
            if generation != self._generation:
                return success(self._state.profile)
            new_state = self._commit(profile=result.value)
        self._notify(new_state)
        return success(new_state.profile)

    def handle_auth_event(self, event: AuthChangeEvent, session: Optional[Session]) -> None:
        """Provider auth-state channel entry point."""
        self._logger.info("Auth event %s", event.value, extra={"event": event.value})
        if event is AuthChangeEvent.SIGNED_OUT:
            self.set_session(None)
        elif session is not None:
            self.set_session(session)

    # ==================================================================
    # UI preference slice
    # ==================================================================

    def set_genres(self, genres: Iterable[str]) -> None:
        with self._lock:
            new_state = self._commit(selected_genres=tuple(genres))
        self._persist_preferences(new_state)
        self._notify(new_state)

    def set_language(self, language: str) -> None:
        with self._lock:
            new_state = self._commit(selected_language=language)
        self._persist_preferences(new_state)
        self._notify(new_state)

    def reset_filters(self) -> None:
        with self._lock:
            new_state = self._commit(
                selected_genres=(), selected_language=self._default_language
            )
        self._persist_preferences(new_state)
        self._notify(new_state)

    def add_seen_book(self, book_id: str) -> None:
        """Record a seen book once; repeated calls are no-ops."""
        with self._lock:
            if book_id in self._state.seen_book_ids:
                return
            new_state = self._commit(seen_book_ids=(*self._state.seen_book_ids, book_id))
        self._notify(new_state)

    def clear_seen_books(self) -> None:
        with self._lock:
            new_state = self._commit(seen_book_ids=())
        self._notify(new_state)

    # ==================================================================
    # Persistence
    # ==================================================================

    def _persist_preferences(self, state: SessionStoreState) -> None:
        if self._storage is None:
            return
        prefs = PersistedPreferences(
            selected_genres=list(state.selected_genres),
            selected_language=state.selected_language,
        )
        if not self._storage.set_item(self._storage_key, prefs.model_dump_json()):
            self._logger.warning("UI preferences were not persisted.")

    def hydrate(self) -> SessionStoreState:
        """Restore persisted UI preferences; corrupt payloads are ignored."""
        if self._storage is None:
            return self.state
        raw = self._storage.get_item(self._storage_key)
        if raw is None:
            return self.state
        try:
            prefs = PersistedPreferences.model_validate_json(raw)
        except pydantic.ValidationError as exc:
            self._logger.warning("Ignoring corrupt persisted preferences: %s", exc)
            return self.state

        with self._lock:
            new_state = self._commit(
                selected_genres=tuple(prefs.selected_genres),
                selected_language=prefs.selected_language,
            )
        self._notify(new_state)
        return new_state
