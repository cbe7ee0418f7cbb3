"""
Auth Core Services Package.

Contains the identity-provider adapter, the Auth Service, the session
store and its collaborators (query cache, preference storage, analytics,
error monitoring) and the idle-session timeout.

The ``create_services()`` factory wires every repository and service together,
returning a ``ServiceContainer`` that the application layer (screens /
commands) can consume without knowing the internal dependency graph.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from primariga.config import AppConfig
from primariga.core.error_handler import ErrorMonitor, ErrorReporter
from primariga.database import DatabaseManager
from primariga.logger import StructuredLogger, get_logger
from primariga.repositories.profile_repository import ProfileRepository
from primariga.schema import initialize_schema
from primariga.services.admin_guard import AdminGuard
from primariga.services.analytics import AnalyticsClient, AnalyticsService
from primariga.services.auth_errors import AuthErrorSanitizer
from primariga.services.auth_service import AuthService
from primariga.services.identity_provider import (
    IdentityProvider,
    SupabaseIdentityProvider,
    Unsubscribe,
)
from primariga.services.kv_storage import SQLiteKeyValueStorage
from primariga.services.monitoring import LoggingErrorMonitor
from primariga.services.profile_service import ProfileService
from primariga.services.query_cache import QueryCache
from primariga.services.rate_limiter import LoginLockout, RateLimiter
from primariga.services.session_store import SessionStore
from primariga.services.session_timeout import (
    ExpiryCallback,
    SessionTimeout,
    WarningCallback,
)


def _noop() -> None:
    return None


@dataclass
class ServiceContainer:
    """Fully-wired auth core.

    ``shutdown()`` releases the provider subscription handle and stops
    the idle-timeout driver.  It is idempotent; the database connection
    stays owned by the caller.
    """

    auth_service: AuthService
    session_store: SessionStore
    session_timeout: SessionTimeout
    sanitizer: AuthErrorSanitizer
    profile_service: ProfileService
    query_cache: QueryCache
    storage: SQLiteKeyValueStorage
    analytics: AnalyticsService
    reporter: ErrorReporter
    lockout: LoginLockout
    rate_limiter: Optional[RateLimiter]
    admin_guard: AdminGuard
    _unsubscribe: Unsubscribe = field(default=_noop, repr=False)
    _shut_down: bool = field(default=False, repr=False)

    def shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        self._unsubscribe()
        self.session_timeout.close()


def create_services(
    config: AppConfig,
    db: DatabaseManager,
    provider: Optional[IdentityProvider] = None,
    analytics_client: Optional[AnalyticsClient] = None,
    monitor: Optional[ErrorMonitor] = None,
    clock: Callable[[], float] = time.monotonic,
    start_timeout_driver: bool = True,
    on_session_warning: Optional[WarningCallback] = None,
    on_session_expired: Optional[ExpiryCallback] = None,
    logger: Optional[StructuredLogger] = None,
) -> ServiceContainer:
    """
    Wire all repositories and services together.

    This is the single composition root for the auth core.  The
    application entry-point calls this once at startup.  The store is
    subscribed to provider auth events exactly once here, preferences
    are hydrated and the initial auth state is derived from the
    provider before the container is returned.

    Args:
        config: Application configuration.
        db: Initialised DatabaseManager (SQLite always, Supabase optional).
        provider: Identity provider; defaults to Supabase over ``db``.
        analytics_client: Optional product-analytics client.
        monitor: Optional error monitor; defaults to LoggingErrorMonitor.
            Only consulted in production.
        clock: Monotonic clock shared by lockout and idle timeout.
        start_timeout_driver: Start the idle-timeout thread on sign-in.
        on_session_warning: UI hook for the pre-expiry warning.
        on_session_expired: UI hook called after a forced logout.
        logger: Logger shared by the services.

    Returns:
        ServiceContainer holding the fully-wired instances.
    """
    logger = logger or get_logger("services")

    initialize_schema(db.sqlite, logger)

    # ------------------------------------------------------------------
    # 1. Repositories (data-access layer)
    # ------------------------------------------------------------------
    profile_repo = ProfileRepository(db=db, logger=logger)

    # ------------------------------------------------------------------
    # 2. Leaf services (no service dependencies)
    # ------------------------------------------------------------------
    analytics = AnalyticsService(logger=logger, client=analytics_client)
    reporter = ErrorReporter(
        logger=logger,
        monitor=monitor or LoggingErrorMonitor(logger=get_logger("monitoring")),
        report_enabled=config.is_production,
    )
    lockout = LoginLockout(
        logger=logger,
        max_attempts=config.LOGIN_MAX_FAILED_ATTEMPTS,
        lockout_s=config.LOGIN_LOCKOUT_S,
        clock=clock,
    )
    rate_limiter = (
        RateLimiter(
            limit=config.LOGIN_RATE_LIMIT,
            window_s=config.LOGIN_RATE_WINDOW_S,
            clock=clock,
        )
        if config.LOGIN_RATE_LIMIT > 0
        else None
    )
    sanitizer = AuthErrorSanitizer(logger=logger, analytics=analytics)
    query_cache = QueryCache(logger=logger)
    storage = SQLiteKeyValueStorage(db=db, logger=logger)
    profile_service = ProfileService(repo=profile_repo, logger=logger)

    auth_service = AuthService(
        provider=provider or SupabaseIdentityProvider(db=db, logger=logger),
        config=config,
        reporter=reporter,
        lockout=lockout,
        rate_limiter=rate_limiter,
        analytics=analytics,
        logger=logger,
    )
    admin_guard = AdminGuard(
        auth_service=auth_service,
        profiles=profile_repo,
        logger=logger,
        audit_conn=db.sqlite,
    )

    # ------------------------------------------------------------------
    # 3. Session state (depends on the services above)
    # ------------------------------------------------------------------
    session_store = SessionStore(
        auth_service=auth_service,
        profile_service=profile_service,
        query_cache=query_cache,
        analytics=analytics,
        logger=logger,
        storage=storage,
        storage_key=config.STORAGE_KEY,
        default_language=config.DEFAULT_LANGUAGE,
        audit_conn=db.sqlite,
    )
    session_timeout = SessionTimeout(
        store=session_store,
        analytics=analytics,
        logger=logger,
        timeout_s=config.SESSION_TIMEOUT_S,
        warning_s=config.SESSION_WARNING_S,
        check_interval_s=config.SESSION_CHECK_INTERVAL_S,
        on_warning=on_session_warning,
        on_expired=on_session_expired,
        clock=clock,
        start_driver=start_timeout_driver,
    )

    # ------------------------------------------------------------------
    # 4. Provider event channel + start-up state
    # ------------------------------------------------------------------
    try:
        unsubscribe = auth_service.subscribe_to_changes(session_store.handle_auth_event)
    except RuntimeError as exc:
        logger.warning("Auth event channel unavailable: %s", exc)
        unsubscribe = _noop

    session_store.hydrate()
    session_store.initialize()

    return ServiceContainer(
        auth_service=auth_service,
        session_store=session_store,
        session_timeout=session_timeout,
        sanitizer=sanitizer,
        profile_service=profile_service,
        query_cache=query_cache,
        storage=storage,
        analytics=analytics,
        reporter=reporter,
        lockout=lockout,
        rate_limiter=rate_limiter,
        admin_guard=admin_guard,
        _unsubscribe=unsubscribe,
    )


__all__ = [
    "ServiceContainer",
    "create_services",
]
