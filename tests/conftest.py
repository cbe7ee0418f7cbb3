"""
Shared fixtures and fakes.

Nothing here touches the network: the identity provider and the profiles
table are in-memory fakes, SQLite runs in ``:memory:`` and time comes
from a manually advanced clock.
"""

from __future__ import annotations

import io
import itertools
import uuid
from typing import Callable, Mapping, Optional

import pytest

from primariga.config import AppConfig
from primariga.core.error_handler import ErrorReporter
from primariga.core.errors import AppError
from primariga.core.result import Result, failure, success
from primariga.database import DatabaseManager
from primariga.logger import StructuredLogger
from primariga.models.auth_models import (
    AuthStateChange,
    Identity,
    ProviderAuthResponse,
    ProviderError,
    Session,
)
from primariga.models.enums import OAuthProviderName
from primariga.models.profile import Profile
from primariga.schema import initialize_schema
from primariga.services.analytics import AnalyticsService
from primariga.services.auth_service import AuthService
from primariga.services.kv_storage import SQLiteKeyValueStorage
from primariga.services.profile_service import ProfileService
from primariga.services.query_cache import QueryCache
from primariga.services.rate_limiter import LoginLockout
from primariga.services.session_store import SessionStore

VALID_PASSWORD = "Str0ng!Pass"


def make_session(identity_id: str = "user-1", email: str = "mario@example.com") -> Session:
    return Session(
        access_token=f"access-{identity_id}",
        refresh_token=f"refresh-{identity_id}",
        identity=Identity(id=identity_id, email=email),
        expires_at=1_900_000_000,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------

class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeIdentityProvider:
    """In-memory ``IdentityProvider``.

    ``fail_next[method] = exc`` makes the next call of *method* raise.
    """

    def __init__(self) -> None:
        self.users: dict[str, tuple[str, Identity]] = {}
        self.session: Optional[Session] = None
        self.fail_next: dict[str, BaseException] = {}
        self.calls: list[str] = []
        self.last_sign_up: Optional[dict[str, object]] = None
        self.last_redirect: Optional[str] = None
        self.listeners: list[Callable[[AuthStateChange], None]] = []
        self._ids = itertools.count(1)

    def _enter(self, name: str) -> None:
        self.calls.append(name)
        error = self.fail_next.pop(name, None)
        if error is not None:
            raise error

    def call_count(self, name: str) -> int:
        return self.calls.count(name)

    def add_user(self, email: str, password: str, identity_id: Optional[str] = None) -> Identity:
        identity = Identity(id=identity_id or f"user-{next(self._ids)}", email=email)
        self.users[email] = (password, identity)
        return identity

    # -- IdentityProvider ------------------------------------------------

    def sign_up(
        self,
        email: str,
        password: str,
        metadata: Mapping[str, Optional[str]],
        redirect_to: Optional[str] = None,
    ) -> ProviderAuthResponse:
        self._enter("sign_up")
        if email in self.users:
            raise ProviderError("User already registered", 422)
        identity = self.add_user(email, password)
        self.last_sign_up = {"email": email, "metadata": dict(metadata)}
        self.last_redirect = redirect_to
        return ProviderAuthResponse(identity=identity, session=None)

    def sign_in_with_password(self, email: str, password: str) -> ProviderAuthResponse:
        self._enter("sign_in_with_password")
        entry = self.users.get(email)
        if entry is None or entry[0] != password:
            raise ProviderError("Invalid login credentials", 400)
        identity = entry[1]
        self.session = make_session(identity.id, email)
        return ProviderAuthResponse(identity=identity, session=self.session)

    def sign_in_with_oauth(
        self, provider: OAuthProviderName, redirect_to: Optional[str] = None
    ) -> Optional[str]:
        self._enter("sign_in_with_oauth")
        self.last_redirect = redirect_to
        return f"https://auth.example.com/authorize?provider={provider.value}"

    def sign_out(self) -> None:
        self._enter("sign_out")
        self.session = None

    def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        self._enter("reset_password_for_email")
        self.last_redirect = redirect_to

    def update_password(self, new_password: str) -> Identity:
        self._enter("update_password")
        if self.session is None:
            raise ProviderError("Auth session missing!", 401)
        return self.session.identity

    def get_session(self) -> Optional[Session]:
        self._enter("get_session")
        return self.session

    def get_user(self) -> Optional[Identity]:
        self._enter("get_user")
        return self.session.identity if self.session else None

    def refresh_session(self) -> Optional[Session]:
        self._enter("refresh_session")
        return self.session

    def resend_signup_verification(self, email: str, redirect_to: Optional[str] = None) -> None:
        self._enter("resend_signup_verification")
        self.last_redirect = redirect_to

    def on_auth_state_change(
        self, listener: Callable[[AuthStateChange], None]
    ) -> Callable[[], None]:
        self.listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self.listeners:
                self.listeners.remove(listener)

        return _unsubscribe

    def emit(self, event: str, session: Optional[Session]) -> None:
        change = AuthStateChange(event=event, session=session)
        for listener in list(self.listeners):
            listener(change)


class FakeProfileRepository:
    """Duck-typed ``ProfileRepository`` over a dict."""

    def __init__(self) -> None:
        self.profiles: dict[str, Profile] = {}
        self.fail_get: Optional[AppError] = None
        self.on_get: Optional[Callable[[str], None]] = None
        self.created: list[str] = []

    def get_by_id(self, identity_id: str) -> Result[Optional[Profile], AppError]:
        if self.on_get is not None:
            hook, self.on_get = self.on_get, None
            hook(identity_id)
        if self.fail_get is not None:
            return failure(self.fail_get)
        return success(self.profiles.get(identity_id))

    def create(
        self,
        identity_id: str,
        full_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Result[Profile, AppError]:
        profile = Profile(id=identity_id, full_name=full_name, username=username)
        self.profiles[identity_id] = profile
        self.created.append(identity_id)
        return success(profile)

    def update(
        self, identity_id: str, changes: Mapping[str, Optional[str]]
    ) -> Result[Profile, AppError]:
        current = self.profiles[identity_id]
        updated = current.model_copy(update=dict(changes))
        self.profiles[identity_id] = updated
        return success(updated)


class RecordingAnalyticsClient:
    def __init__(self) -> None:
        self.events: list[tuple[str, dict[str, object]]] = []
        self.identified: list[str] = []
        self.resets: int = 0

    def capture(self, event: str, properties: Optional[Mapping[str, object]] = None) -> None:
        self.events.append((event, dict(properties or {})))

    def identify(self, distinct_id: str, traits: Optional[Mapping[str, object]] = None) -> None:
        self.identified.append(distinct_id)

    def reset(self) -> None:
        self.resets += 1

    def names(self) -> list[str]:
        return [name for name, _ in self.events]

    def props_for(self, event: str) -> list[dict[str, object]]:
        return [props for name, props in self.events if name == event]


class RecordingMonitor:
    def __init__(self) -> None:
        self.captured: list[tuple[AppError, dict[str, object]]] = []

    def capture_exception(self, error: AppError, context: Mapping[str, object]) -> None:
        self.captured.append((error, dict(context)))


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def log_stream() -> io.StringIO:
    return io.StringIO()


@pytest.fixture
def logger(log_stream: io.StringIO, tmp_path) -> StructuredLogger:
    # Unique name: StructuredLogger only attaches handlers once per name.
    return StructuredLogger(
        name=f"test-{uuid.uuid4().hex}",
        stream=log_stream,
        log_file=str(tmp_path / "test.log"),
    )


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(_env_file=None, SUPABASE_URL="")


@pytest.fixture
def db(logger: StructuredLogger):
    manager = DatabaseManager(
        supabase_url="",
        supabase_key="",
        sqlite_path=":memory:",
        logger=logger,
    )
    initialize_schema(manager.sqlite, logger)
    yield manager
    manager.close()


@pytest.fixture
def provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def analytics_client() -> RecordingAnalyticsClient:
    return RecordingAnalyticsClient()


@pytest.fixture
def analytics(logger: StructuredLogger, analytics_client: RecordingAnalyticsClient) -> AnalyticsService:
    return AnalyticsService(logger=logger, client=analytics_client)


@pytest.fixture
def monitor() -> RecordingMonitor:
    return RecordingMonitor()


@pytest.fixture
def reporter(logger: StructuredLogger, monitor: RecordingMonitor) -> ErrorReporter:
    return ErrorReporter(logger=logger, monitor=monitor, report_enabled=True)


@pytest.fixture
def lockout(logger: StructuredLogger, clock: FakeClock) -> LoginLockout:
    return LoginLockout(logger=logger, max_attempts=5, lockout_s=300, clock=clock)


@pytest.fixture
def auth_service(
    provider: FakeIdentityProvider,
    config: AppConfig,
    reporter: ErrorReporter,
    lockout: LoginLockout,
    analytics: AnalyticsService,
    logger: StructuredLogger,
) -> AuthService:
    return AuthService(
        provider=provider,
        config=config,
        reporter=reporter,
        lockout=lockout,
        analytics=analytics,
        logger=logger,
    )


@pytest.fixture
def profile_repo() -> FakeProfileRepository:
    return FakeProfileRepository()


@pytest.fixture
def profile_service(profile_repo: FakeProfileRepository, logger: StructuredLogger) -> ProfileService:
    return ProfileService(repo=profile_repo, logger=logger)  # type: ignore[arg-type]


@pytest.fixture
def query_cache(logger: StructuredLogger) -> QueryCache:
    return QueryCache(logger=logger)


@pytest.fixture
def storage(db: DatabaseManager, logger: StructuredLogger) -> SQLiteKeyValueStorage:
    return SQLiteKeyValueStorage(db=db, logger=logger)


@pytest.fixture
def store(
    auth_service: AuthService,
    profile_service: ProfileService,
    query_cache: QueryCache,
    analytics: AnalyticsService,
    logger: StructuredLogger,
    storage: SQLiteKeyValueStorage,
    db: DatabaseManager,
) -> SessionStore:
    return SessionStore(
        auth_service=auth_service,
        profile_service=profile_service,
        query_cache=query_cache,
        analytics=analytics,
        logger=logger,
        storage=storage,
        audit_conn=db.sqlite,
    )
