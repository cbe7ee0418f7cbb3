"""
Identity Provider Adapter.

``IdentityProvider`` is the logical contract the auth core consumes from
the external identity service.  Implementations raise ``ProviderError``
(``message`` + optional ``status``) for provider-side rejections and
``ConnectionError`` / ``TimeoutError`` for transport failures; nothing
else about the wire protocol leaks past this module.

``SupabaseIdentityProvider`` implements the contract over the synchronous
``supabase`` client's ``auth`` API.
"""

from __future__ import annotations

from typing import Callable, Mapping, Optional, Protocol, TypeVar

from supabase import AuthError, AuthRetryableError

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

T = TypeVar("T")

AuthStateListener = Callable[[AuthStateChange], None]
Unsubscribe = Callable[[], None]


class IdentityProvider(Protocol):
    def sign_up(
        self,
        email: str,
        password: str,
        metadata: Mapping[str, Optional[str]],
        redirect_to: Optional[str] = None,
    ) -> ProviderAuthResponse: ...  # noqa: E704

    def sign_in_with_password(self, email: str, password: str) -> ProviderAuthResponse: ...  # noqa: E704

    def sign_in_with_oauth(
        self, provider: OAuthProviderName, redirect_to: Optional[str] = None
    ) -> Optional[str]: ...  # noqa: E704

    def sign_out(self) -> None: ...  # noqa: E704

    def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None: ...  # noqa: E704

    def update_password(self, new_password: str) -> Identity: ...  # noqa: E704

    def get_session(self) -> Optional[Session]: ...  # noqa: E704

    def get_user(self) -> Optional[Identity]: ...  # noqa: E704

    def refresh_session(self) -> Optional[Session]: ...  # noqa: E704

    def resend_signup_verification(self, email: str, redirect_to: Optional[str] = None) -> None: ...  # noqa: E704

    def on_auth_state_change(self, listener: AuthStateListener) -> Unsubscribe: ...  # noqa: E704


# ---------------------------------------------------------------------------
# Supabase implementation
# ---------------------------------------------------------------------------

def _to_identity(user: object) -> Optional[Identity]:
    if user is None:
        return None
    return Identity.model_validate(user, from_attributes=True)


def _to_session(session: object) -> Optional[Session]:
    if session is None:
        return None
    identity = _to_identity(getattr(session, "user", None))
    if identity is None:
        return None
    return Session(
        access_token=getattr(session, "access_token"),
        refresh_token=getattr(session, "refresh_token"),
        identity=identity,
        expires_at=getattr(session, "expires_at", None),
    )


class SupabaseIdentityProvider:
    """``IdentityProvider`` over ``supabase.Client.auth``.

    Parameters
    ----------
    db:
        Connection layer holding the Supabase client.  When the client is
        not configured every call raises ``RuntimeError``; the Auth
        Service turns that into a ``ConfigurationError``.
    logger:
        Structured logger instance.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    def _call(self, op: Callable[[], T]) -> T:
        """Run one provider call, translating supabase errors.

        ``AuthRetryableError`` without an HTTP status is a transport
        failure and becomes ``ConnectionError``; every other ``AuthError``
        becomes ``ProviderError(message, status)``.
        """
        try:
            return op()
        except AuthRetryableError as exc:
            status = getattr(exc, "status", None) or None
            if status is None:
                raise ConnectionError(exc.message) from exc
            raise ProviderError(exc.message, status) from exc
        except AuthError as exc:
            raise ProviderError(exc.message, getattr(exc, "status", None)) from exc

    def sign_up(
        self,
        email: str,
        password: str,
        metadata: Mapping[str, Optional[str]],
        redirect_to: Optional[str] = None,
    ) -> ProviderAuthResponse:
        options: dict[str, object] = {
            "data": {key: value for key, value in metadata.items() if value is not None},
        }
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        response = self._call(
            lambda: self._db.supabase.auth.sign_up(
                {"email": email, "password": password, "options": options}
            )
        )
        return ProviderAuthResponse(
            identity=_to_identity(response.user),
            session=_to_session(response.session),
        )

    def sign_in_with_password(self, email: str, password: str) -> ProviderAuthResponse:
        response = self._call(
            lambda: self._db.supabase.auth.sign_in_with_password(
                {"email": email, "password": password}
            )
        )
        return ProviderAuthResponse(
            identity=_to_identity(response.user),
            session=_to_session(response.session),
        )

    def sign_in_with_oauth(
        self, provider: OAuthProviderName, redirect_to: Optional[str] = None
    ) -> Optional[str]:
        """Start the OAuth flow; returns the authorisation URL to open."""
        credentials: dict[str, object] = {"provider": provider.value}
        if redirect_to:
            credentials["options"] = {"redirect_to": redirect_to}
        response = self._call(
            lambda: self._db.supabase.auth.sign_in_with_oauth(credentials)
        )
        return getattr(response, "url", None)

    def sign_out(self) -> None:
        self._call(lambda: self._db.supabase.auth.sign_out())

    def reset_password_for_email(self, email: str, redirect_to: Optional[str] = None) -> None:
        options = {"redirect_to": redirect_to} if redirect_to else {}
        self._call(
            lambda: self._db.supabase.auth.reset_password_for_email(email, options)
        )

    def update_password(self, new_password: str) -> Identity:
        response = self._call(
            lambda: self._db.supabase.auth.update_user({"password": new_password})
        )
        identity = _to_identity(getattr(response, "user", None))
        if identity is None:
            raise ProviderError("Password update returned no user")
        return identity

    def get_session(self) -> Optional[Session]:
        return _to_session(self._call(lambda: self._db.supabase.auth.get_session()))

    def get_user(self) -> Optional[Identity]:
        response = self._call(lambda: self._db.supabase.auth.get_user())
        return _to_identity(getattr(response, "user", None)) if response else None

    def refresh_session(self) -> Optional[Session]:
        response = self._call(lambda: self._db.supabase.auth.refresh_session())
        return _to_session(getattr(response, "session", None))

    def resend_signup_verification(self, email: str, redirect_to: Optional[str] = None) -> None:
        credentials: dict[str, object] = {"type": "signup", "email": email}
        if redirect_to:
            credentials["options"] = {"email_redirect_to": redirect_to}
        self._call(lambda: self._db.supabase.auth.resend(credentials))

    def on_auth_state_change(self, listener: AuthStateListener) -> Unsubscribe:
        def _forward(event: object, session: object) -> None:
            try:
                change = AuthStateChange(event=str(event), session=_to_session(session))
            except Exception as exc:
                self._logger.warning("Dropped malformed auth event %s: %s", event, exc)
                return
            listener(change)

        subscription = self._db.supabase.auth.on_auth_state_change(_forward)
        return subscription.unsubscribe
