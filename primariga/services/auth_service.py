"""
Authentication Service.

Single adapter between UI callers and the identity provider: sign-up,
sign-in (password and OAuth), sign-out, password reset and update,
session refresh, verification resend, session probing and auth-state
subscription.

Every acting operation returns ``Result[T, AppError]``; provider errors
are translated into the error taxonomy exactly once, logged through the
``ErrorReporter``, and never raised.  The probing operations
(``get_session`` / ``get_current_identity``) return ``None`` on any
failure instead.

The translated ``AppError`` keeps the provider's raw message for the
diagnostics log.  UI callers must pass failures through the
``AuthErrorSanitizer`` (or ``get_user_message``) before display.
"""

from __future__ import annotations

from typing import Callable, Optional, TypeVar

from primariga.config import AppConfig
from primariga.core.error_handler import ErrorReporter
from primariga.core.errors import (
    AppError,
    AuthenticationError,
    BusinessLogicError,
    ConfigurationError,
    ExternalServiceError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from primariga.core.result import Result, failure, success
from primariga.logger import StructuredLogger
from primariga.models.auth_models import (
    AuthStateChange,
    Identity,
    OAuthParams,
    ProviderError,
    Session,
    SignInParams,
    SignUpParams,
    UpdatePasswordParams,
)
from primariga.models.enums import AnalyticsEvent, AuthChangeEvent, AuthContext
from primariga.services.analytics import AnalyticsService
from primariga.services.identity_provider import IdentityProvider, Unsubscribe
from primariga.services.password_security import ensure_password_policy
from primariga.services.rate_limiter import LoginLockout, RateLimiter
from primariga.utils.security import mask_email, normalize_email, validate_email

T = TypeVar("T")

AuthChangeCallback = Callable[[AuthChangeEvent, Optional[Session]], None]

_IDENTITY_SERVICE: str = "Supabase Auth"

_EMAIL_IN_USE_MARKERS: tuple[str, ...] = (
    "already registered",
    "already exists",
    "already been registered",
)
_WEAK_PASSWORD_MARKERS: tuple[str, ...] = (
    "password should be",
    "password is too weak",
    "weak password",
    "weak_password",
)
_BAD_CREDENTIAL_MARKERS: tuple[str, ...] = (
    "invalid login credentials",
    "invalid email or password",
    "invalid credentials",
    "email not confirmed",
)


# ---------------------------------------------------------------------------
# Provider error translation
# ---------------------------------------------------------------------------

def map_provider_error(error: ProviderError, flow: AuthContext) -> AppError:
    """Translate a provider rejection into the error taxonomy.

    Rules are checked most-specific first:

    1. status 429 -> ``RateLimitError``
    2. status >= 500 -> ``ExternalServiceError``
    3. "already registered/exists" -> ``ValidationError`` (email_in_use)
    4. weak / short password -> ``ValidationError`` (weak_password)
    5. invalid credentials / unconfirmed email -> ``AuthenticationError``
    6. anything else -> ``AuthenticationError`` on sign-in flows,
       ``ValidationError`` on sign-up flows
    """
    message = error.message or "Authentication failed"
    text = message.lower()
    status = error.status

    if status == 429:
        return RateLimitError(message)
    if status is not None and status >= 500:
        return ExternalServiceError(_IDENTITY_SERVICE, message, status)
    if any(marker in text for marker in _EMAIL_IN_USE_MARKERS):
        return ValidationError(message, fields={"email": [message]}, reason="email_in_use")
    if any(marker in text for marker in _WEAK_PASSWORD_MARKERS):
        return ValidationError(message, fields={"password": [message]}, reason="weak_password")
    if any(marker in text for marker in _BAD_CREDENTIAL_MARKERS):
        return AuthenticationError(message, {"provider_status": status})
    if flow is AuthContext.SIGNUP:
        return ValidationError(message)
    return AuthenticationError(message, {"provider_status": status})


class AuthService:
    """Identity-provider adapter returning ``Result`` values.

    Parameters
    ----------
    provider:
        Identity provider implementation.
    config:
        Application configuration (redirect targets).
    reporter:
        Logs every translated failure once and forwards reportable ones.
    lockout:
        Consecutive-failure lockout for password sign-in.
    analytics:
        Fire-and-forget telemetry.
    logger:
        Structured JSON logger.
    rate_limiter:
        Optional sliding-window limiter applied to sign-in attempts on
        top of the lockout.
    """

    def __init__(
        self,
        provider: IdentityProvider,
        config: AppConfig,
        reporter: ErrorReporter,
        lockout: LoginLockout,
        analytics: AnalyticsService,
        logger: StructuredLogger,
        rate_limiter: Optional[RateLimiter] = None,
    ) -> None:
        self._provider = provider
        self._config = config
        self._reporter = reporter
        self._lockout = lockout
        self._analytics = analytics
        self._logger = logger
        self._rate_limiter = rate_limiter

    # ==================================================================
    # Internal helpers
    # ==================================================================

    def _execute(
        self,
        op: Callable[[], T],
        *,
        operation: str,
        flow: AuthContext,
        fallback_message: str,
    ) -> Result[T, AppError]:
        """Run one provider call and translate any failure."""
        try:
            return success(op())
        except AppError as exc:
            error: AppError = exc
        except ProviderError as exc:
            error = map_provider_error(exc, flow)
        except (ConnectionError, TimeoutError) as exc:
            error = NetworkError(f"Cannot reach the identity provider: {exc}")
        except RuntimeError as exc:
            # DatabaseManager raises RuntimeError when no client is configured.
            error = ConfigurationError(str(exc), config_key="SUPABASE_URL")
        except Exception as exc:
            self._logger.error("Unexpected %s failure: %s", operation, exc, exc_info=True)
            error = BusinessLogicError(fallback_message)

        self._reporter.log_error(error, {"operation": operation})
        return failure(error)

    def _invalid(self, error: AppError, operation: str) -> Result[T, AppError]:
        self._reporter.log_error(error, {"operation": operation})
        return failure(error)

    @staticmethod
    def _email_error(email: str) -> Optional[ValidationError]:
        check = validate_email(email)
        if check.is_valid:
            return None
        return ValidationError(
            check.error_message or "Invalid email",
            fields={"email": [check.error_message or "Invalid email"]},
        )

    # ==================================================================
    # Sign-up / sign-in
    # ==================================================================

    def sign_up(self, params: SignUpParams) -> Result[Identity, AppError]:
        """Register a new identity.

        Email format and the password policy are enforced before the
        provider is contacted.  ``full_name`` / ``username`` are sent as
        provider user metadata.
        """
        self._analytics.track(AnalyticsEvent.SIGNUP_STARTED, {"auth_method": "email"})

        email_error = self._email_error(params.email)
        if email_error is not None:
            return self._invalid(email_error, "sign_up")
        policy_error = ensure_password_policy(params.password)
        if policy_error is not None:
            return self._invalid(policy_error, "sign_up")

        email = normalize_email(params.email)
        metadata = {"full_name": params.full_name, "username": params.username}

        result = self._execute(
            lambda: self._provider.sign_up(
                email,
                params.password,
                metadata,
                redirect_to=self._config.OAUTH_REDIRECT_URL,
            ),
            operation="sign_up",
            flow=AuthContext.SIGNUP,
            fallback_message="Error during registration",
        )
        if result.is_failure():
            return result

        identity = result.value.identity
        if identity is None:
            return self._invalid(AuthenticationError("Registration failed"), "sign_up")

        self._analytics.track(AnalyticsEvent.SIGNUP_COMPLETED, {"auth_method": "email"})
        self._logger.info(
            "Identity registered: %s",
            mask_email(email),
            extra={"event": "SIGNUP_COMPLETED", "identity_id": identity.id},
        )
        return success(identity)

    def sign_in(self, params: SignInParams) -> Result[Session, AppError]:
        """Password sign-in, gated by the lockout and rate limiter.

        Only credential rejections count towards the lockout; transport
        and provider outages do not.
        """
        email = normalize_email(params.email)
        key = params.attempt_key or email
        self._analytics.track(AnalyticsEvent.LOGIN_STARTED, {"auth_method": "email"})

        is_locked, remaining = self._lockout.check(key)
        if is_locked:
            return self._invalid(
                RateLimitError(
                    f"Too many failed attempts. Please wait {remaining} seconds.",
                    retry_after=remaining,
                ),
                "sign_in",
            )
        if self._rate_limiter is not None and not self._rate_limiter.check(key):
            return self._invalid(RateLimitError(), "sign_in")

        if not email or not params.password:
            return self._invalid(
                ValidationError(
                    "Email and password are required",
                    fields={
                        name: ["Required."]
                        for name, value in (("email", email), ("password", params.password))
                        if not value
                    },
                ),
                "sign_in",
            )

        result = self._execute(
            lambda: self._provider.sign_in_with_password(email, params.password),
            operation="sign_in",
            flow=AuthContext.LOGIN,
            fallback_message="Error during sign-in",
        )
        if result.is_failure():
            if isinstance(result.error, AuthenticationError):
                self._lockout.record_failure(key)
            return result

        session = result.value.session
        if session is None:
            self._lockout.record_failure(key)
            return self._invalid(AuthenticationError("Sign-in failed"), "sign_in")

        self._lockout.reset(key)
        self._analytics.track(AnalyticsEvent.LOGIN_COMPLETED, {"auth_method": "email"})
        self._logger.info(
            "User authenticated: %s",
            mask_email(email),
            extra={"event": "LOGIN", "identity_id": session.identity.id},
        )
        return success(session)

    def sign_in_with_oauth(self, params: OAuthParams) -> Result[None, AppError]:
        """Start an OAuth sign-in; completion arrives as a ``SIGNED_IN`` event."""
        redirect_to = params.redirect_to or self._config.OAUTH_REDIRECT_URL
        self._analytics.track(
            AnalyticsEvent.LOGIN_STARTED, {"auth_method": params.provider.value}
        )
        return self._execute(
            lambda: self._discard(
                self._provider.sign_in_with_oauth(params.provider, redirect_to)
            ),
            operation="sign_in_with_oauth",
            flow=AuthContext.LOGIN,
            fallback_message="Error during OAuth sign-in",
        )

    def sign_out(self) -> Result[None, AppError]:
        return self._execute(
            self._provider.sign_out,
            operation="sign_out",
            flow=AuthContext.LOGIN,
            fallback_message="Error during sign-out",
        )

    # ==================================================================
    # Password management
    # ==================================================================

    def reset_password(self, email: str) -> Result[None, AppError]:
        """Ask the provider to email a password-reset link."""
        email_error = self._email_error(email)
        if email_error is not None:
            return self._invalid(email_error, "reset_password")

        normalized = normalize_email(email)
        result = self._execute(
            lambda: self._provider.reset_password_for_email(
                normalized, redirect_to=self._config.PASSWORD_RESET_REDIRECT_URL
            ),
            operation="reset_password",
            flow=AuthContext.LOGIN,
            fallback_message="Error during password reset",
        )
        if result.ok:
            self._analytics.track(AnalyticsEvent.PASSWORD_RESET_REQUESTED)
            self._logger.info(
                "Password reset requested for %s",
                mask_email(normalized),
                extra={"event": "PASSWORD_RESET_REQUESTED"},
            )
        return result

    def update_password(self, params: UpdatePasswordParams) -> Result[None, AppError]:
        """Change the signed-in user's password (after reset or from settings)."""
        policy_error = ensure_password_policy(params.new_password)
        if policy_error is not None:
            return self._invalid(policy_error, "update_password")

        return self._execute(
            lambda: self._discard(self._provider.update_password(params.new_password)),
            operation="update_password",
            flow=AuthContext.SIGNUP,
            fallback_message="Error while updating the password",
        )

    # ==================================================================
    # Session management
    # ==================================================================

    def refresh_session(self) -> Result[Session, AppError]:
        result = self._execute(
            self._provider.refresh_session,
            operation="refresh_session",
            flow=AuthContext.LOGIN,
            fallback_message="Error while renewing the session",
        )
        if result.is_failure():
            return result
        if result.value is None:
            return self._invalid(
                AuthenticationError("Unable to renew the session"), "refresh_session"
            )
        return success(result.value)

    def resend_verification(self, email: str) -> Result[None, AppError]:
        email_error = self._email_error(email)
        if email_error is not None:
            return self._invalid(email_error, "resend_verification")

        normalized = normalize_email(email)
        return self._execute(
            lambda: self._provider.resend_signup_verification(
                normalized, redirect_to=self._config.OAUTH_REDIRECT_URL
            ),
            operation="resend_verification",
            flow=AuthContext.SIGNUP,
            fallback_message="Error while sending the verification email",
        )

    def get_session(self) -> Optional[Session]:
        """Probe for the current session; any failure means "no session"."""
        try:
            return self._provider.get_session()
        except Exception as exc:
            self._logger.debug("get_session failed; treating as anonymous: %s", exc)
            return None

    def get_current_identity(self) -> Optional[Identity]:
        try:
            return self._provider.get_user()
        except Exception as exc:
            self._logger.debug("get_user failed; treating as anonymous: %s", exc)
            return None

    def is_authenticated(self) -> bool:
        return self.get_session() is not None

    def subscribe_to_changes(self, callback: AuthChangeCallback) -> Unsubscribe:
        """Forward ``SIGNED_IN`` / ``SIGNED_OUT`` / ``TOKEN_REFRESHED`` events.

        Other provider events are dropped.  Returns the unsubscribe
        handle; the caller owns it.
        """
        def _listener(change: AuthStateChange) -> None:
            event = change.known_event
            if event is None:
                self._logger.debug("Ignoring auth event %s", change.event)
                return
            callback(event, change.session)

        return self._provider.on_auth_state_change(_listener)

    @staticmethod
    def _discard(_value: object) -> None:
        return None
