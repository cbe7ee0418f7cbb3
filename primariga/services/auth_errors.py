"""
Authentication Error Sanitizer.

Maps any auth failure onto a small, closed vocabulary of user-safe
messages.  The mapping never reveals whether an account exists:

- on the login form, "invalid credentials", "user not found" and
  "email not confirmed" all produce the same string;
- on the sign-up form, "email already registered" produces a message
  that mentions neither the email nor the fact that it exists.

The raw error is always written to the diagnostics log before the safe
message is returned, so detail is withheld from the UI but never lost.
"""

from __future__ import annotations

import threading
from enum import StrEnum
from typing import Optional, Union

from primariga.core.errors import (
    AppError,
    ExternalServiceError,
    NetworkError,
    RateLimitError,
    ValidationError,
)
from primariga.logger import StructuredLogger, get_logger
from primariga.models.auth_models import ProviderError
from primariga.models.enums import AnalyticsEvent, AuthContext
from primariga.services.analytics import AnalyticsService

__all__ = [
    "AuthErrorMessage",
    "AuthErrorSanitizer",
    "outward_message",
    "sanitize_auth_error",
    "sanitize_oauth_error",
]

SanitizableError = Union[BaseException, str]


class AuthErrorMessage(StrEnum):
    LOGIN_FAILED = "Incorrect email or password. Please try again."
    SIGNUP_FAILED = "Unable to create the account. Check the details you entered."
    EMAIL_IN_USE = "Unable to complete registration. Try again with different details."
    NETWORK_ERROR = "Connection problem. Check your network."
    RATE_LIMITED = "Too many attempts. Please try again later."
    WEAK_PASSWORD = "The password does not meet the security requirements."
    OAUTH_ERROR = "Unable to complete sign-in with the provider. Please try again."
    GENERIC_ERROR = "Something went wrong. Please try again later."


# Case-insensitive substrings of raw provider text, first match wins.
_PATTERNS: tuple[tuple[str, AuthErrorMessage], ...] = (
    ("invalid login credentials", AuthErrorMessage.LOGIN_FAILED),
    ("invalid email or password", AuthErrorMessage.LOGIN_FAILED),
    ("email not confirmed", AuthErrorMessage.LOGIN_FAILED),
    ("user not found", AuthErrorMessage.LOGIN_FAILED),
    ("user already registered", AuthErrorMessage.EMAIL_IN_USE),
    ("email already registered", AuthErrorMessage.EMAIL_IN_USE),
    ("email already exists", AuthErrorMessage.EMAIL_IN_USE),
    ("already been registered", AuthErrorMessage.EMAIL_IN_USE),
    ("password should be at least", AuthErrorMessage.WEAK_PASSWORD),
    ("password is too weak", AuthErrorMessage.WEAK_PASSWORD),
    ("failed to fetch", AuthErrorMessage.NETWORK_ERROR),
    ("network request failed", AuthErrorMessage.NETWORK_ERROR),
    ("networkerror", AuthErrorMessage.NETWORK_ERROR),
    ("too many requests", AuthErrorMessage.RATE_LIMITED),
    ("rate limit exceeded", AuthErrorMessage.RATE_LIMITED),
    ("oauth error", AuthErrorMessage.OAUTH_ERROR),
    ("provider error", AuthErrorMessage.OAUTH_ERROR),
)

_FALLBACK: dict[AuthContext, AuthErrorMessage] = {
    AuthContext.LOGIN: AuthErrorMessage.LOGIN_FAILED,
    AuthContext.SIGNUP: AuthErrorMessage.SIGNUP_FAILED,
}


def _raw_text(error: SanitizableError) -> str:
    if isinstance(error, str):
        return error
    if isinstance(error, (AppError, ProviderError)):
        return error.message
    return str(error)


def _error_name(error: SanitizableError) -> str:
    return "str" if isinstance(error, str) else type(error).__name__


def outward_message(
    error: SanitizableError,
    context: AuthContext | str = AuthContext.LOGIN,
) -> AuthErrorMessage:
    """Pick the user-safe message for *error*.  No side effects.

    Raw text patterns are checked first, then the error's kind, then
    the per-context fallback.
    """
    ctx = AuthContext(context)
    text = _raw_text(error).lower()
    for pattern, message in _PATTERNS:
        if pattern in text:
            # The login form never hints at account existence.
            if ctx is AuthContext.LOGIN and message is AuthErrorMessage.EMAIL_IN_USE:
                return AuthErrorMessage.LOGIN_FAILED
            return message

    if isinstance(error, RateLimitError) or (
        isinstance(error, ProviderError) and error.status == 429
    ):
        return AuthErrorMessage.RATE_LIMITED
    if isinstance(error, (NetworkError, ConnectionError, TimeoutError)):
        return AuthErrorMessage.NETWORK_ERROR
    if isinstance(error, ValidationError):
        reason = error.metadata.get("reason")
        if reason == "weak_password":
            return AuthErrorMessage.WEAK_PASSWORD
        if reason == "email_in_use" and ctx is AuthContext.SIGNUP:
            return AuthErrorMessage.EMAIL_IN_USE
    if isinstance(error, ExternalServiceError):
        return AuthErrorMessage.GENERIC_ERROR

    return _FALLBACK[ctx]


class AuthErrorSanitizer:
    """Logs the raw error, tracks it without PII, returns the safe message.

    Parameters
    ----------
    logger:
        Diagnostics side channel; receives the full raw error.
    analytics:
        Telemetry facade; receives only the error class name.
    """

    def __init__(self, logger: StructuredLogger, analytics: AnalyticsService) -> None:
        self._logger = logger
        self._analytics = analytics

    def sanitize(
        self,
        error: SanitizableError,
        context: AuthContext | str = AuthContext.LOGIN,
    ) -> str:
        ctx = AuthContext(context)
        name = _error_name(error)
        self._logger.warning(
            "[Auth Error] %s during %s: %s",
            name,
            ctx.value,
            _raw_text(error),
            extra={
                "context": ctx.value,
                "error_name": name,
                "error_status": getattr(error, "status", None)
                or getattr(error, "status_class", None),
            },
        )

        if ctx is AuthContext.LOGIN:
            self._analytics.track(
                AnalyticsEvent.LOGIN_FAILED,
                {"auth_method": "email", "error_type": name},
            )
        else:
            self._analytics.track(
                AnalyticsEvent.ERROR_OCCURRED,
                {"error_type": "signup_error", "error_name": name},
            )

        return outward_message(error, ctx).value

    def sanitize_oauth(self, error: SanitizableError) -> str:
        """OAuth failures always surface the single OAuth message."""
        name = _error_name(error)
        self._logger.warning(
            "[OAuth Error] %s: %s",
            name,
            _raw_text(error),
            extra={"error_name": name},
        )
        self._analytics.track(
            AnalyticsEvent.ERROR_OCCURRED,
            {"error_type": "oauth_error", "error_name": name},
        )
        return AuthErrorMessage.OAUTH_ERROR.value


# ---------------------------------------------------------------------------
# Module-level convenience for callers without a container
# ---------------------------------------------------------------------------

_default: Optional[AuthErrorSanitizer] = None
_default_lock = threading.Lock()


def _default_sanitizer() -> AuthErrorSanitizer:
    global _default
    if _default is None:
        with _default_lock:
            if _default is None:
                log = get_logger("primariga.auth_errors")
                _default = AuthErrorSanitizer(log, AnalyticsService(log))
    return _default


def sanitize_auth_error(
    error: SanitizableError,
    context: AuthContext | str = AuthContext.LOGIN,
) -> str:
    return _default_sanitizer().sanitize(error, context)


def sanitize_oauth_error(error: SanitizableError) -> str:
    return _default_sanitizer().sanitize_oauth(error)
