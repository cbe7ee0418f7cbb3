"""
Error Normalisation & Reporting.

``normalize_error`` folds anything raised into the ``AppError`` taxonomy
exactly once, as close to the origin as possible.  ``ErrorReporter`` then
logs the normalised error and forwards it to the monitoring collaborator
when ``should_report`` says so.  UI code only ever sees the text from
``get_user_message`` (or the auth sanitizer), never the raw message.
"""

from __future__ import annotations

from typing import Callable, Mapping, Optional, Protocol, TypeVar, runtime_checkable

from pydantic import ValidationError as PydanticValidationError

from primariga.core.errors import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    BusinessLogicError,
    ErrorKind,
    ValidationError,
)
from primariga.logger import StructuredLogger

T = TypeVar("T")

__all__ = [
    "ErrorMonitor",
    "ErrorReporter",
    "UNKNOWN_ERROR_MESSAGE",
    "format_error_response",
    "get_user_message",
    "normalize_error",
    "should_report",
]

UNKNOWN_ERROR_MESSAGE: str = "An unknown error occurred"

_USER_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.VALIDATION: "Some of the data you entered is not valid. Check it and try again.",
    ErrorKind.AUTHENTICATION: "You need to sign in to continue.",
    ErrorKind.AUTHORIZATION: "You do not have permission for this operation.",
    ErrorKind.DATABASE: "Temporary technical problem. Try again in a moment.",
    ErrorKind.NETWORK: "Connection problem. Check your internet connection.",
    ErrorKind.RATE_LIMIT: "Too many requests. Wait a few seconds and try again.",
    ErrorKind.CONFIGURATION: "The app is not configured correctly. Try again later.",
    ErrorKind.EXTERNAL_SERVICE: "A service we depend on is unavailable. Try again later.",
    ErrorKind.BUSINESS_LOGIC: "Something went wrong. Try again later.",
}


def normalize_error(error: object) -> AppError:
    """Convert any raised value into an ``AppError``.

    - ``AppError`` instances are returned unchanged (idempotent).
    - ``pydantic.ValidationError`` becomes a ``ValidationError`` whose
      ``fields`` map dotted field paths to their messages.
    - Any other ``Exception`` becomes a ``BusinessLogicError`` with its
      message.
    - Anything else becomes a ``BusinessLogicError`` with a generic text.
    """
    if isinstance(error, AppError):
        return error

    if isinstance(error, PydanticValidationError):
        fields: dict[str, list[str]] = {}
        for issue in error.errors():
            path = ".".join(str(part) for part in issue.get("loc", ()))
            fields.setdefault(path, []).append(str(issue.get("msg", "")))
        return ValidationError("Validation errors", fields)

    if isinstance(error, Exception):
        return BusinessLogicError(str(error) or UNKNOWN_ERROR_MESSAGE)

    return BusinessLogicError(UNKNOWN_ERROR_MESSAGE)


def should_report(error: AppError) -> bool:
    """Decide whether *error* goes to the monitoring collaborator.

    Server-class errors (>= 500) always do.  Client-class errors only do
    when they are authentication or authorisation failures.
    """
    if 400 <= error.status_class < 500:
        return isinstance(error, (AuthenticationError, AuthorizationError))
    return error.status_class >= 500


def get_user_message(error: AppError) -> str:
    """Return a canned, user-safe message for *error*.

    Not-found messages are built from the resource name only and are
    passed through; every other kind is replaced by a fixed template.
    """
    if error.kind is ErrorKind.NOT_FOUND:
        return error.message
    return _USER_MESSAGES[error.kind]


def format_error_response(error: AppError) -> dict[str, dict[str, object]]:
    """Render *error* as the payload shape handed to UI callers."""
    body: dict[str, object] = {
        "code": error.code,
        "message": get_user_message(error),
        "status_class": error.status_class,
    }
    if error.metadata:
        body["details"] = dict(error.metadata)
    return {"error": body}


@runtime_checkable
class ErrorMonitor(Protocol):
    """Crash/error monitoring collaborator (e.g. a Sentry-style client)."""

    def capture_exception(
        self, error: AppError, context: Mapping[str, object]
    ) -> None: ...  # noqa: E704


class ErrorReporter:
    """Logs normalised errors and forwards reportable ones to monitoring.

    Parameters
    ----------
    logger:
        Structured logger; every error is logged here exactly once.
    monitor:
        Optional monitoring collaborator.  Only consulted when
        ``report_enabled`` is ``True`` (production builds).
    report_enabled:
        Whether reportable errors are forwarded to *monitor*.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        monitor: Optional[ErrorMonitor] = None,
        report_enabled: bool = True,
    ) -> None:
        self._logger = logger
        self._monitor = monitor
        self._report_enabled = report_enabled

    def log_error(
        self,
        error: AppError,
        context: Optional[Mapping[str, object]] = None,
    ) -> None:
        ctx = dict(context or {})
        self._logger.error(
            "[%s] %s",
            error.code,
            error.message,
            extra={
                "error_code": error.code,
                "status_class": error.status_class,
                "error_type": error.name,
                "metadata": dict(error.metadata),
                "context": ctx,
            },
        )

        if not (self._report_enabled and self._monitor and should_report(error)):
            return

        try:
            self._monitor.capture_exception(
                error,
                {"error_code": error.code, "error_type": error.name, **ctx},
            )
        except Exception as exc:
            self._logger.warning(
                "Error monitor rejected %s: %s", error.code, exc,
            )

    def handle(
        self,
        fn: Callable[[], T],
        context: Optional[Mapping[str, object]] = None,
    ) -> tuple[Optional[T], Optional[AppError]]:
        """Run *fn*; on exception normalise, log and return the error."""
        try:
            return fn(), None
        except Exception as exc:
            app_error = normalize_error(exc)
            self.log_error(app_error, context)
            return None, app_error
