"""Result container and error taxonomy shared by every service."""

from primariga.core.error_handler import (
    ErrorMonitor,
    ErrorReporter,
    format_error_response,
    get_user_message,
    normalize_error,
    should_report,
)
from primariga.core.errors import (
    AppError,
    AuthenticationError,
    AuthorizationError,
    BusinessLogicError,
    ConfigurationError,
    DatabaseError,
    ErrorKind,
    ExternalServiceError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from primariga.core.result import Failure, Result, Success, combine, failure, success, try_catch

__all__ = [
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "BusinessLogicError",
    "ConfigurationError",
    "DatabaseError",
    "ErrorKind",
    "ErrorMonitor",
    "ErrorReporter",
    "ExternalServiceError",
    "Failure",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "Result",
    "Success",
    "ValidationError",
    "combine",
    "failure",
    "format_error_response",
    "get_user_message",
    "normalize_error",
    "should_report",
    "success",
    "try_catch",
]
