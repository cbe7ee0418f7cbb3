"""
Application Error Taxonomy.

A closed set of error kinds.  Each kind is tagged by ``ErrorKind`` and
carries a stable ``code``, an HTTP-like ``status_class`` and a read-only
``metadata`` bag.  The concrete subclasses exist so every kind has its own
payload (``fields``, ``retry_after``, ``service_name`` ...) and so callers
can ``isinstance``-check; boundaries that need exhaustiveness match on
``error.kind`` instead.

Errors are constructed at the failure site and never mutated afterwards.
"""

from __future__ import annotations

from enum import StrEnum
from types import MappingProxyType
from typing import Mapping, Optional, Union

__all__ = [
    "AppError",
    "AuthenticationError",
    "AuthorizationError",
    "BusinessLogicError",
    "ConfigurationError",
    "DatabaseError",
    "ErrorKind",
    "ExternalServiceError",
    "MetadataValue",
    "NetworkError",
    "NotFoundError",
    "RateLimitError",
    "ValidationError",
    "create_error",
    "is_app_error",
    "is_database_error",
    "is_network_error",
    "is_not_found_error",
    "is_validation_error",
]

MetadataValue = Union[str, int, float, bool, None, list[str], dict[str, list[str]]]


class ErrorKind(StrEnum):
    """Tag identifying each member of the closed error taxonomy."""

    VALIDATION = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    AUTHENTICATION = "AUTHENTICATION_ERROR"
    AUTHORIZATION = "AUTHORIZATION_ERROR"
    DATABASE = "DATABASE_ERROR"
    NETWORK = "NETWORK_ERROR"
    RATE_LIMIT = "RATE_LIMIT_ERROR"
    CONFIGURATION = "CONFIGURATION_ERROR"
    EXTERNAL_SERVICE = "EXTERNAL_SERVICE_ERROR"
    BUSINESS_LOGIC = "BUSINESS_LOGIC_ERROR"


class AppError(Exception):
    """Base class of the taxonomy.  Never instantiated directly."""

    kind: ErrorKind
    status_class: int

    def __init__(
        self,
        message: str,
        metadata: Optional[Mapping[str, MetadataValue]] = None,
    ) -> None:
        super().__init__(message)
        self.message: str = message
        self.metadata: Mapping[str, MetadataValue] = MappingProxyType(
            {key: value for key, value in (metadata or {}).items() if value is not None}
        )

    @property
    def code(self) -> str:
        return self.kind.value

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict[str, object]:
        return {
            "name": self.name,
            "code": self.code,
            "message": self.message,
            "status_class": self.status_class,
            "metadata": dict(self.metadata),
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, AppError):
            return NotImplemented
        return (
            type(self) is type(other)
            and self.message == other.message
            and dict(self.metadata) == dict(other.metadata)
        )

    def __hash__(self) -> int:
        return hash((type(self), self.message))

    def __repr__(self) -> str:
        return f"{self.name}(code={self.code!r}, message={self.message!r})"


class ValidationError(AppError):
    kind = ErrorKind.VALIDATION
    status_class = 400

    def __init__(
        self,
        message: str = "Invalid data",
        fields: Optional[Mapping[str, list[str]]] = None,
        reason: Optional[str] = None,
    ) -> None:
        self.fields: dict[str, list[str]] = {
            path: list(messages) for path, messages in (fields or {}).items()
        }
        super().__init__(
            message,
            {"fields": self.fields or None, "reason": reason},
        )


class NotFoundError(AppError):
    kind = ErrorKind.NOT_FOUND
    status_class = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        message = (
            f"{resource} with ID {resource_id} not found"
            if resource_id
            else f"{resource} not found"
        )
        super().__init__(message, {"resource": resource, "id": resource_id})


class AuthenticationError(AppError):
    kind = ErrorKind.AUTHENTICATION
    status_class = 401

    def __init__(
        self,
        message: str = "Authentication required",
        metadata: Optional[Mapping[str, MetadataValue]] = None,
    ) -> None:
        super().__init__(message, metadata)


class AuthorizationError(AppError):
    kind = ErrorKind.AUTHORIZATION
    status_class = 403

    def __init__(self, message: str = "Insufficient permissions") -> None:
        super().__init__(message)


class DatabaseError(AppError):
    kind = ErrorKind.DATABASE
    status_class = 500

    def __init__(
        self,
        message: str = "Database error",
        original_error: Optional[BaseException] = None,
    ) -> None:
        self.original_error = original_error
        super().__init__(
            message,
            {"original_error": str(original_error) if original_error else None},
        )


class NetworkError(AppError):
    kind = ErrorKind.NETWORK
    status_class = 503

    def __init__(self, message: str = "Connection error", url: Optional[str] = None) -> None:
        self.url = url
        super().__init__(message, {"url": url})


class RateLimitError(AppError):
    kind = ErrorKind.RATE_LIMIT
    status_class = 429

    def __init__(
        self,
        message: str = "Too many requests, try again later",
        retry_after: Optional[int] = None,
    ) -> None:
        self.retry_after = retry_after
        super().__init__(message, {"retry_after": retry_after})


class ConfigurationError(AppError):
    kind = ErrorKind.CONFIGURATION
    status_class = 500

    def __init__(self, message: str, config_key: Optional[str] = None) -> None:
        self.config_key = config_key
        super().__init__(message, {"config_key": config_key})


class ExternalServiceError(AppError):
    kind = ErrorKind.EXTERNAL_SERVICE
    status_class = 502

    def __init__(
        self,
        service_name: str,
        message: Optional[str] = None,
        status: Optional[int] = None,
    ) -> None:
        self.service_name = service_name
        super().__init__(
            message or f"External service error: {service_name}",
            {"service_name": service_name, "provider_status": status},
        )


class BusinessLogicError(AppError):
    kind = ErrorKind.BUSINESS_LOGIC
    status_class = 422

    def __init__(self, message: str) -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Type guards
# ---------------------------------------------------------------------------

def is_app_error(error: object) -> bool:
    return isinstance(error, AppError)


def is_validation_error(error: object) -> bool:
    return isinstance(error, ValidationError)


def is_not_found_error(error: object) -> bool:
    return isinstance(error, NotFoundError)


def is_database_error(error: object) -> bool:
    return isinstance(error, DatabaseError)


def is_network_error(error: object) -> bool:
    return isinstance(error, NetworkError)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

def create_error(
    kind: ErrorKind,
    message: str,
    metadata: Optional[Mapping[str, object]] = None,
) -> AppError:
    """Build an ``AppError`` of *kind*, pulling payload fields from *metadata*."""
    meta = dict(metadata or {})
    match kind:
        case ErrorKind.VALIDATION:
            fields = meta.get("fields")
            return ValidationError(message, fields if isinstance(fields, dict) else None)
        case ErrorKind.NOT_FOUND:
            resource_id = meta.get("id")
            return NotFoundError(
                str(meta.get("resource") or "Resource"),
                str(resource_id) if resource_id is not None else None,
            )
        case ErrorKind.AUTHENTICATION:
            return AuthenticationError(message)
        case ErrorKind.AUTHORIZATION:
            return AuthorizationError(message)
        case ErrorKind.DATABASE:
            original = meta.get("original_error")
            return DatabaseError(
                message, original if isinstance(original, BaseException) else None
            )
        case ErrorKind.NETWORK:
            url = meta.get("url")
            return NetworkError(message, str(url) if url is not None else None)
        case ErrorKind.RATE_LIMIT:
            retry_after = meta.get("retry_after")
            return RateLimitError(
                message, int(retry_after) if isinstance(retry_after, (int, float)) else None
            )
        case ErrorKind.CONFIGURATION:
            key = meta.get("config_key")
            return ConfigurationError(message, str(key) if key is not None else None)
        case ErrorKind.EXTERNAL_SERVICE:
            return ExternalServiceError(str(meta.get("service_name") or "unknown"), message)
        case ErrorKind.BUSINESS_LOGIC:
            return BusinessLogicError(message)
