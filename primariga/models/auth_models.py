"""
Authentication Pipeline Models.

Pydantic models for the logical contract of the identity provider
(``Identity``, ``Session``, ``ProviderError``) and for the request value
objects accepted by ``AuthService``.

Identity and session records are owned by the provider; the client only
holds read-only copies, so both models are frozen.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from primariga.models.enums import AuthChangeEvent, OAuthProviderName


# ---------------------------------------------------------------------------
# Provider-owned records
# ---------------------------------------------------------------------------

class Identity(BaseModel):
    """Read-only copy of the provider's user record."""

    id: str
    email: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = {"frozen": True, "from_attributes": True}


class Session(BaseModel):
    """Access + refresh credential pair bound to one identity.

    Attributes
    ----------
    access_token:
        Short-lived bearer credential.
    refresh_token:
        Long-lived credential used by ``AuthService.refresh_session``.
    identity:
        The identity the session was issued to.
    expires_at:
        Unix timestamp (seconds) at which the access token expires.
    """

    access_token: str = Field(repr=False)
    refresh_token: str = Field(repr=False)
    identity: Identity
    expires_at: Optional[int] = None

    model_config = {"frozen": True, "from_attributes": True}


class ProviderAuthResponse(BaseModel):
    """``{identity, session}`` pair returned by sign-up / sign-in."""

    identity: Optional[Identity] = None
    session: Optional[Session] = None

    model_config = {"frozen": True}


class AuthStateChange(BaseModel):
    """One message on the provider's auth-state channel.

    ``event`` is kept as a raw string because the provider emits events
    the core does not handle; ``known_event`` narrows it.
    """

    event: str
    session: Optional[Session] = None

    model_config = {"frozen": True}

    @property
    def known_event(self) -> Optional[AuthChangeEvent]:
        try:
            return AuthChangeEvent(self.event)
        except ValueError:
            return None


class ProviderError(Exception):
    """Logical error shape raised by an ``IdentityProvider``: message + status."""

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.message: str = message
        self.status: Optional[int] = status

    def __repr__(self) -> str:
        return f"ProviderError(message={self.message!r}, status={self.status!r})"


# ---------------------------------------------------------------------------
# Request value objects
# ---------------------------------------------------------------------------

class SignUpParams(BaseModel):
    email: str
    password: str = Field(repr=False)
    full_name: Optional[str] = None
    username: Optional[str] = None

    model_config = {"frozen": True}


class SignInParams(BaseModel):
    """Email/password sign-in request.

    ``attempt_key`` identifies the login form instance for lockout
    accounting; when omitted the normalised email is used.
    """

    email: str
    password: str = Field(repr=False)
    attempt_key: Optional[str] = None

    model_config = {"frozen": True}


class OAuthParams(BaseModel):
    provider: OAuthProviderName
    redirect_to: Optional[str] = None

    model_config = {"frozen": True}


class UpdatePasswordParams(BaseModel):
    new_password: str = Field(repr=False)

    model_config = {"frozen": True}


class ValidationResult(BaseModel):
    """Result of a single client-side field validation check."""

    is_valid: bool
    error_message: Optional[str] = None
    problems: list[str] = Field(default_factory=list)


class LockoutState(BaseModel):
    """Per-key sign-in lockout counters.

    ``locked_until`` is a reading of the lockout's monotonic clock, not a
    wall-clock timestamp; the state is process-local and never persisted.
    """

    failed_attempts: int = 0
    locked_until: Optional[float] = None
