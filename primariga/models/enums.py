"""
Shared Enumerations for Primariga Models.

All string enumerations for type-safe field constraints.
StrEnum values compare equal to their string equivalents, so callers can
pass ``"login"`` where an ``AuthContext`` is expected.
"""

from __future__ import annotations
from enum import IntEnum, StrEnum


class AuthContext(StrEnum):
    """Which form an auth error came from; selects the fallback message."""

    LOGIN = "login"
    SIGNUP = "signup"


class AuthChangeEvent(StrEnum):
    """Identity-provider state-change events the store reacts to.

    The provider emits more events (``INITIAL_SESSION``,
    ``PASSWORD_RECOVERY`` ...); those are ignored by the auth core.
    """

    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class OAuthProviderName(StrEnum):
    GOOGLE = "google"
    APPLE = "apple"
    GITHUB = "github"
    FACEBOOK = "facebook"


class ProfileRole(StrEnum):
    """Application role stored on the profile row.

    New profiles are always created with ``USER``; ``ADMIN`` and
    ``SUPER_ADMIN`` are only granted server-side.
    """

    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"

    @property
    def is_admin(self) -> bool:
        return self in (ProfileRole.ADMIN, ProfileRole.SUPER_ADMIN)


class PasswordTier(IntEnum):
    VERY_WEAK = 0
    WEAK = 1
    FAIR = 2
    STRONG = 3
    VERY_STRONG = 4


class IdleState(StrEnum):
    """States of the idle-session monitor."""

    INACTIVE = "inactive"
    ACTIVE_WATCHING = "active-watching"
    WARNED = "warned"
    EXPIRED = "expired"
    PAUSED = "paused"


class AnalyticsEvent(StrEnum):
    """Telemetry events emitted by the auth core."""

    APP_FOREGROUNDED = "app_foregrounded"
    APP_BACKGROUNDED = "app_backgrounded"
    SIGNUP_STARTED = "signup_started"
    SIGNUP_COMPLETED = "signup_completed"
    LOGIN_STARTED = "login_started"
    LOGIN_COMPLETED = "login_completed"
    LOGIN_FAILED = "login_failed"
    LOGOUT = "logout"
    PASSWORD_RESET_REQUESTED = "password_reset_requested"
    ERROR_OCCURRED = "error_occurred"
