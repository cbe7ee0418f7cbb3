"""
Data Models Package.

Re-exports the Pydantic models and enumerations for short imports::

    from primariga.models import Session, Identity, Profile, SessionStoreState
"""

from __future__ import annotations

from primariga.models.auth_models import (
    AuthStateChange,
    Identity,
    LockoutState,
    OAuthParams,
    ProviderAuthResponse,
    ProviderError,
    Session,
    SignInParams,
    SignUpParams,
    UpdatePasswordParams,
    ValidationResult,
)
from primariga.models.enums import (
    AnalyticsEvent,
    AuthChangeEvent,
    AuthContext,
    IdleState,
    OAuthProviderName,
    PasswordTier,
    ProfileRole,
)
from primariga.models.profile import Profile
from primariga.models.store_models import PersistedPreferences, SessionStoreState

__all__ = [
    "AnalyticsEvent",
    "AuthChangeEvent",
    "AuthContext",
    "AuthStateChange",
    "Identity",
    "IdleState",
    "LockoutState",
    "OAuthParams",
    "OAuthProviderName",
    "PasswordTier",
    "PersistedPreferences",
    "Profile",
    "ProfileRole",
    "ProviderAuthResponse",
    "ProviderError",
    "Session",
    "SessionStoreState",
    "SignInParams",
    "SignUpParams",
    "UpdatePasswordParams",
    "ValidationResult",
]
