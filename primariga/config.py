"""
Application Configuration.

Pydantic Settings model for the Primariga authentication core.
All configuration is loaded from environment variables and ``.env`` files.
Inject an ``AppConfig`` instance via dependency injection where needed.
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Literal, Optional

from pydantic_settings import BaseSettings
from pydantic import SecretStr, model_validator


class AppConfig(BaseSettings):
    """Central configuration loaded from environment variables and defaults."""

    ENVIRONMENT: Literal["development", "production"] = "development"

    # --- Supabase (identity provider + profiles table) ---
    SUPABASE_URL: str = ""
    SUPABASE_ANON_KEY: SecretStr = SecretStr("")

    # --- Redirect targets handed to the identity provider ---
    OAUTH_REDIRECT_URL: str = "primariga://auth/callback"
    PASSWORD_RESET_REDIRECT_URL: str = "primariga://auth/reset-password"

    # --- Idle session monitor ---
    SESSION_TIMEOUT_S: float = 30 * 60
    SESSION_WARNING_S: float = 5 * 60
    SESSION_CHECK_INTERVAL_S: float = 60.0

    # --- Sign-in lockout ---
    LOGIN_MAX_FAILED_ATTEMPTS: int = 5
    LOGIN_LOCKOUT_S: float = 5 * 60
    # Sliding-window cap on sign-in attempts per form; 0 disables it.
    LOGIN_RATE_LIMIT: int = 10
    LOGIN_RATE_WINDOW_S: float = 60.0

    # --- Persisted UI preferences ---
    STORAGE_KEY: str = "primariga-storage"
    DEFAULT_LANGUAGE: str = "it"
    SQLITE_PATH: str = "primariga_local.db"

    # --- Logging ---
    LOG_FILE: str = ""
    LOG_MAX_BYTES: int = 5_242_880  # 5 MB
    LOG_BACKUP_COUNT: int = 3

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @model_validator(mode="after")
    def _check_session_timing(self) -> "AppConfig":
        """Reject idle-monitor settings that could never fire correctly."""
        if self.SESSION_TIMEOUT_S <= 0 or self.SESSION_CHECK_INTERVAL_S <= 0:
            raise ValueError(
                "SESSION_TIMEOUT_S and SESSION_CHECK_INTERVAL_S must be positive"
            )
        if not 0 <= self.SESSION_WARNING_S < self.SESSION_TIMEOUT_S:
            raise ValueError(
                "SESSION_WARNING_S must be non-negative and smaller than "
                "SESSION_TIMEOUT_S"
            )
        if self.LOGIN_MAX_FAILED_ATTEMPTS < 1 or self.LOGIN_LOCKOUT_S <= 0:
            raise ValueError(
                "LOGIN_MAX_FAILED_ATTEMPTS must be >= 1 and LOGIN_LOCKOUT_S positive"
            )
        if self.LOGIN_RATE_LIMIT < 0 or self.LOGIN_RATE_WINDOW_S <= 0:
            raise ValueError(
                "LOGIN_RATE_LIMIT must be >= 0 and LOGIN_RATE_WINDOW_S positive"
            )
        return self

    @model_validator(mode="after")
    def _warn_missing_env(self) -> "AppConfig":
        """Emit a startup warning when critical configuration is empty.

        Pydantic silently falls back to defaults when ``.env`` is missing.
        Without a Supabase URL every identity-provider call fails with a
        configuration error, so operators need to see this at boot.
        """
        _log = logging.getLogger("primariga.config")

        if not Path(".env").exists():
            _log.warning(
                "No .env file found; all configuration loaded from "
                "environment variables or defaults."
            )

        if not self.SUPABASE_URL:
            _log.warning(
                "SUPABASE_URL is empty; the identity provider is unavailable "
                "and the app can only be used anonymously."
            )

        return self

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"


# ---------------------------------------------------------------------------
# Module-level singleton factory
# ---------------------------------------------------------------------------

_config_instance: Optional[AppConfig] = None
_config_lock: threading.Lock = threading.Lock()


def get_config() -> AppConfig:
    """Return a cached ``AppConfig`` singleton.

    Uses a check-lock-check pattern to avoid the lock overhead on the fast
    path while remaining thread-safe during first initialisation.

    Prefer direct constructor injection of ``AppConfig`` in new code;
    this factory exists for modules (like the logger) that are created
    before the composition root runs.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = AppConfig()
    return _config_instance
