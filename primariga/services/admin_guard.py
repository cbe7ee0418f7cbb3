"""
Admin Guard.

Resolves the caller's profile role and gates administrative actions.
Roles are read from the ``profiles`` row of the identity the provider
currently reports; lookup failures never grant access.
"""

from __future__ import annotations

import sqlite3
from typing import Callable, Optional

from primariga.core.errors import AppError, AuthenticationError, AuthorizationError
from primariga.core.result import Result, failure, success
from primariga.logger import StructuredLogger
from primariga.models.enums import ProfileRole
from primariga.repositories.profile_repository import ProfileRepository
from primariga.services.auth_service import AuthService
from primariga.services.base_service import BaseService
from primariga.utils.audit import DetailValue, log_audit_event

LOGIN_REQUIRED_MESSAGE: str = "Authentication required. Please log in before performing this action."


class AdminGuard(BaseService):
    """Role checks for administrative actions.

    A failed role lookup reads as "not an admin" / "no role".

    Parameters
    ----------
    auth_service:
        Source of the current identity.
    profiles:
        Profile repository used to read the role.
    logger:
        Structured logger instance.
    audit_conn:
        Optional SQLite connection for persisted admin audit events.
    """

    def __init__(
        self,
        auth_service: AuthService,
        profiles: ProfileRepository,
        logger: StructuredLogger,
        audit_conn: Optional[sqlite3.Connection] = None,
    ) -> None:
        super().__init__(logger)
        self._auth = auth_service
        self._profiles = profiles
        self._audit_conn = audit_conn

    def _role_of(self, identity_id: str) -> Optional[ProfileRole]:
        result = self._profiles.get_by_id(identity_id)
        if result.is_failure():
            self._logger.warning(
                "Role lookup failed for %s: %s", identity_id, result.error.code,
            )
            return None
        profile = result.value
        return profile.role if profile is not None else None

    def is_admin(self, identity_id: str) -> bool:
        """``True`` for ``admin`` and ``super_admin``."""
        role = self._role_of(identity_id)
        return role is not None and role.is_admin

    def is_super_admin(self, identity_id: str) -> bool:
        return self._role_of(identity_id) is ProfileRole.SUPER_ADMIN

    def get_current_user_role(self) -> Optional[ProfileRole]:
        identity = self._auth.get_current_identity()
        if identity is None:
            return None
        return self._role_of(identity.id)

    def require_admin(self) -> Result[None, AppError]:
        return self._require(
            lambda role: role.is_admin,
            "Insufficient permissions. Admin privileges required.",
        )

    def require_super_admin(self) -> Result[None, AppError]:
        return self._require(
            lambda role: role is ProfileRole.SUPER_ADMIN,
            "Insufficient permissions. Super admin privileges required.",
        )

    def _require(
        self, allowed: Callable[[ProfileRole], bool], denial: str
    ) -> Result[None, AppError]:
        identity = self._auth.get_current_identity()
        if identity is None:
            return failure(AuthenticationError(LOGIN_REQUIRED_MESSAGE))

        role = self._role_of(identity.id)
        if role is None or not allowed(role):
            self._logger.warning(
                "Admin action denied for %s (role=%s)",
                identity.id,
                role.value if role is not None else "none",
            )
            return failure(AuthorizationError(denial))
        return success(None)

    def log_admin_action(
        self,
        action: str,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        metadata: Optional[dict[str, DetailValue]] = None,
    ) -> None:
        """Record an administrative action in the audit trail.

        Never raises: a failed audit write must not block the action.
        """
        identity = self._auth.get_current_identity()
        details: dict[str, DetailValue] = {
            "resource_type": resource_type,
            "resource_id": resource_id,
            **(metadata or {}),
        }
        try:
            log_audit_event(
                self._logger,
                action=action,
                identity_id=identity.id if identity is not None else None,
                details=details,
                entity_type="Admin",
                conn=self._audit_conn,
            )
        except ValueError as exc:
            self._logger.warning("Failed to log admin action %s: %s", action, exc)
