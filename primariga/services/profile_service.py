"""
Profile Service.

Lazily provisions the application profile the first time an identity is
seen authenticated, and enforces owner-only profile edits.

Provisioning strategy:
    - New profiles always start with role ``user``; roles are never taken
      from provider metadata.
    - A failed insert is retried as a read once: a concurrent sign-in on
      another device (or the server-side trigger) may have created the
      row between our read and our insert.
"""

from __future__ import annotations

from typing import Mapping, Optional

from primariga.core.errors import AppError, AuthorizationError
from primariga.core.result import Result, failure, success
from primariga.logger import StructuredLogger
from primariga.models.profile import Profile
from primariga.repositories.profile_repository import ProfileRepository
from primariga.services.base_service import BaseService


class ProfileService(BaseService):
    """Get-or-create and update operations over ``ProfileRepository``."""

    def __init__(self, repo: ProfileRepository, logger: StructuredLogger) -> None:
        super().__init__(logger)
        self._repo = repo

    def get(self, identity_id: str) -> Result[Optional[Profile], AppError]:
        return self._repo.get_by_id(identity_id)

    def get_or_create(
        self,
        identity_id: str,
        full_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Result[Profile, AppError]:
        """Return the profile for *identity_id*, creating it when absent."""
        existing = self._repo.get_by_id(identity_id)
        if existing.is_failure():
            return existing
        if existing.value is not None:
            return success(existing.value)

        created = self._repo.create(identity_id, full_name=full_name, username=username)
        if created.ok:
            return created

        self._logger.warning(
            "Profile insert failed for %s (%s); re-reading in case of a race.",
            identity_id,
            created.error.code,
        )
        retry = self._repo.get_by_id(identity_id)
        if retry.ok and retry.value is not None:
            return success(retry.value)
        return created

    def update(
        self,
        acting_identity_id: Optional[str],
        target_identity_id: str,
        changes: Mapping[str, Optional[str]],
    ) -> Result[Profile, AppError]:
        """Update a profile; only its owner may do so."""
        if acting_identity_id is None or acting_identity_id != target_identity_id:
            self._logger.warning(
                "Refused profile update of %s by %s",
                target_identity_id,
                acting_identity_id or "anonymous",
            )
            return failure(AuthorizationError("Profiles can only be edited by their owner"))
        return self._repo.update(target_identity_id, changes)
