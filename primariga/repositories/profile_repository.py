"""
Profile Repository.

Data access for the ``profiles`` table.  Row-level security on the
server restricts writes to the owning identity; the client additionally
refuses cross-identity updates in ``ProfileService``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Optional

from primariga.core.errors import AppError, DatabaseError, ValidationError
from primariga.core.result import Result, failure
from primariga.models.enums import ProfileRole
from primariga.models.profile import Profile
from primariga.repositories.base_repository import BaseRepository

# Columns a user may change on their own profile.
EDITABLE_FIELDS: frozenset[str] = frozenset({"username", "full_name", "avatar_url", "bio"})


class ProfileRepository(BaseRepository):
    """Data access layer for ``Profile`` rows keyed by identity id."""

    TABLE = "profiles"

    def get_by_id(self, identity_id: str) -> Result[Optional[Profile], AppError]:
        """Fetch a profile; ``Success(None)`` when no row exists."""
        def _query() -> Optional[Profile]:
            response = (
                self.supabase.table(self.TABLE)
                .select("*")
                .eq("id", identity_id)
                .maybe_single()
                .execute()
            )
            # maybe_single() yields no response at all for a missing row
            if response is None or not response.data:
                return None
            return Profile(**response.data)

        return self._run(_query, operation_name="get_by_id (profiles)")

    def create(
        self,
        identity_id: str,
        full_name: Optional[str] = None,
        username: Optional[str] = None,
    ) -> Result[Profile, AppError]:
        """Insert a new profile row with the default ``user`` role."""
        now = datetime.now(timezone.utc).isoformat()
        payload = {
            "id": identity_id,
            "role": ProfileRole.USER.value,
            "full_name": full_name,
            "username": username,
            "created_at": now,
            "updated_at": now,
        }

        def _query() -> Profile:
            response = self.supabase.table(self.TABLE).insert(payload).execute()
            if not response.data:
                raise DatabaseError("Profile insert returned no row")
            return Profile(**response.data[0])

        result = self._run(_query, operation_name="create (profiles)")
        if result.ok:
            self._logger.info("Profile created: %s", identity_id)
        return result

    def update(
        self,
        identity_id: str,
        changes: Mapping[str, Optional[str]],
    ) -> Result[Profile, AppError]:
        """Apply *changes* to the editable columns of a profile."""
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            return failure(
                ValidationError(
                    "Profile fields are not editable",
                    fields={name: ["Field is not editable."] for name in unknown},
                )
            )

        payload = {
            **dict(changes),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        def _query() -> Profile:
            response = (
                self.supabase.table(self.TABLE)
                .update(payload)
                .eq("id", identity_id)
                .execute()
            )
            if not response.data:
                raise DatabaseError("Profile update matched no row")
            return Profile(**response.data[0])

        return self._run(_query, operation_name="update (profiles)")
