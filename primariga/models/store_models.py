"""
Session Store State Models.

``SessionStoreState`` is replaced wholesale on every mutation, never
patched in place; a reader always sees one consistent snapshot.
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field, model_validator

from primariga.models.auth_models import Session
from primariga.models.profile import Profile

DEFAULT_LANGUAGE: str = "it"


class SessionStoreState(BaseModel):
    """Auth fields plus the UI-only fields that share the container.

    Invariants (enforced on construction):
        - ``is_authenticated`` is ``True`` iff an identity id is set
          (``session`` may be ``None`` when only the id is known).
        - ``is_anonymous == not is_authenticated``.
        - ``profile`` is ``None`` whenever the state is anonymous.
    """

    identity_id: Optional[str] = None
    session: Optional[Session] = None
    is_authenticated: bool = False
    is_anonymous: bool = True
    profile: Optional[Profile] = None

    selected_genres: tuple[str, ...] = ()
    selected_language: str = DEFAULT_LANGUAGE
    seen_book_ids: tuple[str, ...] = ()

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _check_auth_invariants(self) -> "SessionStoreState":
        if self.is_anonymous == self.is_authenticated:
            raise ValueError("is_anonymous must be the negation of is_authenticated")
        if self.is_authenticated != (self.identity_id is not None):
            raise ValueError("is_authenticated requires an identity_id")
        if self.session is not None and not self.is_authenticated:
            raise ValueError("a session cannot be held while anonymous")
        if self.profile is not None and not self.is_authenticated:
            raise ValueError("a profile cannot be held while anonymous")
        return self


class PersistedPreferences(BaseModel):
    """The only slice of the store written to persistent storage.

    Auth truth is never persisted: it is re-derived from the identity
    provider at process start.
    """

    selected_genres: list[str] = Field(default_factory=list)
    selected_language: str = DEFAULT_LANGUAGE

    model_config = {"extra": "ignore"}
