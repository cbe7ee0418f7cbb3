"""
Profile Model.

Application-side profile row keyed by the identity id.  Created lazily on
first authenticated access; only the owning user may modify it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from primariga.models.enums import ProfileRole


class Profile(BaseModel):
    id: str  # identity id
    username: Optional[str] = None
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    role: ProfileRole = ProfileRole.USER
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"frozen": True, "from_attributes": True}
