"""
Repository Layer Package.

Data-access abstractions over Supabase.  Services never touch
``db.supabase`` tables directly.
"""

from primariga.repositories.base_repository import BaseRepository
from primariga.repositories.profile_repository import ProfileRepository

__all__ = [
    "BaseRepository",
    "ProfileRepository",
]
