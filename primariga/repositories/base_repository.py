"""
Base Repository.

Shared infrastructure for Supabase-backed repositories:

- ``DatabaseManager`` and logger references (constructor injection)
- ``supabase`` convenience property
- ``_run``: executes one query and folds every failure into the error
  taxonomy, so repositories return ``Result`` values and never raise.
"""

from __future__ import annotations

from typing import Callable, TypeVar

from supabase import Client as SupabaseClient

from primariga.core.errors import (
    AppError,
    ConfigurationError,
    DatabaseError,
    NetworkError,
)
from primariga.core.result import Result, failure, success
from primariga.database import DatabaseManager
from primariga.logger import StructuredLogger

T = TypeVar("T")


class BaseRepository:
    """Base class for all repositories. Receives dependencies via __init__."""

    TABLE: str = ""

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    @property
    def supabase(self) -> SupabaseClient:
        return self._db.supabase

    def _run(
        self,
        op: Callable[[], T],
        *,
        operation_name: str,
    ) -> Result[T, AppError]:
        """Execute *op* and wrap its outcome in a ``Result``.

        Failure mapping:
            - ``AppError`` raised by *op*: returned as-is.
            - ``RuntimeError`` (no Supabase client): ``ConfigurationError``.
            - ``ConnectionError`` / ``TimeoutError``: ``NetworkError``.
            - anything else: ``DatabaseError`` wrapping the cause.

        Parameters
        ----------
        op:
            Zero-argument callable that performs the query.
        operation_name:
            Label for log messages, e.g. ``"get_by_id (profiles)"``.
        """
        try:
            return success(op())
        except AppError as exc:
            return failure(exc)
        except RuntimeError as exc:
            self._logger.warning("Supabase not configured for %s: %s", operation_name, exc)
            return failure(ConfigurationError(str(exc), config_key="SUPABASE_URL"))
        except (ConnectionError, TimeoutError) as exc:
            self._logger.warning("Network error during %s: %s", operation_name, exc)
            return failure(NetworkError(f"Network error during {operation_name}"))
        except Exception as exc:
            self._logger.error("%s failed: %s", operation_name, exc)
            return failure(
                DatabaseError(f"{operation_name} failed", original_error=exc)
            )
