"""
Connection Layer.

Owns the two external handles the auth core needs:

- **Supabase**: identity provider (``client.auth``) and the ``profiles``
  table.  Optional; without credentials the app runs anonymous-only and
  every provider call surfaces a configuration error.
- **SQLite (local)**: backs the key-value preference storage and the
  audit trail.  Always present.

This module holds *connections* only.  Queries live in repositories and
services.

Usage (dependency injection at app startup)::

    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=Path(config.SQLITE_PATH),
        logger=StructuredLogger(name="database"),
    )
"""

from __future__ import annotations

import sqlite3
import threading
from pathlib import Path
from typing import Optional

from supabase import create_client, Client as SupabaseClient

from primariga.logger import StructuredLogger


class DatabaseManager:
    """Holds the Supabase client and the local SQLite connection.

    Parameters
    ----------
    supabase_url:
        Supabase project URL.  May be empty (offline / anonymous-only).
    supabase_key:
        Supabase anonymous key.  May be empty.
    sqlite_path:
        Filesystem path of the local database; ``":memory:"`` is accepted.
    logger:
        Structured logger instance.
    supabase_client:
        Pre-built client, used instead of creating one from the URL/key.
    """

    def __init__(
        self,
        supabase_url: str,
        supabase_key: str,
        sqlite_path: Path | str,
        logger: StructuredLogger,
        supabase_client: Optional[SupabaseClient] = None,
    ) -> None:
        self._logger: StructuredLogger = logger
        self._write_lock: threading.RLock = threading.RLock()

        self._supabase: Optional[SupabaseClient] = supabase_client
        if self._supabase is None and supabase_url and supabase_key:
            try:
                self._supabase = create_client(supabase_url, supabase_key)
                self._logger.info("Supabase client initialized.")
            except (ValueError, TypeError) as exc:
                self._logger.warning(
                    "Supabase credential format error: %s. Running anonymous-only.",
                    exc,
                )
            except Exception as exc:
                self._logger.error(
                    "Unexpected Supabase initialization failure: %s. "
                    "Running anonymous-only.",
                    exc,
                    exc_info=True,
                )
        elif self._supabase is None:
            self._logger.warning(
                "Supabase credentials not configured; running anonymous-only."
            )

        self._sqlite_conn: sqlite3.Connection = self._connect_sqlite(sqlite_path)
        self._closed: bool = False

    # ------------------------------------------------------------------
    # Public properties
    # ------------------------------------------------------------------

    @property
    def supabase(self) -> SupabaseClient:
        """Return the Supabase client.

        Raises
        ------
        RuntimeError
            If no client was configured.  The identity-provider adapter
            maps this to a ``ConfigurationError``.
        """
        if self._supabase is None:
            raise RuntimeError(
                "Supabase client is not initialised. "
                "Set SUPABASE_URL and SUPABASE_ANON_KEY."
            )
        return self._supabase

    @property
    def is_online(self) -> bool:
        return self._supabase is not None

    @property
    def sqlite(self) -> sqlite3.Connection:
        return self._sqlite_conn

    @property
    def write_lock(self) -> threading.RLock:
        """Lock to hold around every SQLite write + commit."""
        return self._write_lock

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Close the SQLite connection.  Safe to call more than once."""
        with self._write_lock:
            if self._closed:
                return
            try:
                self._sqlite_conn.close()
                self._logger.info("SQLite connection closed.")
            except sqlite3.ProgrammingError:
                pass
            self._closed = True

    def _connect_sqlite(self, path: Path | str) -> sqlite3.Connection:
        """Open (or create) the local database.

        Raises
        ------
        PermissionError
            If the OS denies access to the file or its directory; the
            message is rewritten into something a user can act on.
        """
        try:
            conn = sqlite3.connect(str(path), check_same_thread=False)
            conn.row_factory = sqlite3.Row
            if str(path) != ":memory:":
                conn.execute("PRAGMA journal_mode=WAL;")
            self._logger.info("SQLite database opened at %s", path)
            return conn
        except PermissionError as exc:
            msg = (
                f"Cannot open the local database at '{path}'. "
                "The file or its directory may be read-only or locked by "
                "another process."
            )
            self._logger.error(msg)
            raise PermissionError(msg) from exc
