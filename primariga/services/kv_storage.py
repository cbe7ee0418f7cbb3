"""
Persisted Key-Value Storage.

String-keyed, string-valued storage used by the session store to persist
UI preferences.  The store depends only on the ``KeyValueStorage``
protocol; ``SQLiteKeyValueStorage`` is the device implementation over the
``app_settings`` table created by :func:`primariga.schema.initialize_schema`::

    CREATE TABLE IF NOT EXISTS app_settings (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL,
        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
"""

from __future__ import annotations

import sqlite3
from typing import Optional, Protocol, runtime_checkable

from primariga.database import DatabaseManager
from primariga.logger import StructuredLogger


@runtime_checkable
class KeyValueStorage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...  # noqa: E704

    def set_item(self, key: str, value: str) -> bool: ...  # noqa: E704

    def remove_item(self, key: str) -> bool: ...  # noqa: E704


class SQLiteKeyValueStorage:
    """``KeyValueStorage`` over the local ``app_settings`` table.

    Read failures return ``None`` and write failures return ``False``;
    both are logged.  Preference persistence must never break the
    calling action.

    Parameters
    ----------
    db:
        Initialised ``DatabaseManager`` with an active SQLite connection.
    logger:
        Structured logger instance.
    """

    def __init__(self, db: DatabaseManager, logger: StructuredLogger) -> None:
        self._db = db
        self._logger = logger

    def get_item(self, key: str) -> Optional[str]:
        try:
            row = self._db.sqlite.execute(
                "SELECT value FROM app_settings WHERE key = ?",
                (key,),
            ).fetchone()
            return row["value"] if row is not None else None
        except sqlite3.Error as exc:
            self._logger.warning("Failed to read app_settings[%s]: %s", key, exc)
            return None

    def set_item(self, key: str, value: str) -> bool:
        try:
            with self._db.write_lock:
                self._db.sqlite.execute(
                    """
                    INSERT INTO app_settings (key, value)
                    VALUES (?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value      = excluded.value,
                        updated_at = CURRENT_TIMESTAMP
                    """,
                    (key, value),
                )
                self._db.sqlite.commit()
            self._logger.debug("app_settings[%s] updated.", key)
            return True
        except sqlite3.Error as exc:
            self._logger.error("Failed to write app_settings[%s]: %s", key, exc)
            return False

    def remove_item(self, key: str) -> bool:
        try:
            with self._db.write_lock:
                self._db.sqlite.execute("DELETE FROM app_settings WHERE key = ?", (key,))
                self._db.sqlite.commit()
            return True
        except sqlite3.Error as exc:
            self._logger.error("Failed to delete app_settings[%s]: %s", key, exc)
            return False
