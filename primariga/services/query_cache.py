"""
Data-fetch Query Cache.

In-memory cache of fetched data keyed by tuples, e.g.
``("isBookLiked", "book-42")``.  Invalidation is by prefix:
invalidating ``("isBookLiked",)`` drops every per-book entry.

Invalidated entries are removed immediately; invalidation listeners let
screens holding their own copy know they must refetch.
"""

from __future__ import annotations

import threading
from typing import Callable, Hashable, Optional, TypeVar

from primariga.logger import StructuredLogger

QueryKey = tuple[Hashable, ...]
T = TypeVar("T")

InvalidationListener = Callable[[QueryKey], None]


class QueryKeys:
    """Canonical cache keys shared by the store and data screens."""

    liked_books: QueryKey = ("likedBooks",)
    is_book_liked_prefix: QueryKey = ("isBookLiked",)
    user_profile: QueryKey = ("user-profile",)
    reading_history: QueryKey = ("reading-history",)

    @staticmethod
    def is_book_liked(book_id: str) -> QueryKey:
        return ("isBookLiked", book_id)

    # Every entry whose data depends on who is signed in.
    IDENTITY_SCOPED: tuple[QueryKey, ...] = (
        liked_books,
        is_book_liked_prefix,
    )


def _matches(key: QueryKey, prefix: QueryKey) -> bool:
    return key[: len(prefix)] == prefix


class QueryCache:
    """Thread-safe prefix-invalidated cache.

    Parameters
    ----------
    logger:
        Structured logger instance.
    """

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger = logger
        self._entries: dict[QueryKey, object] = {}
        self._lock = threading.RLock()
        self._listeners: list[InvalidationListener] = []
        self._invalidation_count: int = 0

    def get(self, key: QueryKey) -> Optional[object]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: QueryKey, value: object) -> None:
        with self._lock:
            self._entries[key] = value

    def contains(self, key: QueryKey) -> bool:
        with self._lock:
            return key in self._entries

    def fetch(self, key: QueryKey, loader: Callable[[], T]) -> T:
        """Return the cached value for *key*, loading and caching on miss."""
        with self._lock:
            if key in self._entries:
                return self._entries[key]  # type: ignore[return-value]
        value = loader()
        with self._lock:
            self._entries[key] = value
        return value

    def invalidate(self, prefix: QueryKey) -> int:
        """Drop every entry whose key starts with *prefix*.

        Returns the number of dropped entries.  Listeners are notified
        even when nothing was cached so that observers holding their own
        copies refetch.
        """
        with self._lock:
            doomed = [key for key in self._entries if _matches(key, prefix)]
            for key in doomed:
                del self._entries[key]
            self._invalidation_count += 1
            listeners = list(self._listeners)

        self._logger.debug(
            "Invalidated %d cache entries for prefix %s", len(doomed), prefix
        )
        for listener in listeners:
            try:
                listener(prefix)
            except Exception as exc:
                self._logger.warning("Cache invalidation listener failed: %s", exc)
        return len(doomed)

    def invalidate_many(self, prefixes: tuple[QueryKey, ...]) -> int:
        return sum(self.invalidate(prefix) for prefix in prefixes)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def add_invalidation_listener(self, listener: InvalidationListener) -> Callable[[], None]:
        """Register *listener*; the returned callable removes it."""
        with self._lock:
            self._listeners.append(listener)

        def _remove() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return _remove

    @property
    def invalidation_count(self) -> int:
        with self._lock:
            return self._invalidation_count
