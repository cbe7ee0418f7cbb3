"""
Sign-in Rate Limiting.

Two in-memory mechanisms guard the sign-in form:

- :class:`RateLimiter`: a generic sliding-window counter keyed by an
  arbitrary string (form-session id, normalised email ...).
- :class:`LoginLockout`: locks a key out for a fixed window after N
  consecutive failed sign-ins, independent of the limiter.

Both are process-local.  Restarting the process clears every window and
lockout; the client-side lockout is friction for the user interface, and
real brute-force protection is the identity provider's job.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from typing import Callable, Optional

from primariga.logger import StructuredLogger
from primariga.models.auth_models import LockoutState
from primariga.utils.audit import log_audit_event

Clock = Callable[[], float]


class RateLimiter:
    """Sliding-window attempt counter.

    Parameters
    ----------
    limit:
        Maximum number of attempts allowed inside one window.
    window_s:
        Window length in seconds.
    clock:
        Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        limit: int,
        window_s: float,
        clock: Clock = time.monotonic,
    ) -> None:
        if limit < 1 or window_s <= 0:
            raise ValueError("limit must be >= 1 and window_s positive")
        self._limit = limit
        self._window_s = window_s
        self._clock = clock
        self._attempts: dict[str, deque[float]] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> bool:
        """Return whether an attempt for *key* is allowed right now.

        An allowed attempt is recorded as a side effect, whatever its
        eventual outcome; refused attempts are not recorded.
        """
        now = self._clock()
        with self._lock:
            window = self._attempts.setdefault(key, deque())
            while window and now - window[0] >= self._window_s:
                window.popleft()
            if len(window) >= self._limit:
                return False
            window.append(now)
            return True

    def remaining(self, key: str) -> int:
        """Attempts still available for *key* in the current window."""
        now = self._clock()
        with self._lock:
            window = self._attempts.get(key, ())
            live = sum(1 for ts in window if now - ts < self._window_s)
        return max(0, self._limit - live)

    def clear(self, key: str) -> None:
        with self._lock:
            self._attempts.pop(key, None)

    def clear_all(self) -> None:
        with self._lock:
            self._attempts.clear()


class LoginLockout:
    """Consecutive-failure lockout for the sign-in form.

    Parameters
    ----------
    logger:
        Structured logger; lockout engagement is written as an audit event.
    max_attempts:
        Consecutive failures that engage the lockout.
    lockout_s:
        Length of the lockout window in seconds.
    clock:
        Monotonic time source; injectable for tests.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        max_attempts: int = 5,
        lockout_s: float = 300.0,
        clock: Clock = time.monotonic,
    ) -> None:
        self._logger = logger
        self._max_attempts = max_attempts
        self._lockout_s = lockout_s
        self._clock = clock
        self._entries: dict[str, LockoutState] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> tuple[bool, int]:
        """Check whether *key* is currently locked out.

        Returns
        -------
        tuple[bool, int]
            ``(is_locked, remaining_seconds)``.  When ``is_locked`` is
            ``False``, ``remaining_seconds`` is ``0``.
        """
        with self._lock:
            state = self._entries.get(key)
            if state is None or state.locked_until is None:
                return False, 0

            now = self._clock()
            if now >= state.locked_until:
                # Window over: the next failure starts a fresh count.
                self._entries.pop(key, None)
                return False, 0

            return True, math.ceil(state.locked_until - now)

    def record_failure(self, key: str) -> bool:
        """Count one failed sign-in for *key*; return ``True`` if now locked."""
        with self._lock:
            state = self._entries.setdefault(key, LockoutState())
            state.failed_attempts += 1
            if state.failed_attempts < self._max_attempts:
                return False
            state.locked_until = self._clock() + self._lockout_s
            attempts = state.failed_attempts

        self._logger.warning(
            "Sign-in lockout engaged after %d failed attempts; locked for %ds.",
            attempts,
            int(self._lockout_s),
            extra={"event": "LOCKOUT_ENGAGED"},
        )
        log_audit_event(
            self._logger,
            action="LOCKOUT_ENGAGED",
            identity_id=None,
            details={"failed_attempts": attempts, "lockout_s": self._lockout_s},
        )
        return True

    def reset(self, key: str) -> None:
        """Forget the failure count for *key* (after a successful sign-in)."""
        with self._lock:
            self._entries.pop(key, None)

    def failed_attempts(self, key: str) -> int:
        with self._lock:
            state: Optional[LockoutState] = self._entries.get(key)
            return state.failed_attempts if state else 0
