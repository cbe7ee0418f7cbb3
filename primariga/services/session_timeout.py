"""
Idle Session Timeout.

Three layers:

- :class:`IdleSessionMonitor`: a pure state machine over
  ``inactive / active-watching / warned / expired / paused``, driven by
  ``tick()`` plus two event inputs (user activity, foreground changes).
  Time comes from an injectable monotonic clock.
- :class:`SessionTimeoutDriver`: one daemon thread calling ``tick()`` at
  a fixed cadence.  At most one live timer exists per session.
- :class:`SessionTimeout`: binds monitor and driver to the session
  store.  Authenticating starts watching, going anonymous stops it, and
  expiry performs a single forced logout.

Callbacks are always invoked outside the monitor's lock, so a callback
may safely call back into the monitor (a forced logout does).
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Optional

from primariga.logger import StructuredLogger
from primariga.models.enums import AnalyticsEvent, IdleState
from primariga.models.store_models import SessionStoreState
from primariga.services.analytics import AnalyticsService
from primariga.services.base_service import BaseService
from primariga.services.session_store import SessionStore
from primariga.utils.audit import log_audit_event

Clock = Callable[[], float]
WarningCallback = Callable[[float], None]
ExpiryCallback = Callable[[], None]

_WATCHING: frozenset[IdleState] = frozenset({IdleState.ACTIVE_WATCHING, IdleState.WARNED})


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------

class IdleSessionMonitor:
    """Idle-timeout state machine.

    Parameters
    ----------
    timeout_s:
        Idle time after which the session expires.
    warning_s:
        How long before expiry the one-shot warning fires.
    on_warning:
        Called once per idle period with the seconds left before expiry.
    on_expired:
        Called once when the session expires.
    clock:
        Monotonic time source.
    """

    def __init__(
        self,
        timeout_s: float = 30 * 60,
        warning_s: float = 5 * 60,
        on_warning: Optional[WarningCallback] = None,
        on_expired: Optional[ExpiryCallback] = None,
        clock: Clock = time.monotonic,
    ) -> None:
        if timeout_s <= 0 or not 0 <= warning_s < timeout_s:
            raise ValueError("require 0 <= warning_s < timeout_s")
        self._timeout_s = timeout_s
        self._warning_s = warning_s
        self._on_warning = on_warning
        self._on_expired = on_expired
        self._clock = clock

        self._lock = threading.Lock()
        self._state: IdleState = IdleState.INACTIVE
        self._last_activity: float = clock()
        self._warning_shown: bool = False
        self._foreground: bool = True

    @property
    def state(self) -> IdleState:
        with self._lock:
            return self._state

    @property
    def warning_shown(self) -> bool:
        with self._lock:
            return self._warning_shown

    @property
    def is_foreground(self) -> bool:
        with self._lock:
            return self._foreground

    def idle_seconds(self) -> float:
        with self._lock:
            return self._clock() - self._last_activity

    # -- transitions -----------------------------------------------------

    def on_authenticated(self) -> None:
        """Start watching a fresh session; no-op while already watching."""
        with self._lock:
            if self._state not in (IdleState.INACTIVE, IdleState.EXPIRED):
                return
            self._last_activity = self._clock()
            self._warning_shown = False
            self._state = (
                IdleState.ACTIVE_WATCHING if self._foreground else IdleState.PAUSED
            )

    def on_logout(self) -> None:
        with self._lock:
            self._state = IdleState.INACTIVE
            self._warning_shown = False

    def record_activity(self) -> None:
        """Qualifying user interaction: restart the idle window."""
        with self._lock:
            if self._state not in _WATCHING:
                return
            self._last_activity = self._clock()
            self._warning_shown = False
            self._state = IdleState.ACTIVE_WATCHING

    def set_foreground(self, foreground: bool) -> IdleState:
        """Backgrounding pauses; foregrounding re-evaluates immediately.

        The idle anchor is kept while paused, so time spent in the
        background counts towards the timeout.
        """
        with self._lock:
            self._foreground = foreground
            if not foreground:
                if self._state in _WATCHING:
                    self._state = IdleState.PAUSED
                return self._state
            if self._state is not IdleState.PAUSED:
                return self._state
            self._state = IdleState.ACTIVE_WATCHING
        return self.tick()

    def tick(self) -> IdleState:
        """Evaluate elapsed idle time; fires warning / expiry as due."""
        fire_warning: Optional[float] = None
        fire_expiry = False
        with self._lock:
            if self._state not in _WATCHING:
                return self._state

            elapsed = self._clock() - self._last_activity
            if elapsed >= self._timeout_s:
                self._state = IdleState.EXPIRED
                fire_expiry = True
            elif elapsed >= self._timeout_s - self._warning_s:
                if not self._warning_shown:
                    self._warning_shown = True
                    fire_warning = self._timeout_s - elapsed
                self._state = IdleState.WARNED
            state = self._state

        if fire_warning is not None and self._on_warning is not None:
            self._on_warning(fire_warning)
        if fire_expiry and self._on_expired is not None:
            self._on_expired()
        return state


# ---------------------------------------------------------------------------
# Timer thread
# ---------------------------------------------------------------------------

class SessionTimeoutDriver(BaseService):
    """Daemon thread that ticks an ``IdleSessionMonitor``.

    Parameters
    ----------
    monitor:
        The state machine to drive.
    interval_s:
        Tick cadence in seconds.
    logger:
        Structured JSON logger.
    """

    def __init__(
        self,
        monitor: IdleSessionMonitor,
        interval_s: float,
        logger: StructuredLogger,
    ) -> None:
        super().__init__(logger)
        self._monitor = monitor
        self._interval_s = interval_s
        self._thread: Optional[threading.Thread] = None
        self._stop_event: threading.Event = threading.Event()
        self._lifecycle_lock = threading.Lock()

    def start(self) -> None:
        """Start ticking.  Idempotent while a timer thread is alive."""
        with self._lifecycle_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop_event,),
                name="SessionTimeout",
                daemon=True,
            )
            self._thread.start()
        self._logger.debug("Session timeout driver started.")

    def stop(self) -> None:
        """Stop ticking.  Safe to call when not running or from a tick."""
        with self._lifecycle_lock:
            thread = self._thread
            self._thread = None
            self._stop_event.set()
        if thread is None:
            return
        # A forced logout triggered by a tick stops the driver from its own thread.
        if thread is not threading.current_thread():
            thread.join(timeout=self._interval_s + 1.0)
            if thread.is_alive():
                self._logger.warning("Session timeout thread did not terminate.")
        self._logger.debug("Session timeout driver stopped.")

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive()

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(timeout=self._interval_s):
            try:
                self._monitor.tick()
            except Exception:
                self._logger.error("Session timeout tick failed", exc_info=True)


# ---------------------------------------------------------------------------
# Store binding
# ---------------------------------------------------------------------------

class SessionTimeout(BaseService):
    """Binds the idle monitor to the session store.

    Parameters
    ----------
    store:
        The session store to observe and to log out on expiry.
    analytics:
        Telemetry facade.
    logger:
        Structured JSON logger.
    timeout_s, warning_s, check_interval_s:
        Idle timeout, warning lead time and tick cadence.
    on_warning:
        Optional UI hook, called with the seconds left.
    on_expired:
        Optional UI hook, called after the forced logout.
    clock:
        Monotonic time source.
    start_driver:
        When ``False`` no thread is started; callers drive
        ``monitor.tick()`` themselves.
    """

    def __init__(
        self,
        store: SessionStore,
        analytics: AnalyticsService,
        logger: StructuredLogger,
        timeout_s: float = 30 * 60,
        warning_s: float = 5 * 60,
        check_interval_s: float = 60.0,
        on_warning: Optional[WarningCallback] = None,
        on_expired: Optional[ExpiryCallback] = None,
        clock: Clock = time.monotonic,
        start_driver: bool = True,
    ) -> None:
        super().__init__(logger)
        self._store = store
        self._analytics = analytics
        self._ui_on_warning = on_warning
        self._ui_on_expired = on_expired
        self._start_driver = start_driver
        self._identity_lock = threading.Lock()
        self._watched_identity: Optional[str] = None

        self.monitor = IdleSessionMonitor(
            timeout_s=timeout_s,
            warning_s=warning_s,
            on_warning=self._handle_warning,
            on_expired=self._handle_expired,
            clock=clock,
        )
        self.driver = SessionTimeoutDriver(self.monitor, check_interval_s, logger)
        self._unsubscribe = store.subscribe(self._on_store_change)
        self._on_store_change(store.state)

    # -- UI inputs -------------------------------------------------------

    def reset_timeout(self) -> None:
        self.monitor.record_activity()

    def set_foreground(self, foreground: bool) -> None:
        self._analytics.track(
            AnalyticsEvent.APP_FOREGROUNDED if foreground else AnalyticsEvent.APP_BACKGROUNDED
        )
        self.monitor.set_foreground(foreground)

    def close(self) -> None:
        self._unsubscribe()
        self.driver.stop()

    # -- wiring ----------------------------------------------------------

    def _on_store_change(self, state: SessionStoreState) -> None:
        with self._identity_lock:
            previous = self._watched_identity
            self._watched_identity = state.identity_id if state.is_authenticated else None

        if state.is_authenticated:
            if previous is not None and previous != state.identity_id:
                # A different user signed in without a sign-out in between.
                self._logger.info("Identity changed; restarting idle window.")
                self.monitor.on_logout()
            self.monitor.on_authenticated()
            if self._start_driver:
                self.driver.start()
        else:
            self.monitor.on_logout()
            self.driver.stop()

    def _handle_warning(self, remaining_s: float) -> None:
        self._logger.info(
            "Session expires in %d seconds due to inactivity.",
            int(remaining_s),
            extra={"event": "SESSION_WARNING"},
        )
        self._analytics.track(
            AnalyticsEvent.ERROR_OCCURRED, {"error_type": "session_warning"}
        )
        if self._ui_on_warning is not None:
            self._ui_on_warning(remaining_s)

    def _handle_expired(self) -> None:
        identity_id = self._store.state.identity_id
        log_audit_event(
            self._logger,
            action="SESSION_TIMEOUT",
            identity_id=identity_id,
            details={"reason": "inactivity"},
        )
        self._analytics.track(AnalyticsEvent.LOGOUT, {"reason": "session_timeout"})
        self._store.logout()
        if self._ui_on_expired is not None:
            self._ui_on_expired()
