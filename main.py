"""
Primariga Auth Core Entry Point.

Bootstraps the entire dependency graph via constructor injection,
initialises the local SQLite schema, derives the start-up auth state
from the identity provider and keeps the idle-session monitor running
until interrupted.  Every subsystem is wired here; no module-level
globals.

Usage::

    python main.py
"""

from __future__ import annotations

import atexit
import sys
import threading
import traceback

from primariga.config import get_config
from primariga.database import DatabaseManager
from primariga.logger import StructuredLogger, get_logger
from primariga.models.store_models import SessionStoreState
from primariga.services import create_services


def main() -> None:
    """Application entry point: wire dependencies and wait for shutdown."""
    logger: StructuredLogger = get_logger("main")
    logger.info("Starting Primariga auth core...")

    # ------------------------------------------------------------------
    # 1. Configuration (from .env / environment variables)
    # ------------------------------------------------------------------
    config = get_config()

    # ------------------------------------------------------------------
    # 2. Database Manager (Supabase optional, SQLite always)
    # ------------------------------------------------------------------
    db = DatabaseManager(
        supabase_url=config.SUPABASE_URL,
        supabase_key=config.SUPABASE_ANON_KEY.get_secret_value(),
        sqlite_path=config.SQLITE_PATH,
        logger=StructuredLogger(name="database"),
    )
    # DatabaseManager.close() is idempotent.
    atexit.register(db.close)
    if not db.is_online:
        logger.warning("Running offline: identity provider calls will fail.")

    # ------------------------------------------------------------------
    # 3. Service Container (schema, store hydration, start-up auth state)
    # ------------------------------------------------------------------
    services = create_services(
        config=config,
        db=db,
        on_session_warning=lambda remaining: logger.warning(
            "Session expires in %d seconds.", int(remaining)
        ),
        on_session_expired=lambda: logger.warning("Signed out after inactivity."),
    )

    def _log_state(state: SessionStoreState) -> None:
        logger.info(
            "Auth state: %s",
            "authenticated" if state.is_authenticated else "anonymous",
            extra={"identity_id": state.identity_id or "anonymous"},
        )

    unsubscribe = services.session_store.subscribe(_log_state)
    _log_state(services.session_store.state)

    # ------------------------------------------------------------------
    # 4. Run until interrupted
    # ------------------------------------------------------------------
    stop = threading.Event()
    try:
        stop.wait()
    finally:
        unsubscribe()
        services.shutdown()
        db.close()
        logger.info("Primariga auth core shut down.")


def _report_fatal_error(exc: BaseException) -> None:
    detail = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    sys.stderr.write(f"FATAL: {type(exc).__name__}: {exc}\n{detail}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        pass
    except Exception as exc:
        _report_fatal_error(exc)
        sys.exit(1)
