"""
Structured Audit Logging Utility.

Every auth state transition (sign-in, sign-out, forced idle logout,
lockout) is written as one structured JSON object.  Events are validated
by a Pydantic model before they reach the logger, so malformed payloads
fail at the point of origin.

Passwords and tokens never belong in ``details``; emails are masked by the
caller with :func:`primariga.utils.security.mask_email`.
"""

from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional, Union

from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from primariga.logger import StructuredLogger

__all__ = ["AuditEvent", "log_audit_event", "persist_audit_event"]

# Flat scalars only; nested structures should be modelled explicitly.
DetailValue = Union[str, int, float, bool, None]

_ANONYMOUS: str = "anonymous"


class AuditEvent(BaseModel):
    """Schema-validated representation of a single audit trail entry."""

    timestamp: str
    action: str
    entity_type: str = "Session"
    entity_id: str
    user_id: str
    details: dict[str, DetailValue] = Field(default_factory=dict)


def _build_event(
    action: str,
    identity_id: Optional[str],
    details: Optional[dict[str, DetailValue]],
    entity_type: str,
) -> AuditEvent:
    subject = identity_id or _ANONYMOUS
    return AuditEvent(
        timestamp=datetime.now(timezone.utc).isoformat(),
        action=action,
        entity_type=entity_type,
        entity_id=subject,
        user_id=subject,
        details=details or {},
    )


def log_audit_event(
    logger: StructuredLogger,
    action: str,
    identity_id: Optional[str],
    details: Optional[dict[str, DetailValue]] = None,
    entity_type: str = "Session",
    conn: Optional[sqlite3.Connection] = None,
) -> AuditEvent:
    """Log a structured JSON audit event, with optional SQLite persistence.

    Args:
        logger: The logger instance to write to.
        action: What happened (e.g. ``"SIGNED_IN"``, ``"SIGNED_OUT"``,
            ``"SESSION_TIMEOUT"``, ``"LOCKOUT_ENGAGED"``).
        identity_id: Identity the event concerns; ``None`` is recorded
            as ``"anonymous"``.
        details: Optional flat context.
        entity_type: Type of entity affected.
        conn: Optional SQLite connection.  When provided the event is
            also written to the ``audit_log`` table.  Persistence errors
            are logged and never propagated.

    Returns:
        The validated event.
    """
    event = _build_event(action, identity_id, details, entity_type)
    logger.info(
        "AUDIT: %s",
        json.dumps(event.model_dump(), default=str),
        extra={"event": action},
    )

    if conn is not None:
        try:
            persist_audit_event(conn, event)
        except sqlite3.Error as db_err:
            logger.warning("Failed to persist audit event to SQLite: %s", db_err)

    return event


def persist_audit_event(conn: sqlite3.Connection, event: AuditEvent) -> None:
    """Write an already-validated audit event to the ``audit_log`` table."""
    conn.execute(
        """
        INSERT INTO audit_log (timestamp, action, entity_type, entity_id, user_id, details)
        VALUES (?, ?, ?, ?, ?, ?)
        """,
        (
            event.timestamp,
            event.action,
            event.entity_type,
            event.entity_id,
            event.user_id,
            json.dumps(event.details, default=str),
        ),
    )
    conn.commit()
