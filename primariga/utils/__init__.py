"""Shared helpers: audit logging and input security.

Re-exported so consumers can write ``from primariga.utils import mask_email``.
"""

from primariga.utils.audit import AuditEvent, log_audit_event
from primariga.utils.security import (
    mask_email,
    mask_sensitive_data,
    normalize_email,
    validate_email,
)

__all__ = [
    "AuditEvent",
    "log_audit_event",
    "mask_email",
    "mask_sensitive_data",
    "normalize_email",
    "validate_email",
]
