"""
Input-Security Helpers.

Email normalisation / validation used before any identity-provider call,
and masking for values that must appear in logs.
"""

from __future__ import annotations

import re

from primariga.models.auth_models import ValidationResult

__all__ = [
    "mask_email",
    "mask_sensitive_data",
    "normalize_email",
    "validate_email",
]

# Simplified RFC 5322: local part of allowed printable characters, then one
# or more dot-separated DNS labels.
_EMAIL_RE: re.Pattern[str] = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+"
    r"@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)+$"
)

_MAX_EMAIL_LENGTH: int = 254


def normalize_email(email: str) -> str:
    """Strip surrounding whitespace and lowercase."""
    return email.strip().lower()


def validate_email(email: str) -> ValidationResult:
    """Validate an email address against a simplified RFC 5322 regex.

    Parameters
    ----------
    email:
        The raw email string to validate.

    Returns
    -------
    ValidationResult
        ``is_valid=True`` if the email matches, otherwise a
        human-readable ``error_message``.
    """
    if not email or not email.strip():
        return ValidationResult(
            is_valid=False,
            error_message="Email address is required.",
            problems=["required"],
        )
    candidate = email.strip()
    if len(candidate) > _MAX_EMAIL_LENGTH or not _EMAIL_RE.match(candidate):
        return ValidationResult(
            is_valid=False,
            error_message="Please enter a valid email address.",
            problems=["format"],
        )
    return ValidationResult(is_valid=True)


def mask_sensitive_data(data: str, visible_chars: int = 4) -> str:
    """Replace all but the last *visible_chars* characters with ``*``.

    Values no longer than *visible_chars* are masked entirely.
    """
    if len(data) <= visible_chars:
        return "*" * len(data)
    return "*" * (len(data) - visible_chars) + data[-visible_chars:]


def mask_email(email: str) -> str:
    """Mask the local part of *email*, keeping its first character and the domain.

    ``"mario.rossi@example.com"`` becomes ``"m**********@example.com"``.
    Strings without ``@`` fall back to :func:`mask_sensitive_data`.
    """
    local, sep, domain = email.partition("@")
    if not sep:
        return mask_sensitive_data(email)
    if len(local) <= 1:
        return f"*{sep}{domain}"
    return f"{local[0]}{'*' * (len(local) - 1)}{sep}{domain}"
