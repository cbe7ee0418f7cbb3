"""
Password Security.

Strength scoring for the sign-up strength meter, the common-password
blocklist, and the canonical sign-up password policy.

The strength score is a heuristic for UI feedback; the *policy*
(:func:`validate_password`) is what actually gates sign-up and password
updates.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from primariga.core.errors import ValidationError
from primariga.models.auth_models import ValidationResult
from primariga.models.enums import PasswordTier

__all__ = [
    "COMMON_PASSWORDS",
    "MIN_PASSWORD_LENGTH",
    "PasswordStrength",
    "ensure_password_policy",
    "is_common_password",
    "strength_of",
    "validate_password",
]


# ---------------------------------------------------------------------------
# Common-password blocklist
# ---------------------------------------------------------------------------

# Sources: OWASP top lists, breach corpora and Italian-locale favourites.
COMMON_PASSWORDS: frozenset[str] = frozenset({
    # most common overall
    "password", "password1", "password123", "password!", "password123!",
    "123456", "12345", "12345678", "123456789", "1234567890",
    "111111", "000000", "abc123", "iloveyou", "letmein",
    "welcome", "monkey", "dragon", "master", "sunshine",
    "princess", "admin", "admin123",
    # Italian locale
    "ciaociao", "benvenuto", "amoremio", "italianitalia", "juventus",
    "francesco", "alessandro", "giuseppe", "antonio",
    # keyboard patterns
    "qwerty", "qwerty123", "qwertyui", "qwertyuiop", "asdfghjkl",
    "zxcvbnm", "1q2w3e", "1q2w3e4r", "1qaz2wsx", "qazwsx",
    "zaq12wsx", "asdf1234", "123qwe",
    # word + digits
    "abcd1234", "pass1234", "test1234", "root1234", "user1234",
})


def is_common_password(password: str) -> bool:
    """Case-insensitive blocklist membership test."""
    return password.lower() in COMMON_PASSWORDS


# ---------------------------------------------------------------------------
# Strength scoring
# ---------------------------------------------------------------------------

_LOWER_RE = re.compile(r"[a-z]")
_UPPER_RE = re.compile(r"[A-Z]")
_DIGIT_RE = re.compile(r"[0-9]")
_SYMBOL_RE = re.compile(r"[^A-Za-z0-9]")

_REPEAT_RE = re.compile(r"(.)\1{2,}")
_NUMERIC_RUN_RE = re.compile(r"123|234|345|456|567|678|789|890")
_ALPHA_RUN_RE = re.compile(
    "|".join(
        "".join(chr(c) for c in range(start, start + 3))
        for start in range(ord("a"), ord("x") + 1)
    ),
    re.IGNORECASE,
)
_KEYBOARD_RE = re.compile(r"qwerty|asdfgh|zxcvbn", re.IGNORECASE)

_COMMON_WORDS: tuple[str, ...] = (
    "password", "admin", "user", "login", "welcome", "ciao", "amore", "casa",
)

_MAX_SUGGESTIONS: int = 2

# (minimum score, tier), checked top-down
_TIER_THRESHOLDS: tuple[tuple[int, PasswordTier], ...] = (
    (80, PasswordTier.VERY_STRONG),
    (60, PasswordTier.STRONG),
    (40, PasswordTier.FAIR),
    (20, PasswordTier.WEAK),
)


@dataclass(frozen=True)
class PasswordStrength:
    score: int
    tier: PasswordTier
    suggestions: list[str] = field(default_factory=list)

    @property
    def label(self) -> str:
        return self.tier.name.replace("_", " ").lower()


def _tier_for(score: int) -> PasswordTier:
    for threshold, tier in _TIER_THRESHOLDS:
        if score >= threshold:
            return tier
    return PasswordTier.VERY_WEAK


def strength_of(password: str) -> PasswordStrength:
    """Score *password* on a 0..100 scale.

    Length contributes up to 30 points, each character class present 10,
    and a 10-point bonus is granted for 12+ characters using all four
    classes.  Repeated characters, ascending numeric/alphabetic runs,
    keyboard rows and common words are penalised.  At most two
    suggestions are returned, always in the same priority order.
    """
    if not password:
        return PasswordStrength(score=0, tier=PasswordTier.VERY_WEAK)

    score = 0
    suggestions: list[str] = []

    length = len(password)
    if length >= 16:
        score += 30
    elif length >= 12:
        score += 25
    elif length >= 8:
        score += 15
    else:
        score += min(length * 2, 10)
        suggestions.append("Use at least 8 characters")

    has_lower = bool(_LOWER_RE.search(password))
    has_upper = bool(_UPPER_RE.search(password))
    has_digit = bool(_DIGIT_RE.search(password))
    has_symbol = bool(_SYMBOL_RE.search(password))
    variety = sum((has_lower, has_upper, has_digit, has_symbol))
    score += variety * 10

    if not has_upper:
        suggestions.append("Add uppercase letters")
    if not has_lower:
        suggestions.append("Add lowercase letters")
    if not has_digit:
        suggestions.append("Add numbers")
    if not has_symbol:
        suggestions.append("Add special characters (!@#$%^&*)")

    if _REPEAT_RE.search(password):
        score -= 10
        suggestions.append("Avoid repeated characters")
    if _NUMERIC_RUN_RE.search(password):
        score -= 10
        suggestions.append("Avoid numeric sequences")
    if _ALPHA_RUN_RE.search(password):
        score -= 10
        suggestions.append("Avoid alphabetic sequences")
    if _KEYBOARD_RE.search(password):
        score -= 15
        suggestions.append("Avoid keyboard patterns")

    lowered = password.lower()
    if any(word in lowered for word in _COMMON_WORDS):
        score -= 20
        suggestions.append("Avoid common words")

    if length >= 12 and variety == 4:
        score += 10

    score = max(0, min(100, score))
    return PasswordStrength(
        score=score,
        tier=_tier_for(score),
        suggestions=suggestions[:_MAX_SUGGESTIONS],
    )


# ---------------------------------------------------------------------------
# Sign-up policy
# ---------------------------------------------------------------------------

MIN_PASSWORD_LENGTH: int = 8

_POLICY_RULES: tuple[tuple[str, str], ...] = (
    ("too_short", f"Password must be at least {MIN_PASSWORD_LENGTH} characters."),
    ("no_uppercase", "Password must contain at least one uppercase letter."),
    ("no_lowercase", "Password must contain at least one lowercase letter."),
    ("no_digit", "Password must contain at least one digit."),
    ("no_symbol", "Password must contain at least one special character."),
    ("common", "This password is too common. Choose a different one."),
)


def validate_password(password: str) -> ValidationResult:
    """Enforce the password policy.

    Policy: minimum 8 characters, at least one uppercase letter, one
    lowercase letter, one digit and one special character, and not on
    the common-password blocklist.  Every unmet rule is reported.

    Returns
    -------
    ValidationResult
        ``problems`` holds the messages of every unmet rule, in a fixed
        order; ``error_message`` is the first of them.
    """
    failed = {
        "too_short": len(password) < MIN_PASSWORD_LENGTH,
        "no_uppercase": not _UPPER_RE.search(password),
        "no_lowercase": not _LOWER_RE.search(password),
        "no_digit": not _DIGIT_RE.search(password),
        "no_symbol": not _SYMBOL_RE.search(password),
        "common": is_common_password(password),
    }
    problems = [message for rule, message in _POLICY_RULES if failed[rule]]
    if problems:
        return ValidationResult(
            is_valid=False, error_message=problems[0], problems=problems
        )
    return ValidationResult(is_valid=True)


def ensure_password_policy(password: str) -> ValidationError | None:
    """Return a ``ValidationError`` for a policy violation, else ``None``."""
    check = validate_password(password)
    if check.is_valid:
        return None
    return ValidationError(
        check.error_message or "Password does not meet the security policy.",
        fields={"password": check.problems},
        reason="weak_password",
    )
