"""
Structured JSON Logging Module.

Every service in the auth core receives a ``StructuredLogger`` through its
constructor.  Records are rendered as one JSON object per line so that the
diagnostics side channel (raw provider errors, state transitions, lockout
events) can be grepped and shipped without parsing free text.

Structured context passed through ``extra`` is scrubbed before it reaches
a handler:

- keys naming a password or secret are replaced with ``[REDACTED]``;
- keys naming a token keep only their last four characters;
- e-mail addresses are masked, whether under an ``*email*`` key or
  embedded in any other string value.

The rendered message itself is left verbatim; callers mask emails they
interpolate (see :func:`primariga.utils.security.mask_email`).
"""

from __future__ import annotations

import json
import logging
import re
import sys
from collections.abc import Mapping
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, TextIO

from primariga.utils.security import mask_email, mask_sensitive_data

REDACTED: str = "[REDACTED]"

_SECRET_KEY_PARTS: tuple[str, ...] = ("password", "secret")
_TOKEN_KEY_PART: str = "token"
_EMAIL_IN_TEXT: re.Pattern[str] = re.compile(r"[^\s@\"'<>()]+@[^\s@\"'<>()]+\.[A-Za-z]{2,}")

_STANDARD_ATTRS: frozenset[str] = frozenset(
    logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None
    ).__dict__.keys()
) | {"message", "asctime"}


def redact(key: str, value: object) -> object:
    """Return *value* with credentials and e-mail addresses scrubbed.

    Mappings and sequences are walked recursively; nested keys are judged
    by their own name.  Values that are not JSON scalars are stringified.
    """
    lowered = key.lower()
    if any(part in lowered for part in _SECRET_KEY_PARTS):
        return REDACTED
    if _TOKEN_KEY_PART in lowered and value is not None:
        return mask_sensitive_data(str(value))

    if isinstance(value, Mapping):
        return {str(k): redact(str(k), v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [redact(key, item) for item in value]
    if value is None or isinstance(value, (bool, int, float)):
        return value

    text = str(value)
    if "email" in lowered:
        return mask_email(text)
    return _EMAIL_IN_TEXT.sub(lambda match: mask_email(match.group(0)), text)


class JSONFormatter(logging.Formatter):
    """Formats log records as structured JSON objects.

    Each log entry contains:
        - timestamp  (ISO-8601, UTC)
        - level      (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        - logger_name
        - message
        - extra      (scrubbed structured fields from the ``extra`` kwarg)
        - exception  (formatted traceback when ``exc_info`` is set)
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger_name": record.name,
            "message": record.getMessage(),
        }

        extra_fields = {
            key: redact(key, value)
            for key, value in record.__dict__.items()
            if key not in _STANDARD_ATTRS
        }
        if extra_fields:
            entry["extra"] = extra_fields

        if record.exc_info and not record.exc_text:
            record.exc_text = self.formatException(record.exc_info)
        if record.exc_text:
            entry["exception"] = record.exc_text

        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogger:
    """Injectable JSON logger writing to a stream and a rotating file.

    Usage::

        log = StructuredLogger(name="auth")
        log.info("Sign-in attempt", extra={"event": "LOGIN_STARTED"})

    Handlers are attached once per logger *name*; a second instance with
    the same name shares the first one's handlers.  Settings left as
    ``None`` fall back to ``LOG_FILE`` / ``LOG_MAX_BYTES`` /
    ``LOG_BACKUP_COUNT`` from :class:`~primariga.config.AppConfig`.
    """

    _DEFAULT_LOG_FILE: str = "primariga.log"

    def __init__(
        self,
        name: str = "primariga",
        level: int = logging.INFO,
        stream: Optional[TextIO] = None,
        log_file: Optional[str] = None,
        max_bytes: Optional[int] = None,
        backup_count: Optional[int] = None,
    ) -> None:
        self._logger: logging.Logger = logging.getLogger(name)
        self._logger.setLevel(level)
        self._logger.propagate = False

        if self._logger.handlers:
            return

        formatter = JSONFormatter()
        stream_handler = logging.StreamHandler(stream or sys.stdout)
        stream_handler.setFormatter(formatter)
        self._logger.addHandler(stream_handler)
        self._attach_file_handler(formatter, log_file, max_bytes, backup_count)

    def _attach_file_handler(
        self,
        formatter: logging.Formatter,
        log_file: Optional[str],
        max_bytes: Optional[int],
        backup_count: Optional[int],
    ) -> None:
        from primariga.config import get_config  # deferred: config loads .env

        cfg = get_config()
        path = Path(log_file or cfg.LOG_FILE or self._DEFAULT_LOG_FILE)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = RotatingFileHandler(
                filename=str(path),
                maxBytes=cfg.LOG_MAX_BYTES if max_bytes is None else max_bytes,
                backupCount=cfg.LOG_BACKUP_COUNT if backup_count is None else backup_count,
                encoding="utf-8",
            )
        except OSError as exc:
            self._logger.warning(
                "Could not open log file '%s': %s. Logging to the stream only.",
                path,
                exc,
            )
            return
        handler.setFormatter(formatter)
        self._logger.addHandler(handler)

    @property
    def logger(self) -> logging.Logger:
        return self._logger

    def debug(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.debug(msg, *args, **kwargs)

    def info(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.info(msg, *args, **kwargs)

    def warning(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.warning(msg, *args, **kwargs)

    def error(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.error(msg, *args, **kwargs)

    def critical(self, msg: str, *args: object, **kwargs: object) -> None:
        self._logger.critical(msg, *args, **kwargs)


def get_logger(name: str = "primariga") -> StructuredLogger:
    """Return a ``StructuredLogger`` for *name* with default settings."""
    return StructuredLogger(name=name)
