"""
Error Monitoring.

Crash reporting is an external collaborator.  ``LoggingErrorMonitor`` is
the default ``ErrorMonitor``: it records reportable errors at CRITICAL
level on a dedicated logger so they can be shipped by the log pipeline
until a real crash-reporting client is plugged into ``ErrorReporter``.
"""

from __future__ import annotations

from typing import Mapping, Optional

from primariga.core.errors import AppError
from primariga.logger import StructuredLogger


class LoggingErrorMonitor:
    """``ErrorMonitor`` that writes captured errors to a logger."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger = logger
        self._captured: int = 0

    @property
    def captured_count(self) -> int:
        return self._captured

    def capture_exception(
        self,
        error: AppError,
        context: Optional[Mapping[str, object]] = None,
    ) -> None:
        self._captured += 1
        self._logger.critical(
            "Captured %s: %s",
            error.code,
            error.message,
            extra={"error": error.to_dict(), "context": dict(context or {})},
        )
