"""
Base Service Class.

Minimal base class standardising the logger pattern for services.
Services extend this and receive their collaborators via ``__init__``.
"""

from __future__ import annotations

from primariga.logger import StructuredLogger


class BaseService:
    """Base class for service classes.  Provides ``self._logger``."""

    def __init__(self, logger: StructuredLogger) -> None:
        self._logger: StructuredLogger = logger
