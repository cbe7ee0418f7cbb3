"""
Analytics Service.

Thin, fire-and-forget facade over the product-analytics client.  The
telemetry pipeline itself is an external collaborator: any object with
``capture`` / ``identify`` / ``reset`` methods can be plugged in.

No call ever raises.  Client failures are logged locally and swallowed;
without a client, events are only logged at DEBUG level.
"""

from __future__ import annotations

from typing import Mapping, Optional, Protocol, Union, runtime_checkable

from primariga.logger import StructuredLogger
from primariga.models.enums import AnalyticsEvent

PropertyValue = Union[str, int, float, bool, None, list[str]]
Properties = Mapping[str, PropertyValue]


@runtime_checkable
class AnalyticsClient(Protocol):
    def capture(self, event: str, properties: Optional[Properties] = None) -> None: ...  # noqa: E704

    def identify(self, distinct_id: str, traits: Optional[Properties] = None) -> None: ...  # noqa: E704

    def reset(self) -> None: ...  # noqa: E704


class AnalyticsService:
    """Fire-and-forget analytics facade.

    Parameters
    ----------
    logger:
        Structured logger for local fallback output and swallowed errors.
    client:
        Optional analytics client.  ``None`` disables remote tracking.
    """

    def __init__(
        self,
        logger: StructuredLogger,
        client: Optional[AnalyticsClient] = None,
    ) -> None:
        self._logger = logger
        self._client = client

    @property
    def enabled(self) -> bool:
        return self._client is not None

    def track(
        self,
        event: AnalyticsEvent,
        properties: Optional[Properties] = None,
    ) -> None:
        props = dict(properties or {})
        if self._client is None:
            self._logger.debug("[Analytics] Track: %s", event.value, extra={"properties": props})
            return
        try:
            self._client.capture(event.value, props)
        except Exception as exc:
            self._logger.warning("[Analytics] Track error for %s: %s", event.value, exc)

    def identify(self, identity_id: str, traits: Optional[Properties] = None) -> None:
        if self._client is None:
            self._logger.debug("[Analytics] Identify: %s", identity_id)
            return
        try:
            self._client.identify(identity_id, dict(traits or {}))
        except Exception as exc:
            self._logger.warning("[Analytics] Identify error: %s", exc)

    def reset(self) -> None:
        """Forget the identified user; subsequent events are anonymous."""
        if self._client is None:
            self._logger.debug("[Analytics] Reset")
            return
        try:
            self._client.reset()
        except Exception as exc:
            self._logger.warning("[Analytics] Reset error: %s", exc)
