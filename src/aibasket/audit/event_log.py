"""
Append-only portfolio event trail.

Every state-changing operation emits a structured event recording what
changed (allocations set, trade executed with route and amounts,
liquidation amount, ...). Events are kept in memory, written to Python
logging, and fanned out to optional async sinks such as the SQL sink.

Usage::

    from aibasket.audit.event_log import EventLog

    events = EventLog()
    await events.emit(EventType.FUNDS_RECEIVED, amount=1_000)
    events.of_type(EventType.FUNDS_RECEIVED)
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from aibasket.models.enums import EventType
from aibasket.models.types import PortfolioEvent

logger = logging.getLogger(__name__)

EventSink = Callable[[PortfolioEvent], Awaitable[None]]


class EventLog:
    """Append-only event trail kept in memory and fanned out to sinks.

    Sink failures are logged but never raised: emitting an event must not
    break the operation that produced it.
    """

    def __init__(self, sinks: list[EventSink] | None = None) -> None:
        self._events: list[PortfolioEvent] = []
        self._sinks: list[EventSink] = list(sinks or [])
        self._sequence = itertools.count(1)

    def add_sink(self, sink: EventSink) -> None:
        self._sinks.append(sink)

    async def emit(self, event_type: EventType, **details: Any) -> PortfolioEvent:
        """Append an event and deliver it to every sink."""
        event = PortfolioEvent(
            event_type=event_type,
            sequence=next(self._sequence),
            details=details,
        )
        self._events.append(event)
        logger.info("EVENT: seq=%d type=%s %s", event.sequence, event_type.value, details)

        for sink in self._sinks:
            try:
                await sink(event)
            except Exception:
                logger.exception(
                    "Failed to deliver event seq=%d type=%s", event.sequence, event_type.value
                )
        return event

    @property
    def events(self) -> list[PortfolioEvent]:
        return list(self._events)

    def of_type(self, event_type: EventType) -> list[PortfolioEvent]:
        return [e for e in self._events if e.event_type == event_type]

    def __len__(self) -> int:
        return len(self._events)
