"""
Per-export event bus.

Events are dispatched synchronously to every registered sink. Copy units
running on a thread pool share one bus, so dispatch is serialized: a sink
never sees two events at once and always sees them in emission order.
A bus without sinks simply drops everything.
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from snapshot_export.core.events.event_sink import EventSink
    from snapshot_export.core.events.events import ExportEvent

LOGGER = logging.getLogger(__name__)


class EventBus:
    def __init__(self, sinks: Iterable[EventSink] = ()) -> None:
        self._sinks: list[EventSink] = list(sinks)
        self._lock = threading.Lock()
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def register(self, sink: EventSink) -> None:
        with self._lock:
            self._sinks.append(sink)

    def emit(self, event: ExportEvent) -> None:
        with self._lock:
            if self._closed:
                LOGGER.warning(
                    "Event emitted on a closed bus",
                    extra={"event_type": type(event).__name__},
                )
                return
            for sink in self._sinks:
                sink.on_event(event)

    def close(self) -> None:
        """Close every sink that defines close(). Calling it twice is a no-op."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            sinks = list(self._sinks)

        for sink in sinks:
            close_fn = getattr(sink, "close", None)
            if callable(close_fn):
                close_fn()
