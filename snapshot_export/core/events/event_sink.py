"""
Event sink protocol.

A sink receives every event emitted on an export's bus, in emission
order, from whichever worker thread emitted it. Sinks that hold a
resource may also define close(); the bus calls it once at the end of
the export.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from snapshot_export.core.events.events import ExportEvent


class EventSink(Protocol):
    def on_event(self, event: ExportEvent) -> None:
        """Consume one export event."""
