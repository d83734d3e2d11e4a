"""
Logging sink.

Turns export events into log records. A failed copy unit is logged as a
warning; every other event is informational. Event fields are passed as
``extra`` so structured handlers can index them.
"""
from __future__ import annotations

import dataclasses
import logging

from snapshot_export.core.events.events import (
    CopyUnitCompletedEvent,
    ExportEvent,
    ExportStateTransitionEvent,
    SnapshotPublishedEvent,
)

_MESSAGES: dict[type, str] = {
    ExportStateTransitionEvent: "Export state changed",
    CopyUnitCompletedEvent: "Copy unit completed",
    SnapshotPublishedEvent: "Snapshot published",
}


class LoggingEventSink:
    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def on_event(self, event: ExportEvent) -> None:
        level = logging.INFO
        if isinstance(event, CopyUnitCompletedEvent) and event.status != "success":
            level = logging.WARNING

        self._logger.log(
            level,
            _MESSAGES.get(type(event), "Export event"),
            extra={"event_type": type(event).__name__, **dataclasses.asdict(event)},
        )
