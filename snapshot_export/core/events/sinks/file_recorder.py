"""
JSON-lines journal of an export run.

Each line is one event: ``{"type": <event class>, ...event fields}``.
The file is opened in append mode so a resumed export extends the
journal of the previous attempt.
"""
from __future__ import annotations

import dataclasses
import json
import threading
from pathlib import Path

from snapshot_export.core.events.events import ExportEvent


class FileRecorderSink:
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._stream = self.path.open("a", encoding="utf-8")

    def on_event(self, event: ExportEvent) -> None:
        line = json.dumps(
            {"type": type(event).__name__, **dataclasses.asdict(event)},
            sort_keys=True,
        )
        with self._lock:
            if self._stream.closed:
                return
            self._stream.write(line + "\n")
            self._stream.flush()

    def close(self) -> None:
        with self._lock:
            if not self._stream.closed:
                self._stream.close()
