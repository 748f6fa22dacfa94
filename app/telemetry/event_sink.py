"""Destinations for run transition events."""

from __future__ import annotations

import json
import threading
from pathlib import Path
from typing import IO, Any, Optional, Protocol

from app.core.config import settings

Event = dict[str, Any]


class EventSink(Protocol):
    """Receives one event per completed run transition."""

    def publish(self, event: Event) -> None:  # pragma: no cover - interface
        ...

    def close(self) -> None:  # pragma: no cover - interface
        ...


class NullEventSink:
    """Drops every event; used when ``events_backend`` is off."""

    def publish(self, event: Event) -> None:
        return None

    def close(self) -> None:
        return None


class FileEventSink:
    """Appends events to a JSON Lines file, one compact object per line.

    The file is opened on the first event and kept open until :meth:`close`.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._handle: Optional[IO[str]] = None
        self._lock = threading.Lock()

    def publish(self, event: Event) -> None:
        line = json.dumps(event, separators=(",", ":"), sort_keys=True, default=str)
        with self._lock:
            if self._handle is None:
                self._handle = self.path.open("a", encoding="utf-8")
            self._handle.write(line + "\n")
            self._handle.flush()

    def close(self) -> None:
        with self._lock:
            if self._handle is not None:
                self._handle.close()
                self._handle = None


def sink_from_settings() -> EventSink:
    backend = settings.events_backend.lower().strip()
    if backend in {"off", "none", "null"}:
        return NullEventSink()
    if backend == "file":
        return FileEventSink(settings.events_path)
    raise ValueError(f"events_backend must be 'file' or 'off', got '{settings.events_backend}'")
