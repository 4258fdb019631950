from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict
from pathlib import Path
from typing import Callable, Optional

from ndconv.types import ProgressEvent

ProgressSink = Callable[[ProgressEvent], None]

_logger = logging.getLogger("ndconv.progress")


def emit_progress(sink: Optional[ProgressSink], event: ProgressEvent) -> None:
    """Deliver ``event`` to ``sink``; delivery failures never reach the caller."""
    if sink is None:
        return
    try:
        sink(event)
    except Exception as exc:
        _logger.debug("progress sink failed phase=%s error=%s", event.phase, exc)


class JsonProgressSink:
    def __init__(self, stdout_enabled: bool, file_path: str | None = None) -> None:
        self._stdout_enabled = stdout_enabled
        self._file_path = Path(file_path).expanduser().resolve() if file_path else None
        self._file_handle = None
        self._lock = threading.Lock()

    def enabled(self) -> bool:
        return self._stdout_enabled or self._file_path is not None

    def open(self) -> None:
        if self._file_path is not None:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = self._file_path.open("a", encoding="utf-8")

    def __call__(self, event: ProgressEvent) -> None:
        payload = json.dumps({"event": "progress", **asdict(event)}, ensure_ascii=True)
        with self._lock:
            if self._stdout_enabled:
                print(payload, flush=True)
            if self._file_handle is not None:
                self._file_handle.write(payload + "\n")
                self._file_handle.flush()

    def close(self) -> None:
        with self._lock:
            if self._file_handle is not None:
                self._file_handle.close()
                self._file_handle = None


class LoggingProgressSink:
    """Logs phase changes, the last event of a phase and every ``every``-th item."""

    def __init__(self, every: int = 50, logger: logging.Logger | None = None) -> None:
        self._every = max(1, every)
        self._logger = logger or _logger
        self._phase: str | None = None

    def __call__(self, event: ProgressEvent) -> None:
        changed = event.phase != self._phase
        self._phase = event.phase
        done = event.total > 0 and event.current >= event.total
        if not (changed or done or event.current % self._every == 0):
            return
        if event.item:
            self._logger.info("%s %d/%d %s", event.phase, event.current, event.total, event.item)
        else:
            self._logger.info("%s %d/%d", event.phase, event.current, event.total)


class FanoutProgressSink:
    def __init__(self, sinks: list[ProgressSink]) -> None:
        self._sinks = list(sinks)

    def __call__(self, event: ProgressEvent) -> None:
        for sink in self._sinks:
            emit_progress(sink, event)
