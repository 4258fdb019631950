from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path


@dataclass
class MetricsSnapshot:
    attempted: int
    succeeded: int
    failed: int
    bytes_downloaded: int
    elapsed_seconds: float


class DownloadMetrics:
    """Thread-safe download counters, optionally mirrored into a Prometheus registry.

    The registry is private to this instance and is meant to be written once
    at the end of a run with ``write_textfile`` for the node-exporter textfile
    collector; a one-shot CLI has no process to scrape.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._start = time.monotonic()
        self._attempted = 0
        self._succeeded = 0
        self._failed = 0
        self._bytes = 0

        self._registry = None
        self._prometheus = None

    def enable_prometheus(self) -> bool:
        try:
            from prometheus_client import CollectorRegistry, Counter, Gauge
        except ImportError:
            logging.getLogger("ndconv.metrics").warning(
                "prometheus_client is not installed; metrics textfile disabled"
            )
            return False

        if self._registry is not None:
            return True

        registry = CollectorRegistry()
        self._prometheus = {
            "attempted": Counter("ndconv_downloads_attempted_total", "Image downloads attempted", registry=registry),
            "succeeded": Counter("ndconv_downloads_succeeded_total", "Image downloads stored", registry=registry),
            "failed": Counter("ndconv_downloads_failed_total", "Image downloads failed", registry=registry),
            "bytes": Counter("ndconv_download_bytes_total", "Image bytes downloaded", registry=registry),
            "last_run": Gauge("ndconv_last_run_timestamp_seconds", "Unix time of the last conversion run", registry=registry),
        }
        self._registry = registry
        return True

    def mark_success(self, size: int) -> None:
        with self._lock:
            self._attempted += 1
            self._succeeded += 1
            self._bytes += size
            if self._prometheus:
                self._prometheus["attempted"].inc()
                self._prometheus["succeeded"].inc()
                self._prometheus["bytes"].inc(size)

    def mark_failure(self) -> None:
        with self._lock:
            self._attempted += 1
            self._failed += 1
            if self._prometheus:
                self._prometheus["attempted"].inc()
                self._prometheus["failed"].inc()

    def snapshot(self) -> MetricsSnapshot:
        with self._lock:
            return MetricsSnapshot(
                attempted=self._attempted,
                succeeded=self._succeeded,
                failed=self._failed,
                bytes_downloaded=self._bytes,
                elapsed_seconds=max(0.0, time.monotonic() - self._start),
            )

    def write_textfile(self, path: Path) -> bool:
        if self._registry is None:
            return False
        from prometheus_client import write_to_textfile

        with self._lock:
            self._prometheus["last_run"].set_to_current_time()
        path.parent.mkdir(parents=True, exist_ok=True)
        write_to_textfile(str(path), self._registry)
        return True
