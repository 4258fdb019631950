from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional

import httpx

from ndconv.errors import DownloadError, UnsafeUrlError
from ndconv.io.progress import ProgressSink, emit_progress
from ndconv.monitoring.metrics import DownloadMetrics
from ndconv.net.urlguard import validate_download_url
from ndconv.types import ImageRecord, ProgressEvent

MAX_DOWNLOAD_BYTES = 50 * 1024 * 1024
DEFAULT_CONCURRENCY = 32
DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_MAX_REDIRECTS = 5
DEFAULT_USER_AGENT = "ndconv/0.1"


@dataclass
class DownloadResult:
    files: dict[tuple[str, str], bytes] = field(default_factory=dict)
    total: int = 0
    failed: int = 0

    @property
    def image_count(self) -> int:
        return len(self.files)


class _DownloadState:
    """Results shared by the worker threads; every mutation happens under one lock."""

    def __init__(self, total: int, progress: Optional[ProgressSink]) -> None:
        self._lock = threading.Lock()
        self._total = total
        self._progress = progress
        self._files: dict[tuple[str, str], bytes] = {}
        self._completed = 0
        self._failed = 0

    def record(self, record: ImageRecord, data: bytes | None) -> None:
        with self._lock:
            if data is None:
                self._failed += 1
            else:
                self._files[record.key] = data
            self._completed += 1
            # Emitted under the lock so counters reach the sink in order.
            emit_progress(
                self._progress,
                ProgressEvent(
                    phase="downloading",
                    current=self._completed,
                    total=self._total,
                    item=record.effective_file,
                ),
            )

    def result(self) -> DownloadResult:
        with self._lock:
            return DownloadResult(files=dict(self._files), total=self._total, failed=self._failed)


class Downloader:
    def __init__(
        self,
        concurrency: int = DEFAULT_CONCURRENCY,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        max_bytes: int = MAX_DOWNLOAD_BYTES,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        user_agent: str = DEFAULT_USER_AGENT,
        metrics: DownloadMetrics | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._concurrency = max(1, int(concurrency))
        self._max_bytes = max(1, int(max_bytes))
        self._max_redirects = max(0, int(max_redirects))
        self._timeout_seconds = float(timeout_seconds)
        self._metrics = metrics
        self._logger = logging.getLogger("ndconv.download")
        # Redirects are followed by hand so every hop goes through the URL guard.
        self._client = httpx.Client(
            timeout=httpx.Timeout(timeout_seconds),
            follow_redirects=False,
            limits=httpx.Limits(
                max_connections=self._concurrency,
                max_keepalive_connections=self._concurrency,
            ),
            headers={"User-Agent": user_agent},
            transport=transport,
        )

    def __enter__(self) -> "Downloader":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _check_deadline(self, deadline: float) -> None:
        if time.monotonic() > deadline:
            raise DownloadError(f"Timed out after {self._timeout_seconds:g}s")

    def _read_limited(self, response: httpx.Response, deadline: float) -> bytes:
        declared = response.headers.get("content-length")
        if declared is not None:
            try:
                declared_size = int(declared)
            except ValueError:
                declared_size = None
            if declared_size is not None and declared_size > self._max_bytes:
                raise DownloadError(
                    f"Response too large ({declared_size} bytes, max {self._max_bytes})"
                )

        chunks: list[bytes] = []
        received = 0
        for chunk in response.iter_bytes():
            self._check_deadline(deadline)
            received += len(chunk)
            if received > self._max_bytes:
                raise DownloadError(f"Response too large (max {self._max_bytes} bytes)")
            chunks.append(chunk)
        return b"".join(chunks)

    def fetch(self, url: str) -> bytes:
        """GET ``url`` after validating it and every redirect target; returns the body.

        ``timeout_seconds`` bounds the whole request, redirects and body included,
        not just each socket operation.
        """
        deadline = time.monotonic() + self._timeout_seconds
        current = url
        for _ in range(self._max_redirects + 1):
            self._check_deadline(deadline)
            validate_download_url(current)
            with self._client.stream("GET", current) as response:
                if response.is_redirect:
                    location = response.headers.get("location")
                    if not location:
                        raise DownloadError(f"HTTP {response.status_code} redirect without Location")
                    current = str(response.url.join(location))
                    continue
                if not response.is_success:
                    raise DownloadError(f"HTTP {response.status_code}")
                return self._read_limited(response, deadline)
        raise DownloadError(f"Too many redirects (max {self._max_redirects})")

    def _attempt(self, record: ImageRecord, state: _DownloadState) -> None:
        data: bytes | None = None
        try:
            data = self.fetch(record.url)
        except UnsafeUrlError as exc:
            self._logger.warning("skipping download file=%s reason=%s", record.effective_file, exc)
        except DownloadError as exc:
            self._logger.warning("download failed file=%s reason=%s", record.effective_file, exc)
        except httpx.HTTPError as exc:
            self._logger.warning("download failed file=%s error=%s", record.effective_file, exc)
        except Exception as exc:
            self._logger.warning(
                "download failed file=%s unexpected=%s", record.effective_file, exc, exc_info=True
            )

        if self._metrics is not None:
            if data is None:
                self._metrics.mark_failure()
            else:
                self._metrics.mark_success(len(data))
        state.record(record, data)

    def download_all(
        self,
        images: list[ImageRecord],
        progress: Optional[ProgressSink] = None,
    ) -> DownloadResult:
        """Fetch every record with a URL using a fixed pool of ``concurrency`` threads.

        Failures are counted, never raised. Results are keyed by
        ``(normalized split, effective file name)``, so output names must be
        resolved before calling this.
        """
        work = [record for record in images if record.url]
        total = len(work)
        if total == 0:
            return DownloadResult()

        emit_progress(progress, ProgressEvent(phase="downloading", current=0, total=total))
        state = _DownloadState(total, progress)

        workers = min(self._concurrency, total)
        self._logger.info("downloading images=%d workers=%d", total, workers)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ndconv-dl") as pool:
            for _ in pool.map(lambda record: self._attempt(record, state), work):
                pass

        result = state.result()
        self._logger.info(
            "downloads finished stored=%d failed=%d total=%d",
            result.image_count,
            result.failed,
            result.total,
        )
        return result
