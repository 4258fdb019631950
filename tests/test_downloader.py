from __future__ import annotations

import time
import unittest

import httpx

from ndconv.errors import DownloadError
from ndconv.monitoring.metrics import DownloadMetrics
from ndconv.net.downloader import Downloader
from ndconv.types import ImageRecord

HOST = "http://93.184.216.34"


def _record(file: str, split: str = "train", url: str | None = None) -> ImageRecord:
    return ImageRecord(
        file=file,
        width=10,
        height=10,
        url=f"{HOST}/{file}" if url is None else url,
        split=split,
    )


def _trickle(chunks: int, size: int, delay: float = 0.0):
    for _ in range(chunks):
        if delay:
            time.sleep(delay)
        yield b"x" * size


def _handler(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/missing.jpg":
        return httpx.Response(404)
    if path == "/huge.jpg":
        return httpx.Response(200, content=b"x" * 64)
    if path == "/chunked-huge.jpg":
        return httpx.Response(200, content=_trickle(8, 8))
    if path == "/slow.jpg":
        return httpx.Response(200, content=_trickle(10, 1, delay=0.05))
    if path == "/moved.jpg":
        return httpx.Response(302, headers={"Location": "/a.jpg"})
    if path == "/sneaky.jpg":
        return httpx.Response(302, headers={"Location": "http://127.0.0.1/admin"})
    if path == "/loop.jpg":
        return httpx.Response(302, headers={"Location": "/loop.jpg"})
    return httpx.Response(200, content=f"bytes:{path}".encode("utf-8"))


def _downloader(**kwargs) -> Downloader:
    kwargs.setdefault("concurrency", 4)
    kwargs.setdefault("max_bytes", 32)
    return Downloader(transport=httpx.MockTransport(_handler), **kwargs)


class DownloaderTests(unittest.TestCase):
    def test_successful_downloads_are_keyed_by_split_and_name(self) -> None:
        images = [_record("a.jpg", "train"), _record("a.jpg", "val")]

        with _downloader() as downloader:
            result = downloader.download_all(images)

        self.assertEqual(result.total, 2)
        self.assertEqual(result.failed, 0)
        self.assertEqual(set(result.files), {("train", "a.jpg"), ("valid", "a.jpg")})
        self.assertEqual(result.files[("train", "a.jpg")], b"bytes:/a.jpg")

    def test_failures_are_counted_not_raised(self) -> None:
        images = [
            _record("a.jpg"),
            _record("missing.jpg"),
            _record("huge.jpg"),
            _record("sneaky.jpg"),
            _record("loop.jpg"),
            _record("local.jpg", url="http://localhost/local.jpg"),
        ]
        metrics = DownloadMetrics()

        with _downloader(metrics=metrics, max_redirects=2) as downloader:
            result = downloader.download_all(images)

        self.assertEqual(result.total, 6)
        self.assertEqual(result.failed, 5)
        self.assertEqual(list(result.files), [("train", "a.jpg")])
        snapshot = metrics.snapshot()
        self.assertEqual(snapshot.attempted, 6)
        self.assertEqual(snapshot.succeeded, 1)
        self.assertEqual(snapshot.failed, 5)

    def test_body_without_content_length_is_capped_while_streaming(self) -> None:
        with _downloader() as downloader:
            with self.assertRaises(DownloadError) as ctx:
                downloader.fetch(f"{HOST}/chunked-huge.jpg")

        self.assertIn("too large", str(ctx.exception))

    def test_timeout_bounds_the_whole_body_not_each_chunk(self) -> None:
        with _downloader(timeout_seconds=0.15) as downloader:
            with self.assertRaises(DownloadError) as ctx:
                downloader.fetch(f"{HOST}/slow.jpg")

        self.assertIn("Timed out", str(ctx.exception))

    def test_slow_body_counts_as_a_failed_download(self) -> None:
        with _downloader(timeout_seconds=0.15) as downloader:
            result = downloader.download_all([_record("slow.jpg"), _record("a.jpg")])

        self.assertEqual(result.failed, 1)
        self.assertEqual(list(result.files), [("train", "a.jpg")])

    def test_redirect_to_public_host_is_followed(self) -> None:
        with _downloader() as downloader:
            data = downloader.fetch(f"{HOST}/moved.jpg")

        self.assertEqual(data, b"bytes:/a.jpg")

    def test_progress_counts_up_to_total(self) -> None:
        images = [_record(f"{idx}.jpg") for idx in range(10)]
        events = []

        with _downloader() as downloader:
            downloader.download_all(images, progress=events.append)

        self.assertEqual([event.current for event in events], list(range(11)))
        self.assertTrue(all(event.total == 10 for event in events))
        self.assertTrue(all(event.phase == "downloading" for event in events))

    def test_records_without_url_are_not_attempted(self) -> None:
        events = []

        with _downloader() as downloader:
            result = downloader.download_all([_record("a.jpg", url="")], progress=events.append)

        self.assertEqual(result.total, 0)
        self.assertEqual(result.files, {})
        self.assertEqual(events, [])

    def test_broken_progress_sink_does_not_fail_downloads(self) -> None:
        def sink(event) -> None:
            raise RuntimeError("sink down")

        with _downloader() as downloader:
            result = downloader.download_all([_record("a.jpg")], progress=sink)

        self.assertEqual(result.image_count, 1)


if __name__ == "__main__":
    unittest.main()
