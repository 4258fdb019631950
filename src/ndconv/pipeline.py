from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from ndconv.archive import write_zip
from ndconv.config.models import ConverterConfig
from ndconv.converters.selector import available_formats, get_converter
from ndconv.dataset.inspect import find_duplicate_files
from ndconv.dataset.names import resolve_output_names
from ndconv.dataset.parser import parse_ndjson, read_ndjson
from ndconv.errors import ConversionError, NdconvError
from ndconv.io.progress import ProgressSink, emit_progress
from ndconv.monitoring.metrics import DownloadMetrics
from ndconv.net.downloader import Downloader, DownloadResult
from ndconv.types import ConvertResult, ProgressEvent

_logger = logging.getLogger("ndconv.pipeline")


def default_output_path(input_path: Path, fmt: str, output_dir: str | None = None) -> Path:
    """``<input stem>_<format>.zip`` beside the input, or inside ``output_dir`` when given."""
    parent = Path(output_dir).expanduser() if output_dir else input_path.parent
    return parent / f"{input_path.stem}_{fmt.strip().lower()}.zip"


def _download(
    config: ConverterConfig,
    dataset,
    progress: Optional[ProgressSink],
    metrics: DownloadMetrics | None,
) -> DownloadResult:
    settings = config.download
    with Downloader(
        concurrency=settings.concurrency,
        timeout_seconds=settings.timeout_seconds,
        max_bytes=settings.max_bytes,
        max_redirects=settings.max_redirects,
        user_agent=settings.user_agent,
        metrics=metrics,
    ) as downloader:
        return downloader.download_all(dataset.images, progress)


def _run(
    input_path: Path,
    fmt: str,
    output_path: Path,
    include_images: bool,
    progress: Optional[ProgressSink],
    config: ConverterConfig,
    metrics: DownloadMetrics | None,
) -> ConvertResult:
    content = read_ndjson(input_path, config.input.max_bytes)

    emit_progress(progress, ProgressEvent(phase="parsing", current=0, total=1))
    dataset = parse_ndjson(content)
    emit_progress(progress, ProgressEvent(phase="parsing", current=1, total=1))
    _logger.info(
        "parsed input=%s task=%s images=%d",
        input_path,
        dataset.metadata.effective_task,
        len(dataset.images),
    )

    if config.input.reject_duplicate_files:
        duplicates = find_duplicate_files(dataset.images, limit=5)
        if duplicates:
            raise ConversionError(
                "Duplicate image file names found in NDJSON: " + ", ".join(duplicates)
            )

    converter = get_converter(fmt)
    if converter is None:
        supported = ", ".join(available_formats())
        raise ConversionError(f"Unsupported format: {fmt} (supported: {supported})")

    renamed = resolve_output_names(dataset.images)
    if renamed:
        _logger.info("renamed %d colliding output file names", renamed)

    downloads = DownloadResult()
    if include_images:
        downloads = _download(config, dataset, progress, metrics)
        if downloads.total > 0 and downloads.image_count == 0:
            raise ConversionError(f"All {downloads.total} image downloads failed")

    emit_progress(progress, ProgressEvent(phase="converting", current=0, total=1))
    files = converter.convert(dataset, downloads.files)
    emit_progress(progress, ProgressEvent(phase="converting", current=1, total=1))

    file_count = write_zip(files, output_path, progress)

    result = ConvertResult(
        zip_path=str(output_path),
        file_count=file_count,
        image_count=downloads.image_count,
        download_total=downloads.total,
        failed_downloads=downloads.failed,
    )
    emit_progress(progress, ProgressEvent(phase="complete", current=file_count, total=file_count))
    return result


def convert_ndjson(
    input_path: str | Path,
    fmt: str,
    output_path: str | Path | None = None,
    include_images: bool = True,
    progress: Optional[ProgressSink] = None,
    config: ConverterConfig | None = None,
    metrics: DownloadMetrics | None = None,
) -> ConvertResult:
    """Convert an NDJSON dataset export into a zip archive in format ``fmt``.

    Input problems (unreadable or oversize file, bad JSON, missing metadata,
    duplicate source names, unknown format) fail before any image is fetched.
    Individual download failures are tolerated and counted; the run fails only
    when every attempted download failed. All failures surface as
    ``ConversionError``.
    """
    config = config or ConverterConfig()
    source = Path(input_path).expanduser()
    target = Path(output_path).expanduser() if output_path else default_output_path(
        source, fmt, config.output.output_dir
    )

    _logger.info("converting input=%s format=%s output=%s", source, fmt, target)
    try:
        return _run(source, fmt, target, include_images, progress, config, metrics)
    except ConversionError:
        raise
    except NdconvError as exc:
        raise ConversionError(str(exc)) from exc
