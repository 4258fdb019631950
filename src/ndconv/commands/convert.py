from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Any

from ndconv.config import ConverterConfig, load_converter_config
from ndconv.io.progress import FanoutProgressSink, JsonProgressSink, LoggingProgressSink, ProgressSink
from ndconv.monitoring import DownloadMetrics, configure_logging
from ndconv.pipeline import convert_ndjson


def _clean_overrides(payload: dict[str, Any]) -> dict[str, Any]:
    cleaned: dict[str, Any] = {}
    for key, value in payload.items():
        if isinstance(value, dict):
            nested = _clean_overrides(value)
            if nested:
                cleaned[key] = nested
            continue
        if value is not None:
            cleaned[key] = value
    return cleaned


def build_convert_overrides(args: Any) -> dict[str, Any]:
    overrides = {
        "download": {
            "concurrency": args.concurrency,
            "timeout_seconds": args.timeout,
            "max_bytes": args.max_image_bytes,
        },
        "input": {
            "max_bytes": args.max_input_bytes,
            "reject_duplicate_files": (False if args.allow_duplicate_files else None),
        },
        "output": {
            "format": args.fmt,
            "include_images": args.include_images,
        },
        "monitoring": {
            "json_logs": args.json_logs,
            "log_level": args.log_level,
            "progress_json": args.progress_json,
            "event_file": args.event_file,
            "metrics_textfile": args.metrics_textfile,
        },
    }
    return _clean_overrides(overrides)


def _progress_sinks(config: ConverterConfig) -> tuple[ProgressSink, JsonProgressSink]:
    json_sink = JsonProgressSink(
        stdout_enabled=config.monitoring.progress_json,
        file_path=config.monitoring.event_file,
    )
    sinks: list[ProgressSink] = [LoggingProgressSink(logger=logging.getLogger("ndconv.progress"))]
    if json_sink.enabled():
        json_sink.open()
        sinks.append(json_sink)
    return FanoutProgressSink(sinks), json_sink


def run_convert(args: Any, repo_root: Path) -> int:
    try:
        config = load_converter_config(
            repo_root=repo_root,
            config_path=args.config,
            cli_overrides=build_convert_overrides(args),
        )
        configure_logging(
            level=config.monitoring.log_level,
            json_logs=config.monitoring.json_logs,
            quiet=args.quiet,
        )
        logger = logging.getLogger("ndconv.commands.convert")
        logger.info("starting convert config=%s", config.as_log_context())

        metrics = DownloadMetrics()
        if config.monitoring.metrics_textfile:
            metrics.enable_prometheus()

        progress, json_sink = _progress_sinks(config)
        try:
            result = convert_ndjson(
                input_path=args.input,
                fmt=config.output.format,
                output_path=args.output,
                include_images=config.output.include_images,
                progress=progress,
                config=config,
                metrics=metrics,
            )
        finally:
            json_sink.close()
            if config.monitoring.metrics_textfile:
                metrics.write_textfile(Path(config.monitoring.metrics_textfile).expanduser())

        snapshot = metrics.snapshot()
        logger.info(
            "convert finished zip=%s files=%d images=%d failed_downloads=%d bytes=%d elapsed=%.2fs",
            result.zip_path,
            result.file_count,
            result.image_count,
            result.failed_downloads,
            snapshot.bytes_downloaded,
            snapshot.elapsed_seconds,
        )
        if config.monitoring.progress_json:
            # Keep stdout one JSON object per line while progress events share it.
            print(json.dumps({"event": "result", **asdict(result)}, ensure_ascii=True), flush=True)
        else:
            print(json.dumps(asdict(result), ensure_ascii=True, indent=2))
        return 0
    except Exception as exc:
        print(f"convert command failed: {exc}", file=sys.stderr)
        return 2
