from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class DownloadConfig:
    concurrency: int = 32
    timeout_seconds: float = 30.0
    max_bytes: int = 50 * 1024 * 1024
    max_redirects: int = 5
    user_agent: str = "ndconv/0.1"


@dataclass
class InputConfig:
    max_bytes: int = 512 * 1024 * 1024
    reject_duplicate_files: bool = True


@dataclass
class OutputConfig:
    format: str = "yolo"
    include_images: bool = True
    output_dir: str | None = None


@dataclass
class MonitoringConfig:
    json_logs: bool = False
    log_level: str = "INFO"
    progress_json: bool = False
    event_file: str | None = None
    metrics_textfile: str | None = None


@dataclass
class ConverterConfig:
    download: DownloadConfig = field(default_factory=DownloadConfig)
    input: InputConfig = field(default_factory=InputConfig)
    output: OutputConfig = field(default_factory=OutputConfig)
    monitoring: MonitoringConfig = field(default_factory=MonitoringConfig)

    def as_log_context(self) -> dict[str, Any]:
        return {
            "format": self.output.format,
            "include_images": self.output.include_images,
            "concurrency": self.download.concurrency,
            "timeout_seconds": self.download.timeout_seconds,
            "max_image_bytes": self.download.max_bytes,
            "reject_duplicate_files": self.input.reject_duplicate_files,
            "json_logs": self.monitoring.json_logs,
        }
