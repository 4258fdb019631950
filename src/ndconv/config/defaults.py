from __future__ import annotations


DEFAULT_CONFIG: dict = {
    "download": {
        "concurrency": 32,
        "timeout_seconds": 30.0,
        "max_bytes": 50 * 1024 * 1024,
        "max_redirects": 5,
        "user_agent": "ndconv/0.1",
    },
    "input": {
        "max_bytes": 512 * 1024 * 1024,
        "reject_duplicate_files": True,
    },
    "output": {
        "format": "yolo",
        "include_images": True,
        "output_dir": None,
    },
    "monitoring": {
        "json_logs": False,
        "log_level": "INFO",
        "progress_json": False,
        "event_file": None,
        "metrics_textfile": None,
    },
}
