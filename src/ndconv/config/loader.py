from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any

import yaml
from dynaconf import Dynaconf

from ndconv.config.defaults import DEFAULT_CONFIG
from ndconv.config.models import (
    ConverterConfig,
    DownloadConfig,
    InputConfig,
    MonitoringConfig,
    OutputConfig,
)

try:
    import tomllib
except ImportError:  # pragma: no cover - Python < 3.11
    import tomli as tomllib  # type: ignore

CONFIG_CANDIDATES = (
    "ndconv.toml",
    "ndconv.yaml",
    "ndconv.yml",
    "ndconv.json",
    "settings.toml",
    "settings.yaml",
    "settings.yml",
    "settings.json",
)


def _merge_dict(base: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    for key, value in patch.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge_dict(base[key], value)
        else:
            base[key] = value
    return base


def _lower_keys(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_lower_keys(item) for item in obj]
    return obj


def read_config_file(path: Path) -> dict[str, Any]:
    suffix = path.suffix.lower()
    text = path.read_text(encoding="utf-8")

    if suffix == ".json":
        loaded = json.loads(text)
    elif suffix == ".toml":
        loaded = tomllib.loads(text)
    elif suffix in {".yaml", ".yml"}:
        loaded = yaml.safe_load(text)
    else:
        raise RuntimeError(f"Unsupported config extension: {suffix}")

    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise RuntimeError(f"Config file must hold a mapping: {path}")
    return loaded


def _load_with_dynaconf(config_paths: list[Path]) -> dict[str, Any]:
    settings = Dynaconf(
        envvar_prefix="NDCONV",
        settings_files=[str(path) for path in config_paths if path.exists()],
        merge_enabled=True,
        environments=False,
        load_dotenv=True,
    )
    return _lower_keys(settings.as_dict())


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


def _optional_str(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _normalize(data: dict[str, Any]) -> ConverterConfig:
    download_data = data.get("download", {})
    input_data = data.get("input", {})
    output_data = data.get("output", {})
    monitoring_data = data.get("monitoring", {})

    return ConverterConfig(
        download=DownloadConfig(
            concurrency=max(1, int(download_data.get("concurrency", 32))),
            timeout_seconds=max(0.1, float(download_data.get("timeout_seconds", 30.0))),
            max_bytes=max(1, int(download_data.get("max_bytes", 50 * 1024 * 1024))),
            max_redirects=max(0, int(download_data.get("max_redirects", 5))),
            user_agent=str(download_data.get("user_agent", "ndconv/0.1")),
        ),
        input=InputConfig(
            max_bytes=max(1, int(input_data.get("max_bytes", 512 * 1024 * 1024))),
            reject_duplicate_files=_coerce_bool(input_data.get("reject_duplicate_files", True)),
        ),
        output=OutputConfig(
            format=str(output_data.get("format", "yolo")).strip().lower(),
            include_images=_coerce_bool(output_data.get("include_images", True)),
            output_dir=_optional_str(output_data.get("output_dir")),
        ),
        monitoring=MonitoringConfig(
            json_logs=_coerce_bool(monitoring_data.get("json_logs", False)),
            log_level=str(monitoring_data.get("log_level", "INFO")).upper(),
            progress_json=_coerce_bool(monitoring_data.get("progress_json", False)),
            event_file=_optional_str(monitoring_data.get("event_file")),
            metrics_textfile=_optional_str(monitoring_data.get("metrics_textfile")),
        ),
    )


def _default_config_copy() -> dict[str, Any]:
    return json.loads(json.dumps(DEFAULT_CONFIG))


def load_converter_config(
    repo_root: Path,
    config_path: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
) -> ConverterConfig:
    """Defaults, then config files (or NDCONV_* env vars through dynaconf), then CLI overrides."""
    config_paths: list[Path] = []
    if config_path:
        explicit = Path(config_path).expanduser()
        if not explicit.exists():
            raise FileNotFoundError(f"Config file not found: {explicit}")
        config_paths.append(explicit)
    else:
        for name in CONFIG_CANDIDATES:
            candidate = repo_root / name
            if candidate.exists():
                config_paths.append(candidate)

    merged = _default_config_copy()

    dynaconf_data = _load_with_dynaconf(config_paths)
    if dynaconf_data:
        _merge_dict(merged, dynaconf_data)
    else:
        for path in config_paths:
            _merge_dict(merged, _lower_keys(read_config_file(path)))

    if cli_overrides:
        _merge_dict(merged, _lower_keys(cli_overrides))

    return _normalize(merged)


def converter_config_to_dict(config: ConverterConfig) -> dict[str, Any]:
    return asdict(config)
