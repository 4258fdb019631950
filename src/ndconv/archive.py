from __future__ import annotations

import logging
import re
import zipfile
from pathlib import Path
from typing import Optional

from ndconv.errors import ConversionError, ZipPathError
from ndconv.io.progress import ProgressSink, emit_progress
from ndconv.types import ProgressEvent

PROGRESS_EVERY = 50

_RESERVED_NAMES = frozenset(
    ["CON", "PRN", "AUX", "NUL"]
    + [f"COM{idx}" for idx in range(1, 10)]
    + [f"LPT{idx}" for idx in range(1, 10)]
)
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")

_logger = logging.getLogger("ndconv.archive")


def _is_reserved(segment: str) -> bool:
    base = segment.rstrip(". ").split(".", 1)[0].rstrip(" ")
    return base.upper() in _RESERVED_NAMES


def normalize_zip_path(path: str) -> str:
    """Return ``path`` with forward slashes, or raise ZipPathError if it could escape the archive root."""
    normalized = str(path).replace("\\", "/")
    if not normalized:
        raise ZipPathError("Empty zip entry path")
    if normalized.startswith("//"):
        raise ZipPathError(f"UNC zip entry path not allowed: {path}")
    if normalized.startswith("/"):
        raise ZipPathError(f"Absolute zip entry path not allowed: {path}")
    if _DRIVE_PREFIX.match(normalized):
        raise ZipPathError(f"Drive-letter zip entry path not allowed: {path}")

    for segment in normalized.split("/"):
        if segment == "..":
            raise ZipPathError(f"Parent directory segment not allowed: {path}")
        if segment and _is_reserved(segment):
            raise ZipPathError(f"Reserved device name not allowed: {path}")
    return normalized


def write_zip(
    files: dict[str, bytes],
    output_path: Path,
    progress: Optional[ProgressSink] = None,
) -> int:
    """Write ``files`` as a deflated zip in sorted path order and return the entry count."""
    output_path = Path(output_path)
    entries = sorted((normalize_zip_path(path), data) for path, data in files.items())
    total = len(entries)

    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(output_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for index, (name, data) in enumerate(entries, start=1):
                archive.writestr(name, data)
                if index % PROGRESS_EVERY == 0 or index == total:
                    emit_progress(progress, ProgressEvent(phase="zipping", current=index, total=total, item=name))
    except (OSError, zipfile.BadZipFile, ValueError) as exc:
        if output_path.exists():
            output_path.unlink()
        raise ConversionError(f"Failed to write archive {output_path}: {exc}") from exc

    _logger.info("wrote archive path=%s entries=%d", output_path, total)
    return total
