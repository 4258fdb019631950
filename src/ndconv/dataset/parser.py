from __future__ import annotations

import json
import logging
import math
from pathlib import Path
from typing import Any

from ndconv.errors import MissingMetadataError, NdconvError, NdjsonParseError
from ndconv.types import (
    Annotation,
    BoxAnnotation,
    Classification,
    Dataset,
    DatasetMetadata,
    ImageRecord,
    PoseAnnotation,
    SegmentAnnotation,
)

_logger = logging.getLogger("ndconv.parse")

_MIN_SEGMENT_FIELDS = 7


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _class_id(value: Any) -> int | None:
    number = _number(value)
    if number is None or not math.isfinite(number) or number < 0 or number != int(number):
        return None
    return int(number)


def _numbers(row: list[Any]) -> list[float] | None:
    values = [_number(item) for item in row]
    if any(item is None for item in values):
        return None
    return values  # type: ignore[return-value]


def _pairs(values: list[float]) -> list[tuple[float, float]]:
    return [(values[i], values[i + 1]) for i in range(0, len(values) - 1, 2)]


def _decode_box(row: list[Any]) -> BoxAnnotation | None:
    if len(row) < 5:
        return None
    class_id = _class_id(row[0])
    values = _numbers(row[1:5])
    if class_id is None or values is None:
        return None
    return BoxAnnotation(class_id, *values)


def _decode_segment(row: list[Any]) -> SegmentAnnotation | None:
    if len(row) < _MIN_SEGMENT_FIELDS:
        return None
    class_id = _class_id(row[0])
    values = _numbers(row[1:])
    if class_id is None or values is None:
        return None
    return SegmentAnnotation(class_id, _pairs(values))


def _decode_pose(row: list[Any], keypoint_count: int) -> PoseAnnotation | None:
    kp_fields = keypoint_count * 2
    if len(row) < 1 + kp_fields + 4:
        return None
    class_id = _class_id(row[0])
    keypoints = _numbers(row[1 : 1 + kp_fields])
    box = _numbers(row[1 + kp_fields : 1 + kp_fields + 4])
    if class_id is None or keypoints is None or box is None:
        return None
    return PoseAnnotation(class_id, _pairs(keypoints), *box)


def _decode_annotations(
    payload: Any,
    task: str,
    keypoint_count: int,
) -> tuple[list[Annotation], int]:
    """Decode the per-task annotation arrays; returns (annotations, skipped rows)."""
    if not isinstance(payload, dict):
        return [], 0

    if task == "classify":
        labels = payload.get("classification")
        if not isinstance(labels, list) or not labels:
            return [], 0
        class_id = _class_id(labels[0])
        if class_id is None:
            return [], 1
        return [Classification(class_id)], 0

    if task == "segment":
        rows = payload.get("segments")
        decode = _decode_segment
    elif task == "pose":
        rows = payload.get("pose")

        def decode(row: list[Any]) -> PoseAnnotation | None:
            return _decode_pose(row, keypoint_count)

    else:
        rows = payload.get("bboxes")
        decode = _decode_box

    if not isinstance(rows, list):
        return [], 0

    decoded: list[Annotation] = []
    skipped = 0
    for row in rows:
        annotation = decode(row) if isinstance(row, list) else None
        if annotation is None:
            skipped += 1
            continue
        decoded.append(annotation)
    return decoded, skipped


def _text(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _parse_metadata(value: dict[str, Any]) -> DatasetMetadata:
    class_names = value.get("class_names") or {}
    if not isinstance(class_names, dict):
        class_names = {}
    kpt_shape = value.get("kpt_shape")
    if isinstance(kpt_shape, list) and kpt_shape:
        kpt_shape = [_int(item) for item in kpt_shape]
    else:
        kpt_shape = None
    return DatasetMetadata(
        task=_text(value.get("task") or "detect"),
        name=_text(value.get("name")),
        description=_text(value.get("description")),
        url=_text(value.get("url")),
        class_names={str(k): _text(v) for k, v in class_names.items()},
        kpt_shape=kpt_shape,
        version=_int(value.get("version")),
        bytes=_int(value.get("bytes")),
    )


def _parse_image(value: dict[str, Any], line_no: int) -> tuple[ImageRecord, Any]:
    missing = [name for name in ("file", "width", "height") if name not in value]
    if missing:
        raise NdjsonParseError(
            f"Failed to parse JSON: line {line_no}: image record missing field(s) {', '.join(missing)}"
        )
    file_name = value["file"]
    width = value["width"]
    height = value["height"]
    if not isinstance(file_name, str) or not file_name:
        raise NdjsonParseError(f"Failed to parse JSON: line {line_no}: 'file' must be a non-empty string")
    if isinstance(width, bool) or isinstance(height, bool) or not isinstance(width, int) or not isinstance(height, int):
        raise NdjsonParseError(f"Failed to parse JSON: line {line_no}: 'width' and 'height' must be integers")

    record = ImageRecord(
        file=file_name,
        width=width,
        height=height,
        url=_text(value.get("url")),
        split=_text(value.get("split") or "train"),
    )
    return record, value.get("annotations")


class _NonJsonConstant(ValueError):
    pass


def _reject_constant(name: str) -> Any:
    raise _NonJsonConstant(f"{name} is not a valid JSON value")


def parse_ndjson(content: str) -> Dataset:
    """Parse NDJSON text into a Dataset.

    Blank lines are skipped and records whose ``type`` is neither ``dataset``
    nor ``image`` are ignored. Annotations are decoded once the whole input is
    read, since the dataset record that declares the task may come last.
    """
    metadata: DatasetMetadata | None = None
    pending: list[tuple[ImageRecord, Any]] = []

    # Only "\n" ends a record; U+2028 and friends are legal inside JSON strings.
    for line_no, raw in enumerate(content.split("\n"), start=1):
        line = raw.strip()
        if not line:
            continue
        try:
            value = json.loads(line, parse_constant=_reject_constant)
        except (json.JSONDecodeError, _NonJsonConstant) as exc:
            raise NdjsonParseError(f"Failed to parse JSON: line {line_no}: {exc}") from exc

        if not isinstance(value, dict):
            continue
        kind = value.get("type")
        if kind == "dataset":
            metadata = _parse_metadata(value)
        elif kind == "image":
            pending.append(_parse_image(value, line_no))

    if metadata is None:
        raise MissingMetadataError("No metadata found in NDJSON")

    task = metadata.effective_task
    keypoint_count = metadata.keypoint_count
    images: list[ImageRecord] = []
    skipped_total = 0
    for record, payload in pending:
        record.annotations, record.skipped_annotations = _decode_annotations(payload, task, keypoint_count)
        skipped_total += record.skipped_annotations
        images.append(record)

    if skipped_total:
        _logger.warning("skipped %d malformed annotation rows", skipped_total)
    _logger.debug("parsed task=%s images=%d", task, len(images))
    return Dataset(metadata=metadata, images=images)


def read_ndjson(path: Path, max_bytes: int) -> str:
    """Read NDJSON text from ``path``, refusing files larger than ``max_bytes``."""
    try:
        size = path.stat().st_size
    except OSError as exc:
        raise NdconvError(f"Failed to read file '{path}': {exc}") from exc
    if size > max_bytes:
        raise NdconvError(
            f"Input file '{path}' is too large ({size} bytes, max {max_bytes})"
        )
    try:
        with path.open("rb") as handle:
            raw = handle.read(max_bytes + 1)
    except OSError as exc:
        raise NdconvError(f"Failed to read file '{path}': {exc}") from exc
    if len(raw) > max_bytes:
        raise NdconvError(f"Input file '{path}' is too large (max {max_bytes} bytes)")
    try:
        return raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise NdjsonParseError(f"Failed to read file '{path}': not valid UTF-8 ({exc})") from exc
