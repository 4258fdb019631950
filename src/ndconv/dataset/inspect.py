from __future__ import annotations

import copy
from typing import Any

from ndconv.dataset.names import resolve_output_names
from ndconv.dataset.types import ValidationIssue
from ndconv.types import SPLITS, Dataset, ImageRecord


def find_duplicate_files(images: list[ImageRecord], limit: int | None = 5) -> list[str]:
    """Source file names used more than once across the whole dataset, in first-repeat order."""
    seen: set[str] = set()
    duplicates: list[str] = []
    for record in images:
        if record.file in seen:
            if record.file not in duplicates:
                duplicates.append(record.file)
                if limit is not None and len(duplicates) >= limit:
                    break
            continue
        seen.add(record.file)
    return duplicates


def inspect_dataset(dataset: Dataset) -> dict[str, Any]:
    issues: list[ValidationIssue] = []
    metadata = dataset.metadata

    counts = {
        "images": len(dataset.images),
        "train": 0,
        "valid": 0,
        "test": 0,
        "unknown_split": 0,
        "missing_url": 0,
        "annotations": 0,
        "skipped_annotations": 0,
        "duplicate_files": 0,
        "renamed_in_split": 0,
    }

    for record in dataset.images:
        split = record.normalized_split
        if split in SPLITS:
            counts[split] += 1
        else:
            counts["unknown_split"] += 1
            issues.append(
                ValidationIssue(
                    severity="warning",
                    code="unknown_split",
                    message=f"Split '{record.split}' is not train/val/valid/test; image is not exported",
                    file=record.file,
                    split=record.split,
                )
            )

        counts["annotations"] += len(record.annotations)
        if not record.url:
            counts["missing_url"] += 1
            issues.append(
                ValidationIssue(
                    severity="warning",
                    code="missing_url",
                    message="Image has no URL; it will be exported without image bytes",
                    file=record.file,
                    split=split,
                )
            )
        if record.skipped_annotations:
            counts["skipped_annotations"] += record.skipped_annotations
            issues.append(
                ValidationIssue(
                    severity="warning",
                    code="skipped_annotations",
                    message=f"{record.skipped_annotations} malformed annotation row(s) dropped",
                    file=record.file,
                    split=split,
                )
            )

    for name in find_duplicate_files(dataset.images, limit=None):
        counts["duplicate_files"] += 1
        issues.append(
            ValidationIssue(
                severity="error",
                code="duplicate_file",
                message="File name is used by more than one image record",
                file=name,
            )
        )

    # Dry run on copies so the caller's records keep their names.
    preview = [copy.copy(record) for record in dataset.images]
    counts["renamed_in_split"] = resolve_output_names(preview)
    for original, resolved in zip(dataset.images, preview):
        if resolved.output_file != original.file:
            issues.append(
                ValidationIssue(
                    severity="warning",
                    code="duplicate_in_split",
                    message=f"Would be exported as '{resolved.output_file}'",
                    file=original.file,
                    split=original.normalized_split,
                )
            )

    if not dataset.images:
        issues.append(
            ValidationIssue(
                severity="error",
                code="no_images",
                message="Dataset contains zero image records",
                file="",
            )
        )

    status = "fail" if any(issue.severity == "error" for issue in issues) else "pass"
    return {
        "status": status,
        "task": metadata.effective_task,
        "name": metadata.name,
        "classes": len(metadata.class_map()),
        "counts": counts,
        "issues": [issue.__dict__ for issue in issues],
    }
