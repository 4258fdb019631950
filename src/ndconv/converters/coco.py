from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable

from ndconv.converters.base import Converter, DownloadedBytes, VirtualFiles, class_list
from ndconv.converters.geometry import (
    box_xywh,
    keypoint_visibility,
    polygon_abs,
    polygon_extent,
    to_absolute,
)
from ndconv.types import BoxAnnotation, Dataset, ImageRecord, PoseAnnotation, SegmentAnnotation

CONTRIBUTOR = "ndconv"


def _categories(names: list[str], pose: bool, keypoint_count: int) -> list[dict[str, Any]]:
    categories = []
    for idx, name in enumerate(names):
        category: dict[str, Any] = {"id": idx, "name": name, "supercategory": ""}
        if pose:
            category["keypoints"] = [f"keypoint_{k}" for k in range(keypoint_count)]
            category["skeleton"] = []
        categories.append(category)
    return categories


def _annotation(
    ann_id: int,
    image_id: int,
    class_id: int,
    bbox: tuple[float, float, float, float],
    segmentation: list[list[float]] | None = None,
) -> dict[str, Any]:
    return {
        "id": ann_id,
        "image_id": image_id,
        "category_id": class_id,
        "bbox": list(bbox),
        "area": bbox[2] * bbox[3],
        "iscrowd": 0,
        "segmentation": segmentation or [],
    }


def image_annotations(record: ImageRecord, image_id: int, task: str, start_id: int) -> list[dict[str, Any]]:
    """COCO annotation dicts for one image, ids counting up from ``start_id``."""
    width, height = record.width, record.height
    rows: list[dict[str, Any]] = []
    next_id = start_id

    if task == "segment":
        for ann in record.of_type(SegmentAnnotation):
            extent = polygon_extent(ann.points, width, height)
            if extent is None:
                continue
            xmin, ymin, xmax, ymax = extent
            bbox = (xmin, ymin, xmax - xmin, ymax - ymin)
            rows.append(_annotation(next_id, image_id, ann.class_id, bbox, [polygon_abs(ann.points, width, height)]))
            next_id += 1
    elif task == "pose":
        for ann in record.of_type(PoseAnnotation):
            keypoints: list[float] = []
            visible = 0
            for x, y in ann.keypoints:
                abs_x, abs_y = to_absolute(x, y, width, height)
                flag = keypoint_visibility(abs_x, abs_y)
                visible += 1 if flag else 0
                keypoints.extend([abs_x, abs_y, flag])
            row = _annotation(next_id, image_id, ann.class_id, box_xywh(ann.cx, ann.cy, ann.w, ann.h, width, height))
            row["keypoints"] = keypoints
            row["num_keypoints"] = visible
            rows.append(row)
            next_id += 1
    else:
        for ann in record.of_type(BoxAnnotation):
            rows.append(_annotation(next_id, image_id, ann.class_id, box_xywh(ann.cx, ann.cy, ann.w, ann.h, width, height)))
            next_id += 1

    return rows


class CocoConverter(Converter):
    def __init__(self, clock: Callable[[], datetime] | None = None) -> None:
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def name(self) -> str:
        return "coco"

    def build_document(self, dataset: Dataset, images: list[ImageRecord]) -> dict[str, Any]:
        metadata = dataset.metadata
        task = metadata.effective_task
        now = self._clock()
        stamp = now.isoformat()

        document: dict[str, Any] = {
            "info": {
                "description": metadata.name or "Converted from NDJSON",
                "url": metadata.url,
                "version": str(metadata.version),
                "year": now.year,
                "contributor": CONTRIBUTOR,
                "date_created": stamp,
            },
            "licenses": [{"id": 1, "name": "Unknown", "url": ""}],
            "categories": _categories(class_list(dataset), task == "pose", metadata.keypoint_count),
            "images": [],
            "annotations": [],
        }

        next_ann_id = 1
        for image_id, record in enumerate(images, start=1):
            document["images"].append(
                {
                    "id": image_id,
                    "file_name": record.effective_file,
                    "width": record.width,
                    "height": record.height,
                    "license": 1,
                    "date_captured": stamp,
                }
            )
            rows = image_annotations(record, image_id, task, next_ann_id)
            document["annotations"].extend(rows)
            next_ann_id += len(rows)

        return document

    def convert(self, dataset: Dataset, downloaded: DownloadedBytes) -> VirtualFiles:
        files: VirtualFiles = {}
        for split, images in self.splits(dataset):
            for record in images:
                self.add_image(files, f"{split}/{record.effective_file}", record, downloaded)
            path = f"{split}/_annotations.coco.json"
            files[path] = self.render(
                path,
                lambda images=images: json.dumps(
                    self.build_document(dataset, images),
                    indent=2,
                    ensure_ascii=False,
                    allow_nan=False,
                ),
            )
        return files
