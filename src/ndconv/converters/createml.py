from __future__ import annotations

import json
from typing import Any

from ndconv.converters.base import (
    Converter,
    DownloadedBytes,
    VirtualFiles,
    class_name,
    class_names,
)
from ndconv.converters.geometry import box_center_abs, polygon_extent
from ndconv.types import BoxAnnotation, Dataset, ImageRecord, PoseAnnotation, SegmentAnnotation


def _coordinates(ann, width: int, height: int) -> dict[str, float] | None:
    if isinstance(ann, SegmentAnnotation):
        extent = polygon_extent(ann.points, width, height)
        if extent is None:
            return None
        xmin, ymin, xmax, ymax = extent
        x, y, w, h = (xmin + xmax) / 2.0, (ymin + ymax) / 2.0, xmax - xmin, ymax - ymin
    else:
        x, y, w, h = box_center_abs(ann.cx, ann.cy, ann.w, ann.h, width, height)
    return {"x": x, "y": y, "width": w, "height": h}


def detection_entries(images: list[ImageRecord], names: dict[int, str], task: str) -> list[dict[str, Any]]:
    kind = {"segment": SegmentAnnotation, "pose": PoseAnnotation}.get(task, BoxAnnotation)
    entries = []
    for record in images:
        annotations = []
        for ann in record.of_type(kind):
            coordinates = _coordinates(ann, record.width, record.height)
            if coordinates is None:
                continue
            annotations.append({"label": class_name(names, ann.class_id), "coordinates": coordinates})
        entries.append(
            {
                "image": record.effective_file,
                "imageURL": record.url,
                "annotations": annotations,
            }
        )
    return entries


def classification_entries(images: list[ImageRecord], names: dict[int, str]) -> list[dict[str, str]]:
    entries = []
    for record in images:
        class_id = record.first_class()
        if class_id is None:
            continue
        entries.append({"image": record.effective_file, "label": class_name(names, class_id)})
    return entries


class CreateMlConverter(Converter):
    def name(self) -> str:
        return "createml"

    def convert(self, dataset: Dataset, downloaded: DownloadedBytes) -> VirtualFiles:
        files: VirtualFiles = {}
        task = dataset.metadata.effective_task
        names = class_names(dataset)

        for split, images in self.splits(dataset):
            if task == "classify":
                entries = classification_entries(images, names)
            else:
                entries = detection_entries(images, names, task)
            path = f"{split}.json"
            files[path] = self.render(
                path,
                lambda entries=entries: json.dumps(entries, indent=2, ensure_ascii=False, allow_nan=False),
            )
            for record in images:
                self.add_image(files, f"{split}/{record.effective_file}", record, downloaded)

        return files
