from __future__ import annotations

from typing import Any

import yaml

from ndconv.converters.base import (
    Converter,
    DownloadedBytes,
    VirtualFiles,
    class_list,
    class_names,
)
from ndconv.converters.geometry import keypoint_visibility, to_absolute
from ndconv.dataset.names import label_stem
from ndconv.types import BoxAnnotation, Dataset, ImageRecord, PoseAnnotation, SegmentAnnotation


def _f(value: float) -> str:
    return f"{value:.6f}"


def _box_line(ann: BoxAnnotation) -> str:
    return f"{ann.class_id} {_f(ann.cx)} {_f(ann.cy)} {_f(ann.w)} {_f(ann.h)}"


def _segment_line(ann: SegmentAnnotation) -> str:
    parts = [str(ann.class_id)]
    for x, y in ann.points:
        parts.append(_f(x))
        parts.append(_f(y))
    return " ".join(parts)


def _pose_line(ann: PoseAnnotation, width: int, height: int, with_visibility: bool) -> str:
    parts = [str(ann.class_id), _f(ann.cx), _f(ann.cy), _f(ann.w), _f(ann.h)]
    for x, y in ann.keypoints:
        parts.append(_f(x))
        parts.append(_f(y))
        if with_visibility:
            parts.append(str(keypoint_visibility(*to_absolute(x, y, width, height))))
    return " ".join(parts)


def pose_dims(dataset: Dataset) -> int:
    shape = dataset.metadata.kpt_shape
    if shape and len(shape) > 1 and shape[1] in (2, 3):
        return int(shape[1])
    return 3


def label_text(record: ImageRecord, task: str, dims: int = 3) -> str:
    """YOLO label file body: one line per annotation, no trailing newline."""
    if task == "pose":
        lines = [
            _pose_line(ann, record.width, record.height, dims == 3)
            for ann in record.of_type(PoseAnnotation)
        ]
    elif task == "segment":
        lines = [_segment_line(ann) for ann in record.of_type(SegmentAnnotation) if ann.points]
    else:
        lines = [_box_line(ann) for ann in record.of_type(BoxAnnotation)]
    return "\n".join(lines)


class YoloConverter(Converter):
    """Ultralytics layout: ``{split}/images`` + ``{split}/labels``, ``data.yaml``, ``classes.txt``.

    With ``darknet=True`` images and label files sit side by side in
    ``{split}/`` and the class list goes to ``_darknet.labels``.
    """

    def __init__(self, darknet: bool = False) -> None:
        self._darknet = darknet

    def name(self) -> str:
        return "yolo_darknet" if self._darknet else "yolo"

    def _data_yaml(self, dataset: Dataset, names: list[str], present: set[str]) -> str:
        task = dataset.metadata.effective_task
        subdir = "" if task == "classify" else "/images"
        payload: dict[str, Any] = {
            "path": ".",
            "train": f"train{subdir}",
            "val": f"valid{subdir}",
        }
        if "test" in present:
            payload["test"] = f"test{subdir}"
        payload["nc"] = len(names)
        payload["names"] = {idx: name for idx, name in enumerate(names)}
        if task == "pose":
            payload["kpt_shape"] = [dataset.metadata.keypoint_count, pose_dims(dataset)]
        return yaml.safe_dump(payload, sort_keys=False, allow_unicode=True, default_flow_style=False)

    def convert(self, dataset: Dataset, downloaded: DownloadedBytes) -> VirtualFiles:
        files: VirtualFiles = {}
        task = dataset.metadata.effective_task
        names = class_list(dataset)
        dims = pose_dims(dataset)
        splits = list(self.splits(dataset))

        if self._darknet:
            files["_darknet.labels"] = self.render("_darknet.labels", lambda: "\n".join(names))
        else:
            present = {split for split, _ in splits}
            files["data.yaml"] = self.render("data.yaml", lambda: self._data_yaml(dataset, names, present))
            files["classes.txt"] = self.render("classes.txt", lambda: "\n".join(names))

        if task == "classify":
            lookup = class_names(dataset)
            for split, images in splits:
                self.add_class_folders(files, split, images, lookup, downloaded)
            return files

        for split, images in splits:
            for record in images:
                stem = label_stem(record.effective_file)
                if self._darknet:
                    label_path = f"{split}/{stem}.txt"
                    image_path = f"{split}/{record.effective_file}"
                else:
                    label_path = f"{split}/labels/{stem}.txt"
                    image_path = f"{split}/images/{record.effective_file}"
                self.add_label(
                    files,
                    label_path,
                    lambda record=record: label_text(record, task, dims),
                    record.effective_file,
                )
                self.add_image(files, image_path, record, downloaded)

        return files
