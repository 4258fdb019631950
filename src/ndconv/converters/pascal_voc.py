from __future__ import annotations

import xml.etree.ElementTree as ET

from ndconv.converters.base import (
    Converter,
    DownloadedBytes,
    VirtualFiles,
    class_name,
    class_names,
)
from ndconv.converters.geometry import annotation_corners, clamp_round_corners
from ndconv.dataset.names import label_stem
from ndconv.types import BoxAnnotation, Dataset, ImageRecord, PoseAnnotation, SegmentAnnotation

DATABASE = "NDJSON Convert"

_GEOMETRY = {
    "segment": SegmentAnnotation,
    "pose": PoseAnnotation,
}


def _text(parent: ET.Element, tag: str, value: str | int) -> ET.Element:
    node = ET.SubElement(parent, tag)
    node.text = str(value)
    return node


def voc_xml(record: ImageRecord, names: dict[int, str], task: str) -> str:
    root = ET.Element("annotation")
    _text(root, "folder", "")
    _text(root, "filename", record.effective_file)
    _text(root, "path", record.effective_file)
    source = ET.SubElement(root, "source")
    _text(source, "database", DATABASE)
    size = ET.SubElement(root, "size")
    _text(size, "width", record.width)
    _text(size, "height", record.height)
    _text(size, "depth", 3)
    _text(root, "segmented", 1 if task == "segment" else 0)

    for ann in record.of_type(_GEOMETRY.get(task, BoxAnnotation)):
        corners = annotation_corners(ann, record.width, record.height)
        if corners is None:
            continue
        xmin, ymin, xmax, ymax = clamp_round_corners(corners, record.width, record.height)

        obj = ET.SubElement(root, "object")
        _text(obj, "name", class_name(names, ann.class_id))
        _text(obj, "pose", "Unspecified")
        _text(obj, "truncated", 0)
        _text(obj, "difficult", 0)
        box = ET.SubElement(obj, "bndbox")
        _text(box, "xmin", xmin)
        _text(box, "ymin", ymin)
        _text(box, "xmax", xmax)
        _text(box, "ymax", ymax)

    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="utf-8", xml_declaration=True).decode("utf-8") + "\n"


class PascalVocConverter(Converter):
    def name(self) -> str:
        return "pascal_voc"

    def convert(self, dataset: Dataset, downloaded: DownloadedBytes) -> VirtualFiles:
        files: VirtualFiles = {}
        task = dataset.metadata.effective_task
        names = class_names(dataset)

        for split, images in self.splits(dataset):
            if task == "classify":
                self.add_class_folders(files, split, images, names, downloaded)
                continue
            for record in images:
                path = f"{split}/{label_stem(record.effective_file)}.xml"
                self.add_label(files, path, lambda record=record: voc_xml(record, names, task), record.effective_file)
                self.add_image(files, f"{split}/{record.effective_file}", record, downloaded)

        return files
