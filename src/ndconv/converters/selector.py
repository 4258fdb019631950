from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from ndconv.converters.base import Converter
from ndconv.converters.coco import CocoConverter
from ndconv.converters.createml import CreateMlConverter
from ndconv.converters.pascal_voc import PascalVocConverter
from ndconv.converters.yolo import YoloConverter


@dataclass(frozen=True)
class FormatSpec:
    name: str
    title: str
    description: str
    factory: Callable[[], Converter]
    aliases: tuple[str, ...] = ()


FORMATS: tuple[FormatSpec, ...] = (
    FormatSpec(
        name="yolo",
        title="YOLO",
        description="TXT annotations and YAML config (Ultralytics YOLOv5 through YOLO26)",
        factory=YoloConverter,
    ),
    FormatSpec(
        name="yolo_darknet",
        title="YOLO Darknet",
        description="Darknet TXT annotations beside images (Darknet v3/v4, YOLOv3 PyTorch)",
        factory=lambda: YoloConverter(darknet=True),
    ),
    FormatSpec(
        name="coco",
        title="COCO JSON",
        description="One COCO JSON per split (EfficientDet PyTorch, Detectron2)",
        factory=CocoConverter,
    ),
    FormatSpec(
        name="pascal_voc",
        title="Pascal VOC XML",
        description="One XML annotation per image",
        factory=PascalVocConverter,
        aliases=("voc",),
    ),
    FormatSpec(
        name="createml",
        title="CreateML JSON",
        description="One JSON array per split (Apple CreateML, Turi Create)",
        factory=CreateMlConverter,
    ),
)

_LOOKUP: dict[str, FormatSpec] = {}
for _spec in FORMATS:
    _LOOKUP[_spec.name] = _spec
    for _alias in _spec.aliases:
        _LOOKUP[_alias] = _spec


def get_converter(name: str) -> Converter | None:
    spec = _LOOKUP.get((name or "").strip().lower())
    return spec.factory() if spec is not None else None


def available_formats() -> dict[str, dict[str, object]]:
    return {
        spec.name: {
            "title": spec.title,
            "description": spec.description,
            "aliases": list(spec.aliases),
        }
        for spec in FORMATS
    }
