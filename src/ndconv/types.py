from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator, Union

SPLITS: tuple[str, ...] = ("train", "valid", "test")
TASKS: tuple[str, ...] = ("detect", "segment", "pose", "classify")
DEFAULT_KEYPOINTS = 17

_SPLIT_ALIASES = {"val": "valid"}


def normalize_split(split: str) -> str:
    return _SPLIT_ALIASES.get(split, split)


def download_key(split: str, name: str) -> tuple[str, str]:
    """Key of the downloaded-bytes map: (normalized split, effective file name)."""
    return normalize_split(split), name


@dataclass
class BoxAnnotation:
    class_id: int
    cx: float
    cy: float
    w: float
    h: float


@dataclass
class SegmentAnnotation:
    class_id: int
    points: list[tuple[float, float]]


@dataclass
class PoseAnnotation:
    class_id: int
    keypoints: list[tuple[float, float]]
    cx: float
    cy: float
    w: float
    h: float


@dataclass
class Classification:
    class_id: int


Annotation = Union[BoxAnnotation, SegmentAnnotation, PoseAnnotation, Classification]


@dataclass
class DatasetMetadata:
    task: str = "detect"
    name: str = ""
    description: str = ""
    url: str = ""
    class_names: dict[str, str] = field(default_factory=dict)
    kpt_shape: list[int] | None = None
    version: int = 0
    bytes: int = 0

    @property
    def effective_task(self) -> str:
        return self.task if self.task in TASKS else "detect"

    @property
    def keypoint_count(self) -> int:
        if self.kpt_shape and self.kpt_shape[0] > 0:
            return int(self.kpt_shape[0])
        return DEFAULT_KEYPOINTS

    def class_map(self) -> dict[int, str]:
        """Class names keyed by integer id; unparseable or negative keys are dropped."""
        mapping: dict[int, str] = {}
        for key, value in self.class_names.items():
            try:
                class_id = int(str(key).strip())
            except ValueError:
                continue
            if class_id < 0:
                continue
            mapping[class_id] = str(value)
        return mapping


@dataclass
class ImageRecord:
    file: str
    width: int
    height: int
    url: str = ""
    split: str = "train"
    annotations: list[Annotation] = field(default_factory=list)
    output_file: str | None = None
    skipped_annotations: int = 0

    @property
    def normalized_split(self) -> str:
        return normalize_split(self.split)

    @property
    def effective_file(self) -> str:
        return self.output_file or self.file

    @property
    def key(self) -> tuple[str, str]:
        return download_key(self.split, self.effective_file)

    def of_type(self, kind: type) -> list:
        return [ann for ann in self.annotations if isinstance(ann, kind)]

    def first_class(self) -> int | None:
        labels = self.of_type(Classification)
        return labels[0].class_id if labels else None


@dataclass
class Dataset:
    metadata: DatasetMetadata
    images: list[ImageRecord] = field(default_factory=list)

    def _split_images(self, split: str) -> list[ImageRecord]:
        return [img for img in self.images if img.normalized_split == split]

    def train_images(self) -> list[ImageRecord]:
        return self._split_images("train")

    def valid_images(self) -> list[ImageRecord]:
        return self._split_images("valid")

    def test_images(self) -> list[ImageRecord]:
        return self._split_images("test")

    def splits(self) -> Iterator[tuple[str, list[ImageRecord]]]:
        yield "train", self.train_images()
        yield "valid", self.valid_images()
        yield "test", self.test_images()


@dataclass
class ProgressEvent:
    """Progress notification passed to the caller's sink."""

    phase: str
    current: int
    total: int
    item: str | None = None


@dataclass
class ConvertResult:
    zip_path: str
    file_count: int
    image_count: int
    download_total: int
    failed_downloads: int
