from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Callable, Iterator

from ndconv.types import Classification, Dataset, ImageRecord

VirtualFiles = dict[str, bytes]
DownloadedBytes = dict[tuple[str, str], bytes]

_logger = logging.getLogger("ndconv.convert")


def referenced_class_ids(dataset: Dataset) -> set[int]:
    ids: set[int] = set()
    for record in dataset.images:
        for annotation in record.annotations:
            ids.add(annotation.class_id)
    return ids


def class_name(class_names: dict[int, str], class_id: int) -> str:
    return class_names.get(class_id) or f"class_{class_id}"


def class_names(dataset: Dataset) -> dict[int, str]:
    """Metadata names plus ``class_{id}`` for ids that only annotations mention."""
    names = dataset.metadata.class_map()
    for class_id in referenced_class_ids(dataset):
        names.setdefault(class_id, f"class_{class_id}")
    return names


def class_list(dataset: Dataset) -> list[str]:
    """Dense class list indexed by id, 0 through the highest id in metadata or annotations."""
    names = class_names(dataset)
    if not names:
        return []
    return [class_name(names, idx) for idx in range(max(names) + 1)]


class Converter(ABC):
    @abstractmethod
    def name(self) -> str:
        """Stable format name used for lookup and logging."""

    @abstractmethod
    def convert(self, dataset: Dataset, downloaded: DownloadedBytes) -> VirtualFiles:
        """Render the dataset into archive-relative paths and their contents."""

    def splits(self, dataset: Dataset) -> Iterator[tuple[str, list[ImageRecord]]]:
        for split, images in dataset.splits():
            if images:
                yield split, images

    def render(self, path: str, build: Callable[[], str | bytes]) -> bytes:
        """Build one artifact; a failure degrades to an empty body instead of aborting."""
        try:
            body = build()
        except (TypeError, ValueError, OverflowError) as exc:
            _logger.warning("format=%s could not render %s: %s; writing empty file", self.name(), path, exc)
            return b""
        return body.encode("utf-8") if isinstance(body, str) else body

    def add_label(self, files: VirtualFiles, path: str, build: Callable[[], str | bytes], source: str) -> None:
        """Render a per-image artifact at ``path``; a second image mapping to the same path is reported, last one wins."""
        if path in files:
            _logger.warning(
                "format=%s %s from %s overwrites an artifact of another image with the same stem",
                self.name(),
                path,
                source,
            )
        files[path] = self.render(path, build)

    @staticmethod
    def add_image(
        files: VirtualFiles,
        path: str,
        record: ImageRecord,
        downloaded: DownloadedBytes,
    ) -> None:
        data = downloaded.get(record.key)
        if data is not None:
            files[path] = data

    def add_class_folders(
        self,
        files: VirtualFiles,
        split: str,
        images: list[ImageRecord],
        names: dict[int, str],
        downloaded: DownloadedBytes,
    ) -> None:
        """Classification layout: ``{split}/{class_name}/{file}`` for images that were downloaded."""
        for record in images:
            labels = record.of_type(Classification)
            if not labels:
                continue
            label = class_name(names, labels[0].class_id)
            self.add_image(files, f"{split}/{label}/{record.effective_file}", record, downloaded)
