from __future__ import annotations

import hashlib
import logging
import posixpath

from ndconv.types import ImageRecord

_logger = logging.getLogger("ndconv.names")


def _stable_digest(key: str) -> str:
    return hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]


def split_name(name: str) -> tuple[str, str]:
    """Split ``name`` into (stem, extension) on the last dot of the final path segment."""
    stem, ext = posixpath.splitext(name)
    return stem, ext


def label_stem(name: str) -> str:
    return split_name(name)[0]


def _hashed_candidates(record: ImageRecord):
    stem, ext = split_name(record.file)
    digest = _stable_digest(record.url or record.file)
    yield f"{stem}__{digest}{ext}"
    counter = 2
    while True:
        yield f"{stem}__{digest}__{counter}{ext}"
        counter += 1


def resolve_output_names(images: list[ImageRecord]) -> int:
    """Assign every record a file name that is unique within its split.

    The first occurrence of a (split, file) pair keeps the literal name when it
    is still free. Later occurrences, and first occurrences whose literal name
    was already claimed, get ``{stem}__{sha1(url or file)[:8]}{ext}`` with
    ``__2``, ``__3``... appended until the name is free. Names are always
    derived from the source names, so running twice gives the same result.

    Returns the number of records that were renamed.
    """
    claimed: dict[str, set[str]] = {}
    occurrences: dict[tuple[str, str], int] = {}
    renamed = 0

    for record in images:
        split = record.normalized_split
        taken = claimed.setdefault(split, set())
        seen = occurrences.get((split, record.file), 0)
        occurrences[(split, record.file)] = seen + 1

        if seen == 0 and record.file not in taken:
            record.output_file = record.file
            taken.add(record.file)
            continue

        for candidate in _hashed_candidates(record):
            if candidate not in taken:
                break
        record.output_file = candidate
        taken.add(candidate)
        renamed += 1
        _logger.debug("renamed split=%s file=%s -> %s", split, record.file, candidate)

    if renamed:
        _logger.info("resolved %d duplicate file names", renamed)
    return renamed
