from __future__ import annotations

import hashlib
import unittest

from ndconv.dataset.names import resolve_output_names
from ndconv.types import ImageRecord


def _record(file: str, split: str = "train", url: str = "") -> ImageRecord:
    return ImageRecord(file=file, width=10, height=10, url=url, split=split)


def _digest(key: str) -> str:
    return hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]


class OutputNameResolverTests(unittest.TestCase):
    def test_unique_names_are_kept(self) -> None:
        images = [_record("a.jpg"), _record("b.jpg"), _record("a.jpg", split="valid")]

        renamed = resolve_output_names(images)

        self.assertEqual(renamed, 0)
        self.assertEqual([img.effective_file for img in images], ["a.jpg", "b.jpg", "a.jpg"])

    def test_repeat_in_split_gets_hashed_name(self) -> None:
        images = [
            _record("img.jpg", url="https://cdn.example.com/1"),
            _record("img.jpg", url="https://cdn.example.com/2"),
        ]

        renamed = resolve_output_names(images)

        self.assertEqual(renamed, 1)
        self.assertEqual(images[0].effective_file, "img.jpg")
        self.assertEqual(images[1].effective_file, f"img__{_digest('https://cdn.example.com/2')}.jpg")

    def test_val_and_valid_share_one_namespace(self) -> None:
        images = [_record("img.jpg", split="val"), _record("img.jpg", split="valid")]

        resolve_output_names(images)

        self.assertNotEqual(images[0].effective_file, images[1].effective_file)
        self.assertEqual(images[0].key[0], "valid")
        self.assertEqual(images[1].key[0], "valid")

    def test_identical_hash_gets_counter_suffix(self) -> None:
        images = [_record("img.jpg"), _record("img.jpg"), _record("img.jpg")]

        resolve_output_names(images)

        digest = _digest("img.jpg")
        self.assertEqual(
            [img.effective_file for img in images],
            ["img.jpg", f"img__{digest}.jpg", f"img__{digest}__2.jpg"],
        )

    def test_literal_name_already_claimed_by_a_rename(self) -> None:
        digest = _digest("img.jpg")
        images = [_record("img.jpg"), _record("img.jpg"), _record(f"img__{digest}.jpg")]

        resolve_output_names(images)

        names = [img.effective_file for img in images]
        self.assertEqual(len(set(names)), 3)
        self.assertEqual(names[2], f"img__{digest}__{_digest(f'img__{digest}.jpg')}.jpg")

    def test_resolving_twice_is_stable(self) -> None:
        images = [_record("img.jpg", url="u1"), _record("img.jpg", url="u2"), _record("x.png")]

        resolve_output_names(images)
        first = [img.effective_file for img in images]
        resolve_output_names(images)

        self.assertEqual([img.effective_file for img in images], first)


if __name__ == "__main__":
    unittest.main()
