from __future__ import annotations

import unittest

import yaml

from ndconv.converters.yolo import YoloConverter
from ndconv.types import (
    BoxAnnotation,
    Classification,
    Dataset,
    DatasetMetadata,
    ImageRecord,
    PoseAnnotation,
    SegmentAnnotation,
)


def _detect_dataset() -> Dataset:
    metadata = DatasetMetadata(task="detect", class_names={"0": "cat", "1": "dog"})
    images = [
        ImageRecord("a.jpg", 640, 480, split="train", annotations=[BoxAnnotation(0, 0.5, 0.5, 0.2, 0.2)]),
        ImageRecord("b.jpg", 640, 480, split="val", annotations=[]),
    ]
    return Dataset(metadata=metadata, images=images)


class YoloConverterTests(unittest.TestCase):
    def test_detect_layout_and_label_lines(self) -> None:
        files = YoloConverter().convert(_detect_dataset(), {("train", "a.jpg"): b"jpeg-a"})

        self.assertEqual(files["train/labels/a.txt"], b"0 0.500000 0.500000 0.200000 0.200000")
        self.assertEqual(files["train/images/a.jpg"], b"jpeg-a")
        self.assertEqual(files["valid/labels/b.txt"], b"")
        self.assertNotIn("valid/images/b.jpg", files)
        self.assertEqual(files["classes.txt"], b"cat\ndog")
        self.assertFalse(any(path.startswith("test/") for path in files))

    def test_same_stem_images_report_the_shared_label_path(self) -> None:
        dataset = _detect_dataset()
        dataset.images.append(ImageRecord("a.png", 640, 480, split="train", annotations=[]))

        with self.assertLogs("ndconv.convert", level="WARNING") as logs:
            files = YoloConverter().convert(dataset, {})

        self.assertEqual(files["train/labels/a.txt"], b"")
        self.assertTrue(any("train/labels/a.txt" in line for line in logs.output))

    def test_distinct_stems_do_not_warn(self) -> None:
        with self.assertNoLogs("ndconv.convert", level="WARNING"):
            YoloConverter().convert(_detect_dataset(), {})

    def test_data_yaml_lists_present_splits_and_names(self) -> None:
        files = YoloConverter().convert(_detect_dataset(), {})

        data = yaml.safe_load(files["data.yaml"].decode("utf-8"))
        self.assertEqual(data["path"], ".")
        self.assertEqual(data["train"], "train/images")
        self.assertEqual(data["val"], "valid/images")
        self.assertNotIn("test", data)
        self.assertEqual(data["nc"], 2)
        self.assertEqual(data["names"], {0: "cat", 1: "dog"})
        self.assertNotIn("kpt_shape", data)

    def test_unnamed_class_ids_are_synthesized(self) -> None:
        dataset = _detect_dataset()
        dataset.images[0].annotations.append(BoxAnnotation(3, 0.1, 0.1, 0.1, 0.1))

        files = YoloConverter().convert(dataset, {})

        self.assertEqual(files["classes.txt"], b"cat\ndog\nclass_2\nclass_3")

    def test_darknet_layout(self) -> None:
        converter = YoloConverter(darknet=True)
        files = converter.convert(_detect_dataset(), {("train", "a.jpg"): b"jpeg-a"})

        self.assertEqual(converter.name(), "yolo_darknet")
        self.assertEqual(files["_darknet.labels"], b"cat\ndog")
        self.assertEqual(files["train/a.txt"], b"0 0.500000 0.500000 0.200000 0.200000")
        self.assertEqual(files["train/a.jpg"], b"jpeg-a")
        self.assertNotIn("data.yaml", files)

    def test_segment_lines_list_vertices(self) -> None:
        dataset = Dataset(
            metadata=DatasetMetadata(task="segment", class_names={"0": "cat"}),
            images=[
                ImageRecord(
                    "a.png",
                    100,
                    100,
                    annotations=[SegmentAnnotation(0, [(0.1, 0.2), (0.3, 0.4), (0.5, 0.6)])],
                )
            ],
        )

        files = YoloConverter().convert(dataset, {})

        self.assertEqual(
            files["train/labels/a.txt"],
            b"0 0.100000 0.200000 0.300000 0.400000 0.500000 0.600000",
        )

    def test_pose_lines_carry_visibility(self) -> None:
        dataset = Dataset(
            metadata=DatasetMetadata(task="pose", class_names={"0": "person"}, kpt_shape=[2, 3]),
            images=[
                ImageRecord(
                    "p.jpg",
                    100,
                    100,
                    annotations=[PoseAnnotation(0, [(0.25, 0.5), (0.0, 0.0)], 0.5, 0.5, 0.4, 0.6)],
                )
            ],
        )

        files = YoloConverter().convert(dataset, {})

        self.assertEqual(
            files["train/labels/p.txt"],
            b"0 0.500000 0.500000 0.400000 0.600000 0.250000 0.500000 2 0.000000 0.000000 0",
        )
        data = yaml.safe_load(files["data.yaml"].decode("utf-8"))
        self.assertEqual(data["kpt_shape"], [2, 3])

    def test_pose_without_visibility_dims(self) -> None:
        dataset = Dataset(
            metadata=DatasetMetadata(task="pose", kpt_shape=[1, 2]),
            images=[ImageRecord("p.jpg", 100, 100, annotations=[PoseAnnotation(0, [(0.5, 0.5)], 0.5, 0.5, 1.0, 1.0)])],
        )

        files = YoloConverter().convert(dataset, {})

        self.assertEqual(
            files["train/labels/p.txt"],
            b"0 0.500000 0.500000 1.000000 1.000000 0.500000 0.500000",
        )

    def test_classify_uses_class_folders(self) -> None:
        dataset = Dataset(
            metadata=DatasetMetadata(task="classify", class_names={"0": "cat", "1": "dog"}),
            images=[
                ImageRecord("a.jpg", 10, 10, split="train", annotations=[Classification(1)]),
                ImageRecord("b.jpg", 10, 10, split="train", annotations=[]),
            ],
        )

        files = YoloConverter().convert(dataset, {("train", "a.jpg"): b"A", ("train", "b.jpg"): b"B"})

        self.assertEqual(files["train/dog/a.jpg"], b"A")
        self.assertFalse(any(path.endswith("b.jpg") for path in files))
        data = yaml.safe_load(files["data.yaml"].decode("utf-8"))
        self.assertEqual(data["train"], "train")
        self.assertEqual(data["val"], "valid")

    def test_renamed_records_use_effective_name(self) -> None:
        dataset = _detect_dataset()
        dataset.images[0].output_file = "a__deadbeef.jpg"

        files = YoloConverter().convert(dataset, {("train", "a__deadbeef.jpg"): b"renamed"})

        self.assertEqual(files["train/images/a__deadbeef.jpg"], b"renamed")
        self.assertIn("train/labels/a__deadbeef.txt", files)


if __name__ == "__main__":
    unittest.main()
