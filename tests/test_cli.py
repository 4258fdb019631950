from __future__ import annotations

import io
import json
import logging
import tempfile
import unittest
import zipfile
from contextlib import redirect_stderr, redirect_stdout
from pathlib import Path
from unittest.mock import patch

from ndconv.cli import main


def _write_input(root: Path, extra_images: int = 0) -> Path:
    records = [
        {"type": "dataset", "task": "detect", "class_names": {"0": "cat"}},
        {"type": "image", "file": "a.jpg", "width": 64, "height": 48, "split": "train", "annotations": {"bboxes": [[0, 0.5, 0.5, 0.5, 0.5]]}},
    ]
    records.extend(
        {"type": "image", "file": "a.jpg", "width": 64, "height": 48, "split": "val"} for _ in range(extra_images)
    )
    path = root / "pets.ndjson"
    path.write_text("\n".join(json.dumps(record) for record in records), encoding="utf-8")
    return path


def _run(argv: list[str]) -> tuple[int, str, str]:
    stdout, stderr = io.StringIO(), io.StringIO()
    with redirect_stdout(stdout), redirect_stderr(stderr):
        code = main(argv)
    return code, stdout.getvalue(), stderr.getvalue()


class CliTests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        cwd = patch("ndconv.cli.Path.cwd", return_value=self.root)
        cwd.start()
        self.addCleanup(cwd.stop)
        self.addCleanup(self._tmp.cleanup)
        self.addCleanup(logging.getLogger().handlers.clear)

    def test_convert_writes_default_output_and_prints_result(self) -> None:
        source = _write_input(self.root)

        code, stdout, _ = _run(["convert", str(source), "--format", "voc", "--no-images", "--quiet"])

        self.assertEqual(code, 0)
        result = json.loads(stdout)
        self.assertEqual(Path(result["zip_path"]).name, "pets_voc.zip")
        with zipfile.ZipFile(result["zip_path"]) as archive:
            self.assertEqual(archive.namelist(), ["train/a.xml"])

    def test_convert_failure_returns_two(self) -> None:
        source = _write_input(self.root, extra_images=1)

        code, stdout, stderr = _run(["convert", str(source), "--format", "yolo", "--no-images", "--quiet"])

        self.assertEqual(code, 2)
        self.assertEqual(stdout, "")
        self.assertIn("convert command failed: Duplicate image file names", stderr)

    def test_convert_progress_json_and_metrics_textfile(self) -> None:
        source = _write_input(self.root)
        metrics_path = self.root / "metrics" / "ndconv.prom"

        code, stdout, _ = _run(
            [
                "convert",
                str(source),
                "--format",
                "createml",
                "--no-images",
                "--progress-json",
                "--metrics-textfile",
                str(metrics_path),
                "--output",
                str(self.root / "out.zip"),
                "--quiet",
            ]
        )

        self.assertEqual(code, 0)
        rows = [json.loads(line) for line in stdout.splitlines()]
        self.assertEqual(rows[0]["event"], "progress")
        self.assertEqual(rows[-1]["event"], "result")
        self.assertIn("ndconv_downloads_attempted_total", metrics_path.read_text(encoding="utf-8"))

    def test_inspect_reports_status(self) -> None:
        clean = _write_input(self.root)
        report_path = self.root / "reports" / "health.json"

        code, stdout, _ = _run(["inspect", str(clean), "--report", str(report_path), "--quiet"])

        self.assertEqual(code, 0)
        report = json.loads(stdout)
        self.assertEqual(report["status"], "pass")
        self.assertEqual(report["counts"]["missing_url"], 1)
        self.assertEqual(json.loads(report_path.read_text(encoding="utf-8"))["status"], report["status"])

    def test_inspect_fails_on_duplicate_files(self) -> None:
        source = _write_input(self.root, extra_images=1)

        code, stdout, _ = _run(["inspect", str(source), "--quiet"])

        self.assertEqual(code, 1)
        self.assertEqual(json.loads(stdout)["status"], "fail")

    def test_formats_json(self) -> None:
        code, stdout, _ = _run(["formats", "--json"])

        self.assertEqual(code, 0)
        self.assertIn("pascal_voc", json.loads(stdout))


if __name__ == "__main__":
    unittest.main()
