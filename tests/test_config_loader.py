from __future__ import annotations

import os
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from ndconv.config.loader import load_converter_config


class ConfigLoaderTests(unittest.TestCase):
    def test_defaults_without_config_files(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_converter_config(repo_root=Path(tmpdir))

        self.assertEqual(config.download.concurrency, 32)
        self.assertEqual(config.download.timeout_seconds, 30.0)
        self.assertEqual(config.download.max_bytes, 50 * 1024 * 1024)
        self.assertEqual(config.input.max_bytes, 512 * 1024 * 1024)
        self.assertTrue(config.input.reject_duplicate_files)
        self.assertEqual(config.output.format, "yolo")
        self.assertTrue(config.output.include_images)

    def test_toml_file_in_working_directory_is_picked_up(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "ndconv.toml").write_text(
                """
[download]
concurrency = 4
timeout_seconds = 5.5

[output]
format = "COCO"
""".strip(),
                encoding="utf-8",
            )

            config = load_converter_config(repo_root=root)

            self.assertEqual(config.download.concurrency, 4)
            self.assertEqual(config.download.timeout_seconds, 5.5)
            self.assertEqual(config.output.format, "coco")
            self.assertEqual(config.download.max_redirects, 5)

    def test_cli_overrides_win_and_values_are_coerced(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            config_file = root / "custom.json"
            config_file.write_text(
                """
{
  "download": {"concurrency": 16},
  "input": {"reject_duplicate_files": "no"},
  "monitoring": {"log_level": "debug"}
}
""".strip(),
                encoding="utf-8",
            )

            config = load_converter_config(
                repo_root=root,
                config_path=str(config_file),
                cli_overrides={"download": {"concurrency": 0}, "output": {"include_images": False}},
            )

            self.assertEqual(config.download.concurrency, 1)
            self.assertFalse(config.input.reject_duplicate_files)
            self.assertFalse(config.output.include_images)
            self.assertEqual(config.monitoring.log_level, "DEBUG")

    def test_environment_variables_override_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with patch.dict(os.environ, {"NDCONV_DOWNLOAD__CONCURRENCY": "8"}):
                config = load_converter_config(repo_root=Path(tmpdir))

        self.assertEqual(config.download.concurrency, 8)

    def test_missing_explicit_config_is_an_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(FileNotFoundError):
                load_converter_config(repo_root=Path(tmpdir), config_path=str(Path(tmpdir) / "absent.toml"))

    def test_log_context_summarizes_run(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = load_converter_config(repo_root=Path(tmpdir), cli_overrides={"output": {"format": "voc"}})

        context = config.as_log_context()
        self.assertEqual(context["format"], "voc")
        self.assertEqual(context["concurrency"], 32)


if __name__ == "__main__":
    unittest.main()
