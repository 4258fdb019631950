from __future__ import annotations

import argparse
from pathlib import Path


def _add_logging_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--json-logs", action="store_true", default=None, help="Emit structured JSON logs")
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"], help="Log level")
    parser.add_argument("--quiet", action="store_true", help="Suppress non-warning logs")


def _add_convert_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", help="Path to the NDJSON dataset export")
    parser.add_argument(
        "--format",
        dest="fmt",
        help="Target format: yolo, yolo_darknet, coco, pascal_voc (voc), createml",
    )
    parser.add_argument("--output", help="Zip path (default: <input stem>_<format>.zip beside the input)")
    parser.add_argument("--config", help="Path to TOML/YAML/JSON config file")
    parser.add_argument(
        "--no-images",
        dest="include_images",
        action="store_false",
        default=None,
        help="Write annotations only, skip image downloads",
    )
    parser.add_argument(
        "--allow-duplicate-files",
        action="store_true",
        help="Accept repeated source file names and rename collisions instead of failing",
    )
    parser.add_argument("--concurrency", type=int, help="Parallel image downloads")
    parser.add_argument("--timeout", type=float, help="Per-request download timeout in seconds")
    parser.add_argument("--max-image-bytes", type=int, help="Largest accepted image body in bytes")
    parser.add_argument("--max-input-bytes", type=int, help="Largest accepted NDJSON input in bytes")
    parser.add_argument("--progress-json", action="store_true", default=None, help="Print progress events as JSON lines")
    parser.add_argument("--event-file", help="Append progress events as JSON lines to this file")
    parser.add_argument(
        "--metrics-textfile",
        help="Write Prometheus download metrics to this textfile after the run",
    )
    _add_logging_args(parser)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ndconv",
        description="Convert NDJSON dataset exports into YOLO, COCO, Pascal VOC and CreateML archives",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert = subparsers.add_parser("convert", help="Convert an NDJSON export into a zip archive")
    _add_convert_args(convert)

    inspect = subparsers.add_parser("inspect", help="Parse an NDJSON export and report dataset health")
    inspect.add_argument("input", help="Path to the NDJSON dataset export")
    inspect.add_argument("--report", help="Also write the report JSON to this path")
    inspect.add_argument("--config", help="Path to TOML/YAML/JSON config file")
    _add_logging_args(inspect)

    formats = subparsers.add_parser("formats", help="List supported output formats")
    formats.add_argument("--json", action="store_true", help="Print the format table as JSON")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    repo_root = Path.cwd()

    if args.command == "convert":
        from ndconv.commands.convert import run_convert

        return run_convert(args, repo_root)
    if args.command == "inspect":
        from ndconv.commands.inspect import run_inspect

        return run_inspect(args, repo_root)
    if args.command == "formats":
        from ndconv.commands.formats import run_formats

        return run_formats(args, repo_root)

    parser.error(f"Unknown command: {args.command}")
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
