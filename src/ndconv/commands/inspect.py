from __future__ import annotations

import json
import sys
from pathlib import Path
from typing import Any

from ndconv.config import load_converter_config
from ndconv.dataset.inspect import inspect_dataset
from ndconv.dataset.parser import parse_ndjson, read_ndjson
from ndconv.monitoring import configure_logging


def write_json(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, ensure_ascii=True, indent=2), encoding="utf-8")


def run_inspect(args: Any, repo_root: Path) -> int:
    try:
        overrides = {"monitoring": {}}
        if args.json_logs is not None:
            overrides["monitoring"]["json_logs"] = args.json_logs
        if args.log_level:
            overrides["monitoring"]["log_level"] = args.log_level
        config = load_converter_config(repo_root, args.config, overrides)
        configure_logging(
            level=config.monitoring.log_level,
            json_logs=config.monitoring.json_logs,
            quiet=args.quiet,
        )

        source = Path(args.input).expanduser()
        dataset = parse_ndjson(read_ndjson(source, config.input.max_bytes))
        report = {"input": str(source), **inspect_dataset(dataset)}

        if args.report:
            write_json(Path(args.report).expanduser(), report)
        print(json.dumps(report, ensure_ascii=True, indent=2))
        return 0 if report["status"] == "pass" else 1
    except Exception as exc:
        print(f"inspect command failed: {exc}", file=sys.stderr)
        return 2
