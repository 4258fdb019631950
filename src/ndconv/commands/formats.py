from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ndconv.converters import available_formats


def run_formats(args: Any, repo_root: Path) -> int:
    formats = available_formats()
    if args.json:
        print(json.dumps(formats, ensure_ascii=True, indent=2))
        return 0

    for name, info in formats.items():
        aliases = f" (alias: {', '.join(info['aliases'])})" if info["aliases"] else ""
        print(f"{name:<14} {info['title']}{aliases}")
        print(f"{'':<14} {info['description']}")
    return 0
