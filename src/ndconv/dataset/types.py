from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ValidationIssue:
    severity: str
    code: str
    message: str
    file: str
    split: str | None = None
