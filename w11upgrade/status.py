"""Append-only status log, one line per upgrade run."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class RunResult:
    exit_code: int
    dynamic_update: str
    timestamp: datetime = field(default_factory=datetime.now)

    def format_line(self) -> str:
        return "[{}] ExitCode={} (DynamicUpdate={})".format(
            self.timestamp.isoformat(timespec="seconds"),
            self.exit_code,
            self.dynamic_update,
        )


def append_result(path: str, result: RunResult) -> None:
    """Append ``result`` to the status file at ``path``, creating it if needed."""
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    with open(path, "a", encoding="utf-8") as f:
        f.write(result.format_line() + "\n")
