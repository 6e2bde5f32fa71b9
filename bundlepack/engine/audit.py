from __future__ import annotations

import json
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class TransitionAuditEntry:
    timestamp: str
    run_id: str
    project: str
    step: str
    from_state: str
    to_state: str
    allowed: bool
    reason: Optional[str] = None


class AuditLogger:
    """
    Simple JSONL audit logger.
    Appends one JSON record per state transition attempt
    """

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def log(self, entry: TransitionAuditEntry) -> None:
        record = asdict(entry)
        with self._path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record))
            f.write("\n")

    @staticmethod
    def now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()
