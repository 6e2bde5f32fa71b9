from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path

from bundlepack.runtime.events import StageEvent


class RunLogger:
    def __init__(self, log_path: Path):
        self._log_path = log_path
        self._log_path.parent.mkdir(parents=True, exist_ok=True)

    @property
    def path(self) -> Path:
        return self._log_path

    @staticmethod
    def now_iso() -> str:
        return datetime.now(timezone.utc).isoformat()
    
    def append(self, event: StageEvent) -> None:
        with self._log_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(asdict(event), ensure_ascii=False, default=str))
            f.write("\n")
