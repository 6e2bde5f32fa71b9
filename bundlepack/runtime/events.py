from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

@dataclass(frozen=True)
class StageEvent:
    run_id: str
    project: str
    stage: str
    step: str
    agent: str
    timestamp: str

    status: str #"ok" | "error"
    state: str
    message: str

    artifacts: List[str]
    meta: Optional[Dict[str, Any]] = None
