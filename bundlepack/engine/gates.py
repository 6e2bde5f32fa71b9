from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from bundlepack.engine.preconditions import missing_paths
from bundlepack.models import GateRule


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    reasons: tuple[str, ...]

class GateEngine:
    """
    Evaluates stage-barrier rules against a stage workdir.
    v1 supports:
    - paths_exist: every listed path exists
    - non_empty_dir: every listed path is a directory with at least one entry
    """

    def evaluate(self, root: Path, rules: list[GateRule]) -> GateDecision:
        reasons = []

        for rule in rules:
            rule_type = (rule.type or "").strip()

            if not rule.paths:
                reasons.append(f"Rule {rule_type} missing required 'paths'.")
                continue

            if rule_type == "paths_exist":
                missing = missing_paths(root, rule.paths)
                if missing:
                    reasons.append(f"Missing paths: {missing}")
            elif rule_type == "non_empty_dir":
                for rel in rule.paths:
                    p = root / rel
                    if not p.is_dir():
                        reasons.append(f"Not a directory: {rel}")
                    elif not any(p.iterdir()):
                        reasons.append(f"Directory is empty: {rel}")
            else:
                reasons.append(f"Unsupported rule type: {rule_type}")

        return GateDecision(allowed=len(reasons) == 0, reasons=tuple(reasons))
