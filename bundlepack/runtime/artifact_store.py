from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional


class StoreError(ValueError):
    pass


@dataclass(frozen=True)
class ArtifactRef:
    """A directory inside a stage's BuildEnvironment, named by stage + relative path."""
    stage: str
    path: str


class ArtifactStore:
    def __init__(self, artifacts_dir: Path):
        self._dir = artifacts_dir
        self._dir.mkdir(parents=True, exist_ok=True)
        self._refs: Dict[str, ArtifactRef] = {}

    def write_text(self, rel_path: str, content: str) -> str:
        p = self._dir / rel_path
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(content, encoding="utf-8")
        return f"{self._dir.name}/{rel_path}"

    def register(self, name: str, ref: ArtifactRef) -> None:
        self._refs[name] = ref

    def get(self, name: str) -> Optional[ArtifactRef]:
        return self._refs.get(name)

    def require(self, name: str) -> ArtifactRef:
        ref = self.get(name)
        if ref is None:
            raise StoreError(f"No artifact registered as '{name}'. Known: {sorted(self._refs)}")
        return ref

    @property
    def refs(self) -> Dict[str, ArtifactRef]:
        return dict(self._refs)
