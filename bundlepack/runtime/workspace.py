from __future__ import annotations

import shutil
import tempfile
from pathlib import Path
from typing import Optional

from bundlepack.engine.errors import PreconditionError
from bundlepack.engine.preconditions import ManifestResolution
from bundlepack.models import ToolchainProbe
from bundlepack.runtime.context import BuildEnvironment


class Workspace:
    """
    Ephemeral per-run directory holding one BuildEnvironment per stage.
    Nothing here survives a run unless keep_workspace is set.
    """

    def __init__(self, run_id: str, base_dir: Optional[Path] = None):
        if base_dir is None:
            self.root = Path(tempfile.mkdtemp(prefix=f"bundlepack-{run_id}-"))
        else:
            self.root = base_dir / run_id
            self.root.mkdir(parents=True, exist_ok=False)

    def create(self, stage: str, toolchain: Optional[list[ToolchainProbe]] = None) -> BuildEnvironment:
        root = self.root / stage
        if root.exists():
            raise PreconditionError(f"Environment for stage '{stage}' already exists: {root}")
        root.mkdir(parents=True)
        return BuildEnvironment(stage=stage, root=root, toolchain=list(toolchain or []))

    def populate(self, env: BuildEnvironment, source_root: Path, resolution: ManifestResolution) -> list[str]:
        """
        Copies every manifest match to <dest>/<basename>, the way a container COPY does.
        """
        copied: list[str] = []
        for entry in resolution.entries:
            dest_dir = env.root / entry.spec.dest
            dest_dir.mkdir(parents=True, exist_ok=True)
            for src in entry.matches:
                target = dest_dir / src.name
                if src.is_dir():
                    shutil.copytree(src, target, symlinks=True, dirs_exist_ok=True)
                else:
                    shutil.copy2(src, target)
                copied.append(target.relative_to(env.root).as_posix())
        env.inputs = sorted(set(copied))
        return env.inputs

    def discard(self) -> None:
        shutil.rmtree(self.root, ignore_errors=True)
