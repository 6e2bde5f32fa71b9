from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

from bundlepack.engine.errors import PackagingError
from bundlepack.runtime.artifact_store import ArtifactStore
from bundlepack.runtime.context import RunContext, StepBundle
from bundlepack.runtime.image import list_files
from bundlepack.stages.base import Stage


def _overlaps(a: Path, b: Path) -> bool:
    return a == b or a in b.parents or b in a.parents


class ArtifactAssemblerV1(Stage):
    error_cls = PackagingError

    def run(
        self,
        ctx: RunContext,
        bundle: StepBundle,
        store: ArtifactStore,
    ) -> Dict[str, Any]:
        """
        Hands the ArtifactSet to the next stage by reference, untouched.
        Refuses anything that could drag build-time state along with it.
        """
        ref = store.get("artifact_set")
        if ref is None:
            raise PackagingError("No ArtifactSet registered by the bundler")

        env = ctx.environments.get(ref.stage)
        if env is None:
            raise PackagingError(f"Unknown stage '{ref.stage}' for ArtifactSet")

        stage_root = env.root.resolve()
        artifact_root = env.resolve(ref).resolve()

        if not artifact_root.is_dir():
            raise PackagingError(f"ArtifactSet directory missing: {ref.stage}:{ref.path}")
        if stage_root not in artifact_root.parents:
            raise PackagingError(f"ArtifactSet must live strictly inside stage root: {ref.path}")

        # Source inputs and installed dependencies are intermediate build state
        intermediate = [env.root / rel for rel in env.inputs]
        deps = store.get("dependencies")
        if deps is not None and deps.stage == env.stage:
            intermediate.append(env.resolve(deps))

        for other in intermediate:
            if _overlaps(artifact_root, other.resolve()):
                raise PackagingError(
                    f"ArtifactSet {ref.path} overlaps build state {other.relative_to(env.root).as_posix()}"
                )

        for p in artifact_root.rglob("*"):
            if p.is_symlink():
                target = p.resolve()
                if target != artifact_root and artifact_root not in target.parents:
                    raise PackagingError(f"Symlink escapes ArtifactSet: {p.relative_to(artifact_root)}")

        files = list_files(artifact_root)

        return {
            "message": f"Assembled {ref.stage}:{ref.path}",
            "refs": {"assembled": ref},
            "meta": {"stage": ref.stage, "path": ref.path, "file_count": len(files)},
        }
