from __future__ import annotations

import shutil
from typing import Any, Dict, Optional

from bundlepack.engine.errors import CompileError, PreconditionError
from bundlepack.engine.fingerprint import fingerprint
from bundlepack.engine.markup import missing_references
from bundlepack.engine.preconditions import missing_paths
from bundlepack.runtime.artifact_store import ArtifactRef, ArtifactStore
from bundlepack.runtime.context import RunContext, StepBundle
from bundlepack.stages.base import Stage
from bundlepack.tools.base import CommandTool, Tool

DEFAULT_REQUIRED = ["Cargo.toml", "index.html", "src"]


class ApplicationBundlerV1(Stage):
    error_cls = CompileError
    placeholders = ("output",)

    def __init__(self, tool: Optional[Tool] = None):
        self.tool = tool

    def run(
        self,
        ctx: RunContext,
        bundle: StepBundle,
        store: ArtifactStore,
    ) -> Dict[str, Any]:
        """
        Invokes the bundler exactly once and offers its output directory as the ArtifactSet.
        Compile failures are final; there is no retry.

        Markup policy: a data-trunk asset reference to a missing file fails the build before
        the toolchain runs, matching what trunk itself does (options.validate_markup_refs).
        """
        step = bundle.step
        env = bundle.environment
        workdir = bundle.workdir

        missing = missing_paths(workdir, step.required or DEFAULT_REQUIRED)
        if missing:
            raise PreconditionError(f"Project files missing: {missing}")

        if step.options.get("validate_markup_refs", True):
            broken: list[str] = []
            for rel in step.options.get("markup", ["index.html"]):
                markup_path = workdir / rel
                if markup_path.exists():
                    broken.extend(f"{rel}: {ref}" for ref in missing_references(markup_path))
            if broken:
                raise CompileError(f"Markup references missing assets: {broken}")

        output_rel = step.output or "dist"
        output = workdir / output_rel
        if output.exists():
            shutil.rmtree(output)

        tool = self.tool or CommandTool(step.step, step.command)
        result = tool.invoke(workdir, output, output=output_rel)
        if not result.ok:
            if output.exists():
                shutil.rmtree(output)
            raise CompileError.from_result(result, "Bundle")

        if not output.is_dir():
            raise CompileError(f"Bundler reported success but produced no {output_rel}/")

        fp = fingerprint(output)
        ref = ArtifactRef(stage=env.stage, path=output.relative_to(env.root).as_posix())

        ctx.private.setdefault("application_bundler_v1", {})
        ctx.private["application_bundler_v1"]["digest"] = fp.digest

        return {
            "message": f"Bundled {len(fp.files)} files into {ref.path}",
            "files": {"artifact_fingerprint.json": fp.to_json()},
            "refs": {"artifact_set": ref},
            "meta": {"digest": fp.digest, "file_count": len(fp.files)},
        }
