from __future__ import annotations

import shutil
from typing import Any, Dict, Optional

from bundlepack.engine.errors import DependencyResolutionError, PreconditionError
from bundlepack.engine.preconditions import missing_paths
from bundlepack.runtime.artifact_store import ArtifactRef, ArtifactStore
from bundlepack.runtime.context import RunContext, StepBundle
from bundlepack.stages.base import Stage
from bundlepack.tools.base import CommandTool, Tool
from bundlepack.tools.toolchain import check_toolchain

DEFAULT_REQUIRED = ["package.json", "package-lock.json"]


class DependencyInstallerV1(Stage):
    error_cls = DependencyResolutionError
    placeholders = ("cache_dir",)

    def __init__(self, tool: Optional[Tool] = None):
        self.tool = tool

    def run(
        self,
        ctx: RunContext,
        bundle: StepBundle,
        store: ArtifactStore,
    ) -> Dict[str, Any]:
        """
        Installs the helper module's packages from manifest + lock file.
        The lock file is authoritative: any mismatch fails the install.
        """
        step = bundle.step
        env = bundle.environment
        workdir = bundle.workdir

        missing = missing_paths(workdir, step.required or DEFAULT_REQUIRED)
        if missing:
            raise PreconditionError(f"Dependency manifest incomplete in {step.workdir}: missing {missing}")

        failures = check_toolchain(env.toolchain, env.root)
        if failures:
            raise PreconditionError("Toolchain bootstrap failed:\n" + "\n".join(failures))

        cache_dir = ctx.cache.ensure()
        output_rel = step.output or "node_modules"
        output = workdir / output_rel

        tool = self.tool or CommandTool(step.step, step.command)
        result = tool.invoke(workdir, output, cache_dir=str(cache_dir))

        if not result.ok:
            # No partial dependency state may outlive a failed install
            if output.exists():
                shutil.rmtree(output)
            raise DependencyResolutionError.from_result(result, "Dependency install")

        if not output.is_dir():
            raise DependencyResolutionError(f"Install reported success but produced no {output_rel}/")

        rel = output.relative_to(env.root).as_posix()

        ctx.private.setdefault("dependency_installer_v1", {})
        ctx.private["dependency_installer_v1"]["output"] = rel
        ctx.private["dependency_installer_v1"]["cache_dir"] = str(cache_dir)

        return {
            "message": f"Dependencies installed into {rel}",
            "refs": {"dependencies": ArtifactRef(stage=env.stage, path=rel)},
            "meta": {"cache_dir": str(cache_dir), "exit_code": result.returncode},
        }
