from __future__ import annotations

import json
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from bundlepack.engine.audit import AuditLogger, TransitionAuditEntry
from bundlepack.engine.errors import PreconditionError
from bundlepack.engine.gates import GateEngine
from bundlepack.engine.preconditions import ManifestResolver
from bundlepack.engine.state_machine import PipelineState, PipelineStateMachine, TransitionError, validate_plan
from bundlepack.models import PipelineSpec, PipelineStep
from bundlepack.runtime.artifact_store import ArtifactStore
from bundlepack.runtime.cache import DependencyCache
from bundlepack.runtime.context import RunContext, StepBundle
from bundlepack.runtime.events import StageEvent
from bundlepack.runtime.image import RuntimeImage
from bundlepack.runtime.run_logger import RunLogger
from bundlepack.runtime.workspace import Workspace


@dataclass(frozen=True)
class RunResult:
    run_id: str
    run_dir: Path
    state: PipelineState
    image: Optional[RuntimeImage]


def new_run_id() -> str:
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    suffix = secrets.token_hex(2)
    return f"{ts}_{suffix}"


def _slug(name: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]+", "-", name).strip("-") or "project"


class PipelineRun:
    """
    One strictly sequential run: INIT -> DEPENDENCIES_INSTALLED -> BUNDLED -> ASSEMBLED -> PACKAGED.
    Any failure moves to FAILED and propagates. There is no resume.
    """

    def __init__(
        self,
        *,
        spec: PipelineSpec,
        stage_registry: Dict[str, Any],
        work_dir: Optional[Path] = None,
        keep_workspace: bool = False,
    ):
        validate_plan(step.to_state for step in spec.pipeline)

        self.spec = spec
        self.registry = stage_registry
        self.keep_workspace = keep_workspace

        self.run_id = new_run_id()
        self.run_dir = Path(spec.logging.runs_dir) / _slug(spec.project) / self.run_id
        artifacts_dir = self.run_dir / spec.logging.artifacts_dirname

        self.logger = RunLogger(self.run_dir / "run_log.jsonl")
        self.audit = AuditLogger(self.run_dir / "audit_log.jsonl")
        self.store = ArtifactStore(artifacts_dir)
        self.machine = PipelineStateMachine()
        self.gates = GateEngine()
        self.workspace = Workspace(self.run_id, work_dir)

        self.ctx = RunContext(
            run_id=self.run_id,
            project=spec.project,
            spec=spec,
            run_dir=self.run_dir,
            artifacts_dir=artifacts_dir,
            cache=DependencyCache(Path(spec.cache.dir)),
        )

    def _event(self, step: PipelineStep, status: str, message: str, artifacts: List[str], meta=None) -> None:
        self.logger.append(
            StageEvent(
                run_id=self.run_id,
                project=self.spec.project,
                stage=step.stage,
                step=step.step,
                agent=step.agent,
                timestamp=self.logger.now_iso(),
                status=status,
                state=self.machine.state.value,
                message=message,
                artifacts=artifacts,
                meta=meta,
            )
        )

    def _transition(self, step_name: str, to_state: PipelineState | str, reason: Optional[str] = None) -> None:
        # allowed: the state machine accepted the move. A failure cause goes in reason.
        from_state = self.machine.state
        try:
            resolved = self.machine.advance(to_state)
        except TransitionError as e:
            self.audit.log(
                TransitionAuditEntry(
                    timestamp=AuditLogger.now_iso(),
                    run_id=self.run_id,
                    project=self.spec.project,
                    step=step_name,
                    from_state=from_state.value,
                    to_state=str(getattr(to_state, "value", to_state)),
                    allowed=False,
                    reason=str(e),
                )
            )
            raise
        self.audit.log(
            TransitionAuditEntry(
                timestamp=AuditLogger.now_iso(),
                run_id=self.run_id,
                project=self.spec.project,
                step=step_name,
                from_state=from_state.value,
                to_state=resolved.to_state.value,
                allowed=True,
                reason=reason,
            )
        )

    def _prepare_build_environment(self) -> None:
        build = self.spec.stages.build
        source_root = Path(self.spec.source_root)

        # Every declared input must exist before any tool is invoked
        resolution = ManifestResolver().require(source_root, build.manifest)

        env = self.workspace.create("build", build.toolchain)
        self.workspace.populate(env, source_root, resolution)
        self.ctx.environments["build"] = env

    def _run_step(self, step: PipelineStep) -> None:
        agent = self.registry.get(step.agent)
        if agent is None:
            raise PreconditionError(f"Stage agent not registered: {step.agent}")

        env = self.ctx.environments.get(step.stage)
        if env is None:
            env = self.workspace.create(step.stage)
            self.ctx.environments[step.stage] = env

        bundle = StepBundle(project=self.spec.project, run_id=self.run_id, step=step, environment=env)
        bundle.workdir.mkdir(parents=True, exist_ok=True)

        pre = self.gates.evaluate(bundle.workdir, step.pre_gate)
        if not pre.allowed:
            raise PreconditionError(f"{step.step}: entry barrier failed: {list(pre.reasons)}")

        # Run agent ONCE
        produced = agent.run(self.ctx, bundle, self.store)

        post = self.gates.evaluate(bundle.workdir, step.post_gate)
        if not post.allowed:
            raise agent.error_cls(f"{step.step}: declared outputs missing: {list(post.reasons)}")

        # Nothing a step produced is visible to later steps until its outputs pass the barrier
        new_artifacts = list(produced.get("artifacts", []))
        for rel_path, content in produced.get("files", {}).items():
            new_artifacts.append(self.store.write_text(rel_path, content))
        for name, ref in produced.get("refs", {}).items():
            self.store.register(name, ref)
        self.ctx.artifacts.extend(new_artifacts)

        self._transition(step.step, step.to_state)
        self._event(step, "ok", produced.get("message", "ok"), new_artifacts, produced.get("meta"))

    def _write_manifest(self, error: Optional[BaseException]) -> None:
        image = self.ctx.private.get("runtime_packager_v1", {}).get("image")
        manifest = {
            "run_id": self.run_id,
            "project": self.spec.project,
            "state": self.machine.state.value,
            "history": [s.value for s in self.machine.history],
            "artifacts": list(self.ctx.artifacts),
            "refs": {name: {"stage": r.stage, "path": r.path} for name, r in self.store.refs.items()},
            "image": image.location if image is not None else None,
            "error": f"{type(error).__name__}: {error}" if error is not None else None,
            "workspace": str(self.workspace.root) if self.keep_workspace else None,
        }
        self.store.write_text("manifest.json", json.dumps(manifest, indent=2))

    def execute(self) -> RunResult:
        current: Optional[PipelineStep] = None
        error: Optional[BaseException] = None
        try:
            self._prepare_build_environment()
            for step in self.spec.pipeline:
                current = step
                self._run_step(step)
        except Exception as e:
            error = e
            message = f"{type(e).__name__}: {e}"
            if current is not None:
                self._event(current, "error", message, [], {"returncode": getattr(e, "returncode", None)})
            self._transition(current.step if current else "prepare", PipelineState.FAILED, reason=message)
            raise
        finally:
            self._write_manifest(error)
            if not self.keep_workspace:
                self.workspace.discard()

        image = self.ctx.private.get("runtime_packager_v1", {}).get("image")
        return RunResult(run_id=self.run_id, run_dir=self.run_dir, state=self.machine.state, image=image)


def run_pipeline(
    *,
    spec: PipelineSpec,
    stage_registry: Dict[str, Any],
    work_dir: Optional[Path] = None,
    keep_workspace: bool = False,
) -> RunResult:
    run = PipelineRun(
        spec=spec,
        stage_registry=stage_registry,
        work_dir=work_dir,
        keep_workspace=keep_workspace,
    )
    return run.execute()
