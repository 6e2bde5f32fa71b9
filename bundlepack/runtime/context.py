from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List

from bundlepack.models import PipelineSpec, PipelineStep, ToolchainProbe
from bundlepack.runtime.artifact_store import ArtifactRef
from bundlepack.runtime.cache import DependencyCache


@dataclass
class BuildEnvironment:
    """
    An isolated stage root. The manifest copy is the only mutation
    it sees before the stage's build step runs.
    """
    stage: str
    root: Path
    # Relative paths copied in from the SourceManifest
    inputs: List[str] = field(default_factory=list)
    toolchain: List[ToolchainProbe] = field(default_factory=list)

    def path(self, rel: str) -> Path:
        return self.root / rel

    def resolve(self, ref: ArtifactRef) -> Path:
        if ref.stage != self.stage:
            raise ValueError(f"Artifact {ref} does not belong to stage '{self.stage}'")
        return self.root / ref.path


@dataclass(frozen=True)
class StepBundle:
    """
    What a stage is allowed to see for one step:
    its own environment and step options, never another stage's private outputs.
    """
    project: str
    run_id: str
    step: PipelineStep
    environment: BuildEnvironment

    @property
    def workdir(self) -> Path:
        return self.environment.path(self.step.workdir)


@dataclass
class RunContext:
    run_id: str
    project: str
    spec: PipelineSpec

    run_dir: Path
    artifacts_dir: Path
    cache: DependencyCache

    environments: Dict[str, BuildEnvironment] = field(default_factory=dict)

    # Private outputs per stage agent (NOT shared unless explicitly allowed)
    private: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    # List of artifact paths relative to run_dir
    artifacts: List[str] = field(default_factory=list)
