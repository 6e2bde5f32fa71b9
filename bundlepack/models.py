from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field, ConfigDict, field_validator

class CopySpec(BaseModel):
    pattern: str
    dest: str = "."
    required: bool = True

    model_config = ConfigDict(frozen=True)

class SourceManifest(BaseModel):
    entries: Tuple[CopySpec, ...] = ()

    model_config = ConfigDict(frozen=True)

class ToolchainProbe(BaseModel):
    name: str
    command: List[str]
    expect: Optional[str] = None

class GateRule(BaseModel):
    type: str
    paths: List[str] = []

class LoggingSpec(BaseModel):
    runs_dir: str = ".bundlepack/runs"
    artifacts_dirname: str = "artifacts"

class CacheSpec(BaseModel):
    dir: str = ".bundlepack/cache"

class BuildStageSpec(BaseModel):
    manifest: SourceManifest
    toolchain: List[ToolchainProbe] = []

    @field_validator("manifest", mode="before")
    @classmethod
    def _entries_list(cls, v: Any) -> Any:
        # YAML lists the entries directly; plain strings are required globs copied to "."
        if isinstance(v, list):
            return {"entries": [{"pattern": e} if isinstance(e, str) else e for e in v]}
        return v

class RuntimeStageSpec(BaseModel):
    base_image: str = "lipanski/docker-static-website:latest"
    content_root: str = "/home/static"
    port: int = 3000
    packager: str = "directory"
    image_tag: Optional[str] = None
    output_dir: str = "dist-image"

class StagesSpec(BaseModel):
    build: BuildStageSpec
    runtime: RuntimeStageSpec = Field(default_factory=RuntimeStageSpec)

class PipelineStep(BaseModel):
    stage: str
    step: str
    agent: str
    to_state: str
    workdir: str = "."
    command: List[str] = []
    output: Optional[str] = None
    required: List[str] = []
    pre_gate: List[GateRule] = []
    post_gate: List[GateRule] = []
    options: Dict[str, Any] = {}

class PipelineSpec(BaseModel):
    project: str
    source_root: str = "."
    logging: LoggingSpec = Field(default_factory=LoggingSpec)
    cache: CacheSpec = Field(default_factory=CacheSpec)
    stages: StagesSpec
    pipeline: List[PipelineStep] = Field(min_length=1)
