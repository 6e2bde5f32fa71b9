from __future__ import annotations

from typing import Any, Dict

from bundlepack.engine.errors import PipelineError
from bundlepack.runtime.artifact_store import ArtifactStore
from bundlepack.runtime.context import RunContext, StepBundle


class Stage:
    # Raised when the step's declared outputs are missing afterwards
    error_cls: type[PipelineError] = PipelineError
    # Command placeholders this stage fills in, on top of {input_root} and {output_root}
    placeholders: tuple[str, ...] = ()

    def run(self, ctx: RunContext, bundle: StepBundle, store: ArtifactStore) -> Dict[str, Any]:
        raise NotImplementedError
