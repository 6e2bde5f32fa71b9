from __future__ import annotations

from typing import Any, Dict, Optional

from bundlepack.engine.errors import PackagingError
from bundlepack.runtime.artifact_store import ArtifactStore
from bundlepack.runtime.context import RunContext, StepBundle
from bundlepack.stages.base import Stage
from bundlepack.tools.packagers import Packager, make_packager


class RuntimePackagerV1(Stage):
    error_cls = PackagingError

    def __init__(self, packager: Optional[Packager] = None):
        self.packager = packager

    def run(
        self,
        ctx: RunContext,
        bundle: StepBundle,
        store: ArtifactStore,
    ) -> Dict[str, Any]:
        step = bundle.step
        runtime = ctx.spec.stages.runtime

        ref = store.get("assembled")
        if ref is None:
            raise PackagingError("Nothing assembled to package")

        source_env = ctx.environments.get(ref.stage)
        if source_env is None:
            raise PackagingError(f"Unknown stage '{ref.stage}' for assembled artifact")
        artifact_root = source_env.resolve(ref)

        # Permissive by default: a missing entry document still packages
        entry = step.options.get("entry_document", "index.html")
        has_entry = (artifact_root / entry).is_file()
        if not has_entry and step.options.get("require_entry_document", False):
            raise PackagingError(f"ArtifactSet has no entry document '{entry}'")

        image_name = runtime.image_tag or f"{ctx.project}:latest"
        packager = self.packager or make_packager(runtime, **step.options)
        image = packager.package(artifact_root, image_name, bundle.workdir)

        ctx.private.setdefault("runtime_packager_v1", {})
        ctx.private["runtime_packager_v1"]["image"] = image

        return {
            "message": f"Packaged {image.name} ({len(image.files)} files)",
            "files": {"runtime_image.json": image.to_json()},
            "meta": {
                "location": image.location,
                "layer_sha256": image.layer_sha256,
                "entry_document": has_entry,
            },
        }
