import os

import pytest

from bundlepack.engine.errors import PackagingError
from bundlepack.models import PipelineStep
from bundlepack.runtime.artifact_store import ArtifactRef, ArtifactStore
from bundlepack.runtime.cache import DependencyCache
from bundlepack.runtime.context import BuildEnvironment, RunContext, StepBundle
from bundlepack.stages.artifact_assembler_v1 import ArtifactAssemblerV1


@pytest.fixture
def setup(tmp_path, make_spec):
    root = tmp_path / "build"
    (root / "dist").mkdir(parents=True)
    (root / "dist" / "index.html").write_text("<html></html>")
    (root / "src").mkdir()
    (root / "node" / "node_modules").mkdir(parents=True)

    env = BuildEnvironment(stage="build", root=root, inputs=["src"])
    ctx = RunContext(
        run_id="r1",
        project="calc",
        spec=make_spec(),
        run_dir=tmp_path / "run",
        artifacts_dir=tmp_path / "run" / "artifacts",
        cache=DependencyCache(tmp_path / "cache"),
        environments={"build": env},
    )
    store = ArtifactStore(ctx.artifacts_dir)
    store.register("dependencies", ArtifactRef(stage="build", path="node/node_modules"))
    step = PipelineStep(stage="build", step="assemble", agent="artifact_assembler_v1", to_state="ASSEMBLED")
    bundle = StepBundle(project="calc", run_id="r1", step=step, environment=env)
    return ctx, bundle, store


def test_assembles_by_reference(setup):
    ctx, bundle, store = setup
    ref = ArtifactRef(stage="build", path="dist")
    store.register("artifact_set", ref)

    produced = ArtifactAssemblerV1().run(ctx, bundle, store)

    assert produced["refs"] == {"assembled": ref}
    assert store.get("assembled") is None
    assert produced["meta"]["file_count"] == 1


def test_requires_a_registered_artifact_set(setup):
    ctx, bundle, store = setup
    with pytest.raises(PackagingError, match="No ArtifactSet"):
        ArtifactAssemblerV1().run(ctx, bundle, store)


def test_rejects_source_tree_as_artifact(setup):
    ctx, bundle, store = setup
    store.register("artifact_set", ArtifactRef(stage="build", path="src"))
    with pytest.raises(PackagingError, match="overlaps build state"):
        ArtifactAssemblerV1().run(ctx, bundle, store)


def test_rejects_directory_containing_dependencies(setup):
    ctx, bundle, store = setup
    store.register("artifact_set", ArtifactRef(stage="build", path="node"))
    with pytest.raises(PackagingError, match="node/node_modules"):
        ArtifactAssemblerV1().run(ctx, bundle, store)


def test_rejects_stage_root(setup):
    ctx, bundle, store = setup
    store.register("artifact_set", ArtifactRef(stage="build", path="."))
    with pytest.raises(PackagingError, match="strictly inside"):
        ArtifactAssemblerV1().run(ctx, bundle, store)


def test_rejects_escaping_symlink(setup):
    ctx, bundle, store = setup
    dist = bundle.environment.root / "dist"
    os.symlink(bundle.environment.root / "src", dist / "leak")
    store.register("artifact_set", ArtifactRef(stage="build", path="dist"))
    with pytest.raises(PackagingError, match="Symlink escapes"):
        ArtifactAssemblerV1().run(ctx, bundle, store)


def test_missing_directory(setup):
    ctx, bundle, store = setup
    store.register("artifact_set", ArtifactRef(stage="build", path="out"))
    with pytest.raises(PackagingError, match="missing"):
        ArtifactAssemblerV1().run(ctx, bundle, store)
