from __future__ import annotations

import json
import sys
from pathlib import Path

from bundlepack.config_loader import load_pipeline
from bundlepack.engine.errors import ConfigError, PipelineError
from bundlepack.engine.fingerprint import fingerprint
from bundlepack.engine.preconditions import ManifestResolver
from bundlepack.engine.state_machine import TransitionError
from bundlepack.runtime.cache import DependencyCache
from bundlepack.runtime.image import CONFIG_NAME, layer_members, load_image
from bundlepack.runtime.orchestrator import run_pipeline
from bundlepack.settings import Settings, get_settings
from bundlepack.stages.registry import default_registry


def usage() -> None:
    print("Commands:")
    print("  python -m bundlepack.main run [--keep-workspace]")
    print("  python -m bundlepack.main check")
    print("  python -m bundlepack.main fingerprint <artifact_dir>")
    print("  python -m bundlepack.main inspect <image_dir>")
    print("  python -m bundlepack.main clear-cache")
    print("")
    print("Config is read from pipeline.yaml (override with BUNDLEPACK_CONFIG).")


def cmd_run(settings: Settings, keep_workspace: bool) -> int:
    try:
        spec = load_pipeline(settings.config_path, settings)
    except ConfigError as e:
        print(f"❌ {e}")
        return 2

    try:
        result = run_pipeline(
            spec=spec,
            stage_registry=default_registry(),
            work_dir=settings.work_dir,
            keep_workspace=keep_workspace or settings.keep_workspace,
        )
    except ConfigError as e:
        print(f"❌ {e}")
        return 2
    except (PipelineError, TransitionError) as e:
        # The failing tool's own diagnostics are part of the message
        print(f"⛔ Pipeline failed: {e}")
        return 1

    print(f"✅ {result.state.value}: run {result.run_id}")
    if result.image is not None:
        print(f"Image: {result.image.name} -> {result.image.location}")
        print(f"Serves {len(result.image.files)} files from {result.image.content_root} on port {result.image.port}")
    print(f"Logs: {result.run_dir}")
    return 0


def cmd_check(settings: Settings) -> int:
    try:
        spec = load_pipeline(settings.config_path, settings)
    except ConfigError as e:
        print(f"❌ {e}")
        return 2

    resolution = ManifestResolver().resolve(Path(spec.source_root), spec.stages.build.manifest)
    print(f"Inputs: {resolution.satisfied_items}/{resolution.total_items} manifest entries matched")
    for entry in resolution.entries:
        mark = "✅" if entry.matches else ("❌" if entry.spec.required else "➖")
        print(f"  {mark} {entry.spec.pattern} -> {entry.spec.dest} ({len(entry.matches)})")

    if not resolution.complete:
        print("Missing:")
        for m in resolution.missing_items:
            print(f"  - {m}")
        return 1

    print("Steps:")
    for step in spec.pipeline:
        print(f"  {step.stage}/{step.step} [{step.agent}] -> {step.to_state}")
    return 0


def cmd_fingerprint(artifact_dir: str) -> int:
    root = Path(artifact_dir)
    if not root.is_dir():
        print(f"❌ Not a directory: {root}")
        return 1
    print(fingerprint(root).to_json())
    return 0


def cmd_inspect(image_dir: str) -> int:
    root = Path(image_dir)
    if not (root / CONFIG_NAME).exists():
        print(f"❌ Not an image directory: {root}")
        return 1

    image = load_image(root)
    print(f"{image.name} FROM {image.base_image}")
    print(f"Content root: {image.content_root}  Port: {image.port}")
    print(f"Layer: sha256:{image.layer_sha256} ({image.layer_size} bytes)")
    for name in layer_members(root):
        print(f"  {name}")
    return 0


def cmd_clear_cache(settings: Settings) -> int:
    try:
        spec = load_pipeline(settings.config_path, settings)
    except ConfigError as e:
        print(f"❌ {e}")
        return 2

    cache = DependencyCache(Path(spec.cache.dir))
    if cache.clear():
        print(f"✅ Cleared {cache.path}")
    else:
        print(f"Nothing to clear at {cache.path}")
    return 0


def main() -> int:
    if len(sys.argv) < 2:
        usage()
        return 2

    settings = get_settings()
    cmd = sys.argv[1]

    if cmd == "run":
        keep = "--keep-workspace" in sys.argv[2:]
        return cmd_run(settings, keep)

    if cmd == "check":
        return cmd_check(settings)

    if cmd == "fingerprint":
        if len(sys.argv) != 3:
            usage()
            return 2
        return cmd_fingerprint(sys.argv[2])

    if cmd == "inspect":
        if len(sys.argv) != 3:
            usage()
            return 2
        return cmd_inspect(sys.argv[2])

    if cmd == "clear-cache":
        return cmd_clear_cache(settings)

    usage()
    return 2


if __name__ == "__main__":
    raise SystemExit(main())
