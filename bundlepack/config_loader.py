from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from bundlepack.engine.errors import ConfigError
from bundlepack.engine.state_machine import TransitionError, validate_plan
from bundlepack.models import PipelineSpec
from bundlepack.settings import Settings
from bundlepack.stages.registry import default_registry
from bundlepack.tools.base import BASE_PLACEHOLDERS, command_placeholders

PACKAGERS = ("directory", "docker")
STAGES = ("build", "runtime")


def _absolute(base: Path, value: str) -> str:
    p = Path(value).expanduser()
    return str(p if p.is_absolute() else (base / p).resolve())


def _check_placeholders(spec: PipelineSpec, path: Path) -> None:
    # A command may only reference values its stage actually supplies
    registry = default_registry()
    for step in spec.pipeline:
        agent = registry.get(step.agent)
        if agent is None or not step.command:
            continue
        known = set(BASE_PLACEHOLDERS) | set(agent.placeholders)
        try:
            used = command_placeholders(step.command)
        except ValueError as e:
            raise ConfigError(f"Malformed command for step '{step.step}' in {path}: {e}") from e
        unknown = sorted(used - known)
        if unknown:
            raise ConfigError(
                f"Unknown placeholder(s) {unknown} in command for step '{step.step}' in {path}. "
                f"Known: {sorted(known)}"
            )


def load_pipeline(config_path: str | Path, settings: Optional[Settings] = None) -> PipelineSpec:
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(f"Pipeline config not found: {path}")

    raw: Dict[str, Any] = yaml.safe_load(path.read_text(encoding="utf-8")) or {}

    try:
        spec = PipelineSpec.model_validate(raw)
    except ValidationError as e:
        raise ConfigError(f"Invalid pipeline config {path}:\n{e}") from e

    unknown = [s.stage for s in spec.pipeline if s.stage not in STAGES]
    if unknown:
        raise ConfigError(f"Unknown stage(s) {unknown} in {path}. Known: {list(STAGES)}")

    try:
        validate_plan(step.to_state for step in spec.pipeline)
    except TransitionError as e:
        raise ConfigError(f"Invalid step order in {path}: {e}") from e

    _check_placeholders(spec, path)

    if settings is not None:
        if settings.cache_dir is not None:
            # Env overrides are relative to the caller, not the config file
            spec.cache.dir = str(Path(settings.cache_dir).expanduser().resolve())
        if settings.packager:
            spec.stages.runtime.packager = settings.packager

    if spec.stages.runtime.packager not in PACKAGERS:
        raise ConfigError(f"Unknown packager '{spec.stages.runtime.packager}'. Known: {list(PACKAGERS)}")

    # Relative locations are anchored at the config file, not the caller's cwd
    base = path.resolve().parent
    spec.source_root = _absolute(base, spec.source_root)
    spec.logging.runs_dir = _absolute(base, spec.logging.runs_dir)
    spec.cache.dir = _absolute(base, spec.cache.dir)
    spec.stages.runtime.output_dir = _absolute(base, spec.stages.runtime.output_dir)

    return spec
