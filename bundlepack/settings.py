from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    config_path: Path
    work_dir: Optional[Path]
    cache_dir: Optional[Path]
    keep_workspace: bool
    packager: Optional[str]


def _flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in ("1", "true", "yes", "on")


def _path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


def get_settings() -> Settings:
    return Settings(
        config_path=Path(os.getenv("BUNDLEPACK_CONFIG", "pipeline.yaml")),
        work_dir=_path("BUNDLEPACK_WORK_DIR"),
        cache_dir=_path("BUNDLEPACK_CACHE_DIR"),
        keep_workspace=_flag("BUNDLEPACK_KEEP_WORKSPACE"),
        packager=os.getenv("BUNDLEPACK_PACKAGER") or None,
        )
