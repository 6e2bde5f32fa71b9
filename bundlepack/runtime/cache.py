from __future__ import annotations

import shutil
from pathlib import Path


class DependencyCache:
    """
    Package-manager cache shared across runs.

    The path is always injected; nothing else in the pipeline knows where it lives.
    Concurrent runs against the same path are not supported.
    """

    def __init__(self, path: Path):
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    @property
    def initialized(self) -> bool:
        return self._path.is_dir()

    def ensure(self) -> Path:
        self._path.mkdir(parents=True, exist_ok=True)
        return self._path

    def clear(self) -> bool:
        if not self._path.exists():
            return False
        shutil.rmtree(self._path)
        return True
