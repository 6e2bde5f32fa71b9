from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable

from bundlepack.engine.errors import PreconditionError
from bundlepack.models import CopySpec, SourceManifest


@dataclass(frozen=True)
class ResolvedEntry:
    spec: CopySpec
    matches: tuple[Path, ...]


@dataclass(frozen=True)
class ManifestResolution:
    total_items: int
    satisfied_items: int
    entries: tuple[ResolvedEntry, ...]
    missing_items: tuple[str, ...]

    @property
    def complete(self) -> bool:
        return not self.missing_items


def missing_paths(root: Path, rel_paths: Iterable[str]) -> list[str]:
    return [rel for rel in rel_paths if not (root / rel).exists()]


class ManifestResolver:
    """
    Resolves a SourceManifest against the source root.

    Each entry is a glob relative to the root. Optional entries that match nothing
    are skipped; required ones are reported in missing_items.
    """

    def resolve(self, source_root: Path, manifest: SourceManifest) -> ManifestResolution:
        resolved = []
        missing = []
        satisfied = 0

        for entry in manifest.entries:
            matches = tuple(sorted(source_root.glob(entry.pattern)))
            resolved.append(ResolvedEntry(spec=entry, matches=matches))
            if matches:
                satisfied += 1
            elif entry.required:
                missing.append(entry.pattern)

        return ManifestResolution(
            total_items=len(manifest.entries),
            satisfied_items=satisfied,
            entries=tuple(resolved),
            missing_items=tuple(missing),
        )

    def require(self, source_root: Path, manifest: SourceManifest) -> ManifestResolution:
        if not source_root.is_dir():
            raise PreconditionError(f"Source root does not exist: {source_root}")
        result = self.resolve(source_root, manifest)
        if not result.complete:
            raise PreconditionError(
                f"Required inputs missing under {source_root}: {list(result.missing_items)}"
            )
        return result
