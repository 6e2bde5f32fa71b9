from __future__ import annotations

import hashlib
import io
import json
import os
import tarfile
from dataclasses import dataclass, asdict
from pathlib import Path, PurePosixPath
from typing import List, Optional

LAYER_NAME = "layer.tar"
CONFIG_NAME = "image.json"


@dataclass(frozen=True)
class RuntimeImage:
    name: str
    base_image: str
    content_root: str
    port: int
    location: str
    files: tuple[str, ...]
    layer_sha256: Optional[str] = None
    layer_size: Optional[int] = None

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2, sort_keys=True)


def list_files(root: Path) -> tuple[str, ...]:
    return tuple(
        p.relative_to(root).as_posix()
        for p in sorted(root.rglob("*"))
        if p.is_file() or p.is_symlink()
    )


def _tarinfo(name: str, kind: bytes, mode: int, size: int = 0, linkname: str = "") -> tarfile.TarInfo:
    info = tarfile.TarInfo(name)
    info.type = kind
    info.mode = mode
    info.size = size
    info.linkname = linkname
    # Fixed metadata keeps identical inputs byte-identical
    info.mtime = 0
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def write_layer(artifact_root: Path, content_root: str, layer_path: Path) -> str:
    """
    Writes the ArtifactSet as a single deterministic tar layer rooted at content_root.
    Returns the layer sha256.
    """
    prefix = PurePosixPath(content_root.strip("/"))

    with tarfile.open(layer_path, "w", format=tarfile.GNU_FORMAT) as tar:
        # Parents of the content root first, e.g. home/, home/static/
        parts = prefix.parts
        for i in range(1, len(parts) + 1):
            tar.addfile(_tarinfo(str(PurePosixPath(*parts[:i])), tarfile.DIRTYPE, 0o755))

        for p in sorted(artifact_root.rglob("*")):
            name = str(prefix / p.relative_to(artifact_root).as_posix())
            if p.is_symlink():
                link = os.readlink(p)
                tar.addfile(_tarinfo(name, tarfile.SYMTYPE, 0o777, linkname=str(link)))
            elif p.is_dir():
                tar.addfile(_tarinfo(name, tarfile.DIRTYPE, 0o755))
            else:
                data = p.read_bytes()
                tar.addfile(_tarinfo(name, tarfile.REGTYPE, 0o644, size=len(data)), io.BytesIO(data))

    return hashlib.sha256(layer_path.read_bytes()).hexdigest()


def layer_members(image_dir: Path, files_only: bool = False) -> List[str]:
    with tarfile.open(image_dir / LAYER_NAME, "r") as tar:
        return [m.name for m in tar.getmembers() if not (files_only and m.isdir())]


def load_image(image_dir: Path) -> RuntimeImage:
    raw = json.loads((image_dir / CONFIG_NAME).read_text(encoding="utf-8"))
    raw["files"] = tuple(raw.get("files", ()))
    return RuntimeImage(**raw)
