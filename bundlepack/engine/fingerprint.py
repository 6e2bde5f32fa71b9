from __future__ import annotations

import hashlib
import json
import re
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Dict

# trunk renames emitted assets as <stem>-<16 hex>[_bg].<ext> for cache busting
_HASH_RE = re.compile(r"-[0-9a-f]{16}(?=[._])")
_HASH_RE_BYTES = re.compile(rb"-[0-9a-f]{16}(?=[._])")

TEXT_SUFFIXES = (".html", ".js", ".css", ".json", ".map", ".txt", ".svg")


def normalize_name(rel_path: str) -> str:
    return _HASH_RE.sub("", rel_path)


def sha256_bytes(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class ArtifactFingerprint:
    files: Dict[str, str]  # normalized relative path -> sha256
    digest: str

    def to_json(self) -> str:
        return json.dumps(asdict(self), indent=2, sort_keys=True)


def fingerprint(root: Path) -> ArtifactFingerprint:
    """
    Fingerprints an ArtifactSet so two builds of identical inputs compare equal.

    Content-hash segments are stripped from file names, and from the contents of
    text files, which is where the renamed assets are referenced.
    """
    files: Dict[str, str] = {}
    for p in sorted(root.rglob("*")):
        if not p.is_file():
            continue
        rel = p.relative_to(root).as_posix()
        data = p.read_bytes()
        if p.suffix in TEXT_SUFFIXES:
            data = _HASH_RE_BYTES.sub(b"", data)
        files[normalize_name(rel)] = sha256_bytes(data)

    overall = hashlib.sha256()
    for rel in sorted(files):
        overall.update(f"{rel}\0{files[rel]}\n".encode("utf-8"))

    return ArtifactFingerprint(files=files, digest=overall.hexdigest())
