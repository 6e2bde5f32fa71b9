import re
from pathlib import Path

# <link data-trunk rel="css" href="style.css"/>, <link data-trunk rel="copy-dir" href="assets">, ...
_TAG_RE = re.compile(r"<(?:link|script|img)\b[^>]*>", re.IGNORECASE)
_REF_RE = re.compile(r"""\b(?:href|src)\s*=\s*["']([^"']+)["']""", re.IGNORECASE)
_SCHEME_RE = re.compile(r"^(?:[a-z][a-z0-9+.-]*:|//|#)", re.IGNORECASE)


def asset_references(markup: str) -> list[str]:
    """
    Local asset paths the bundler will resolve: href/src of tags carrying data-trunk.
    """
    refs: list[str] = []
    for m in _TAG_RE.finditer(markup):
        tag = m.group(0)
        if "data-trunk" not in tag:
            continue
        ref = _REF_RE.search(tag)
        if ref is None:
            # e.g. <link data-trunk rel="rust"/> points at Cargo.toml implicitly
            continue
        value = ref.group(1).split("?", 1)[0].split("#", 1)[0]
        if not value or _SCHEME_RE.match(value):
            continue
        refs.append(value)
    return refs


def missing_references(markup_path: Path) -> list[str]:
    markup = markup_path.read_text(encoding="utf-8")
    base = markup_path.parent
    return [ref for ref in asset_references(markup) if not (base / ref.lstrip("/")).exists()]
