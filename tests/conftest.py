import hashlib
import re
from pathlib import Path

import pytest

from bundlepack.models import PipelineSpec
from bundlepack.runtime.process import ToolResult
from bundlepack.stages.application_bundler_v1 import ApplicationBundlerV1
from bundlepack.stages.artifact_assembler_v1 import ArtifactAssemblerV1
from bundlepack.stages.dependency_installer_v1 import DependencyInstallerV1
from bundlepack.stages.runtime_packager_v1 import RuntimePackagerV1
from bundlepack.tools.base import Tool

INDEX_HTML = """<!DOCTYPE html>
<html>
  <head>
    <link data-trunk rel="rust" />
    <link data-trunk rel="css" href="style.css" />
  </head>
  <body></body>
</html>
"""


class FakeInstallTool(Tool):
    """Stands in for `npm ci`: needs the lock file, writes node_modules/."""
    name = "fake-npm"

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = []

    def invoke(self, input_root, output_root=None, **values):
        self.calls.append((input_root, output_root, values))
        if self.fail:
            # Leave partial state behind, the way an interrupted install does
            (output_root / "half-installed").mkdir(parents=True)
            return ToolResult(("npm", "ci"), 1, "", "npm ERR! lockfile mismatch")
        helper = output_root / "left-pad"
        helper.mkdir(parents=True)
        (helper / "index.js").write_text("module.exports = s => s;\n", encoding="utf-8")
        return ToolResult(("npm", "ci"), 0, "added 1 package", "")


class FakeBundleTool(Tool):
    """Stands in for `trunk build`: content-hashed assets, fails on 'syntax error' in src."""
    name = "fake-trunk"

    def __init__(self, write_index: bool = True, empty: bool = False):
        self.write_index = write_index
        self.empty = empty
        self.calls = []

    def invoke(self, input_root, output_root=None, **values):
        self.calls.append((input_root, output_root, values))
        source = (input_root / "src" / "main.rs").read_text(encoding="utf-8")
        if "syntax error" in source:
            return ToolResult(("trunk", "build"), 1, "", "error: expected one of `;` or `}`")

        output_root.mkdir(parents=True)
        if self.empty:
            return ToolResult(("trunk", "build"), 0, "success", "")

        h = hashlib.sha256(source.encode("utf-8")).hexdigest()[:16]
        (output_root / f"app-{h}_bg.wasm").write_bytes(b"\0asm" + source.encode("utf-8"))
        (output_root / f"app-{h}.js").write_text(f"import init from './app-{h}_bg.wasm';\n", encoding="utf-8")
        css = (input_root / "style.css").read_text(encoding="utf-8")
        css_h = hashlib.sha256(css.encode("utf-8")).hexdigest()[:16]
        (output_root / f"style-{css_h}.css").write_text(css, encoding="utf-8")
        if self.write_index:
            html = (input_root / "index.html").read_text(encoding="utf-8")
            html = re.sub(r'<link data-trunk rel="rust" />', f'<script type="module" src="/app-{h}.js"></script>', html)
            html = html.replace('href="style.css"', f'href="/style-{css_h}.css"')
            (output_root / "index.html").write_text(html, encoding="utf-8")
        return ToolResult(("trunk", "build"), 0, "success", "")


@pytest.fixture
def project_tree(tmp_path: Path) -> Path:
    root = tmp_path / "project"
    (root / "src").mkdir(parents=True)
    (root / "node").mkdir()
    (root / "index.html").write_text(INDEX_HTML, encoding="utf-8")
    (root / "style.css").write_text("body { margin: 0; }\n", encoding="utf-8")
    (root / "Cargo.toml").write_text('[package]\nname = "calc"\nversion = "0.1.0"\n', encoding="utf-8")
    (root / "src" / "main.rs").write_text("fn main() {}\n", encoding="utf-8")
    (root / "node" / "package.json").write_text('{"name": "helper"}\n', encoding="utf-8")
    (root / "node" / "package-lock.json").write_text('{"lockfileVersion": 3}\n', encoding="utf-8")
    (root / "node" / "main.js").write_text("export const x = 1;\n", encoding="utf-8")
    return root


def _spec_dict(tmp_path: Path, source_root: Path) -> dict:
    return {
        "project": "calc",
        "source_root": str(source_root),
        "logging": {"runs_dir": str(tmp_path / "runs"), "artifacts_dirname": "artifacts"},
        "cache": {"dir": str(tmp_path / "cache")},
        "stages": {
            "build": {
                "manifest": [
                    "*.html",
                    "Cargo.*",
                    "*.css",
                    "src",
                    {"pattern": "node/package*", "dest": "node"},
                    {"pattern": "node/main.js", "dest": "node"},
                ],
                "toolchain": [],
            },
            "runtime": {
                "output_dir": str(tmp_path / "images"),
                "image_tag": "calc:test",
            },
        },
        "pipeline": [
            {
                "stage": "build",
                "step": "install_dependencies",
                "agent": "dependency_installer_v1",
                "to_state": "DEPENDENCIES_INSTALLED",
                "workdir": "node",
            },
            {
                "stage": "build",
                "step": "bundle",
                "agent": "application_bundler_v1",
                "to_state": "BUNDLED",
                "pre_gate": [{"type": "paths_exist", "paths": ["node/node_modules"]}],
                "post_gate": [{"type": "paths_exist", "paths": ["dist"]}],
            },
            {
                "stage": "build",
                "step": "assemble",
                "agent": "artifact_assembler_v1",
                "to_state": "ASSEMBLED",
            },
            {
                "stage": "runtime",
                "step": "package",
                "agent": "runtime_packager_v1",
                "to_state": "PACKAGED",
            },
        ],
    }


@pytest.fixture
def make_spec(tmp_path: Path, project_tree: Path):
    def _make(manifest=None, bundle_post_gate=None, **package_options) -> PipelineSpec:
        raw = _spec_dict(tmp_path, project_tree)
        if manifest is not None:
            raw["stages"]["build"]["manifest"] = manifest
        if bundle_post_gate is not None:
            raw["pipeline"][1]["post_gate"] = bundle_post_gate
        raw["pipeline"][3]["options"] = package_options
        return PipelineSpec.model_validate(raw)

    return _make


@pytest.fixture
def make_registry():
    def _make(install_fail: bool = False, write_index: bool = True, empty_bundle: bool = False):
        installer = FakeInstallTool(fail=install_fail)
        bundler = FakeBundleTool(write_index=write_index, empty=empty_bundle)
        registry = {
            "dependency_installer_v1": DependencyInstallerV1(tool=installer),
            "application_bundler_v1": ApplicationBundlerV1(tool=bundler),
            "artifact_assembler_v1": ArtifactAssemblerV1(),
            "runtime_packager_v1": RuntimePackagerV1(),
        }
        return registry, installer, bundler

    return _make


def only_run_dir(spec: PipelineSpec) -> Path:
    runs = list((Path(spec.logging.runs_dir) / spec.project).iterdir())
    assert len(runs) == 1
    return runs[0]


@pytest.fixture
def find_run_dir():
    return only_run_dir
