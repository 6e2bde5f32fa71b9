from __future__ import annotations

import shutil
from pathlib import Path

from bundlepack.engine.errors import PackagingError
from bundlepack.models import RuntimeStageSpec
from bundlepack.runtime.image import CONFIG_NAME, LAYER_NAME, RuntimeImage, list_files, write_layer
from bundlepack.runtime.process import run_command


def safe_name(tag: str) -> str:
    return tag.replace("/", "_").replace(":", "_")


def containerfile(spec: RuntimeStageSpec) -> str:
    return (
        f"FROM {spec.base_image}\n"
        f"COPY . {spec.content_root}\n"
        f"EXPOSE {spec.port}\n"
    )


class Packager:
    def __init__(self, spec: RuntimeStageSpec):
        self.spec = spec

    def package(self, artifact_root: Path, image_name: str, staging_dir: Path) -> RuntimeImage:
        raise NotImplementedError


class DirectoryPackager(Packager):
    """
    Materializes the RuntimeImage as <output_dir>/<image>/ holding one
    deterministic layer plus its image config.

    An existing target is a collision unless replace is set, and even then only
    a directory holding an image config is ever removed.
    """

    def __init__(self, spec: RuntimeStageSpec, replace: bool = False):
        super().__init__(spec)
        self.replace = replace

    def package(self, artifact_root: Path, image_name: str, staging_dir: Path) -> RuntimeImage:
        if not artifact_root.is_dir():
            raise PackagingError(f"Artifact directory does not exist: {artifact_root}")

        target = Path(self.spec.output_dir) / safe_name(image_name)
        if target.exists() or target.is_symlink():
            if not self.replace:
                raise PackagingError(f"Image path already exists: {target}")
            if target.is_symlink() or not (target / CONFIG_NAME).is_file():
                raise PackagingError(f"Refusing to replace {target}: not a packaged image")

        staged = staging_dir / safe_name(image_name)
        staged.mkdir(parents=True, exist_ok=False)

        layer_path = staged / LAYER_NAME
        digest = write_layer(artifact_root, self.spec.content_root, layer_path)

        image = RuntimeImage(
            name=image_name,
            base_image=self.spec.base_image,
            content_root=self.spec.content_root,
            port=self.spec.port,
            location=str(target),
            files=list_files(artifact_root),
            layer_sha256=digest,
            layer_size=layer_path.stat().st_size,
        )
        (staged / CONFIG_NAME).write_text(image.to_json(), encoding="utf-8")

        if target.exists():
            shutil.rmtree(target)
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(staged), str(target))
        return image


class DockerPackager(Packager):
    """
    Builds with the docker CLI. The ArtifactSet is the whole build context,
    so nothing from the build stage can reach the image.
    """

    def package(self, artifact_root: Path, image_name: str, staging_dir: Path) -> RuntimeImage:
        if not artifact_root.is_dir():
            raise PackagingError(f"Artifact directory does not exist: {artifact_root}")

        dockerfile = containerfile(self.spec)
        (staging_dir / "Containerfile").write_text(dockerfile, encoding="utf-8")

        result = run_command(
            ["docker", "build", "-t", image_name, "-f", "-", str(artifact_root)],
            cwd=staging_dir,
            input_text=dockerfile,
        )
        if not result.ok:
            raise PackagingError.from_result(result, "docker build")

        return RuntimeImage(
            name=image_name,
            base_image=self.spec.base_image,
            content_root=self.spec.content_root,
            port=self.spec.port,
            location=image_name,
            files=list_files(artifact_root),
        )


def make_packager(spec: RuntimeStageSpec, **options) -> Packager:
    if spec.packager == "docker":
        return DockerPackager(spec)
    if spec.packager == "directory":
        return DirectoryPackager(spec, replace=bool(options.get("replace", False)))
    raise PackagingError(f"Unknown packager '{spec.packager}'")
