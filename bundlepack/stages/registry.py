from __future__ import annotations

from bundlepack.stages.application_bundler_v1 import ApplicationBundlerV1
from bundlepack.stages.artifact_assembler_v1 import ArtifactAssemblerV1
from bundlepack.stages.dependency_installer_v1 import DependencyInstallerV1
from bundlepack.stages.runtime_packager_v1 import RuntimePackagerV1


def default_registry():
    return {
        "dependency_installer_v1": DependencyInstallerV1(),
        "application_bundler_v1": ApplicationBundlerV1(),
        "artifact_assembler_v1": ArtifactAssemblerV1(),
        "runtime_packager_v1": RuntimePackagerV1(),
    }
