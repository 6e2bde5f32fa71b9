from __future__ import annotations

from pathlib import Path
from typing import Iterable

from bundlepack.models import ToolchainProbe
from bundlepack.runtime.process import run_command


def check_toolchain(probes: Iterable[ToolchainProbe], cwd: Path) -> list[str]:
    """
    Runs each bootstrap probe and returns one reason per failure.
    A missing compile target is a configuration problem, caught here rather than mid-build.
    """
    failures: list[str] = []
    for probe in probes:
        result = run_command(probe.command, cwd=cwd)
        if not result.ok:
            failures.append(f"{probe.name}: '{' '.join(probe.command)}' exited {result.returncode}")
            continue
        if probe.expect and probe.expect not in result.stdout:
            failures.append(f"{probe.name}: '{probe.expect}' not found in output of '{' '.join(probe.command)}'")
    return failures
