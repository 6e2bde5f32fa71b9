from __future__ import annotations

import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional, Sequence


@dataclass(frozen=True)
class ToolResult:
    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def run_command(
    args: Sequence[str],
    cwd: Path,
    *,
    env: Optional[Mapping[str, str]] = None,
    input_text: Optional[str] = None,
) -> ToolResult:
    """
    Runs one blocking tool invocation. No timeout: a hung tool hangs the pipeline.
    """
    merged_env = None
    if env:
        merged_env = dict(os.environ)
        merged_env.update(env)

    try:
        proc = subprocess.run(
            list(args),
            cwd=str(cwd),
            env=merged_env,
            input=input_text,
            capture_output=True,
            text=True,
        )
    except FileNotFoundError as e:
        # Same status a shell reports for an unknown command
        return ToolResult(command=tuple(args), returncode=127, stdout="", stderr=str(e))

    return ToolResult(
        command=tuple(args),
        returncode=proc.returncode,
        stdout=proc.stdout,
        stderr=proc.stderr,
    )
