from __future__ import annotations

from typing import Optional


class PipelineError(RuntimeError):
    """
    Base for every stage failure.
    Carries the failing tool's exit status and diagnostic text verbatim when a tool was involved.
    """

    def __init__(self, message: str, *, returncode: Optional[int] = None, stderr: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr

    @classmethod
    def from_result(cls, result, what: str) -> "PipelineError":
        cmd = " ".join(result.command)
        return cls(
            f"{what} failed (exit {result.returncode}): {cmd}\n{result.stderr}",
            returncode=result.returncode,
            stderr=result.stderr,
        )


class PreconditionError(PipelineError):
    pass


class DependencyResolutionError(PipelineError):
    pass


class CompileError(PipelineError):
    pass


class PackagingError(PipelineError):
    pass


class ConfigError(ValueError):
    pass
