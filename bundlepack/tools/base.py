from __future__ import annotations

import string
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set

from bundlepack.engine.errors import ConfigError
from bundlepack.runtime.process import ToolResult, run_command

# Every CommandTool fills these in
BASE_PLACEHOLDERS = ("input_root", "output_root")


def command_placeholders(command: Iterable[str]) -> Set[str]:
    """
    Names referenced as {name} in a command template.
    Raises ValueError on malformed braces; "{{" and "}}" are literal braces.
    """
    names: Set[str] = set()
    for arg in command:
        for _, field, _, _ in string.Formatter().parse(arg):
            if field is not None:
                names.add(field)
    return names


class Tool:
    """
    An opaque external collaborator: given a declared input root, it produces
    the declared output root or reports failure through its ToolResult.
    """
    name = "tool"

    def invoke(self, input_root: Path, output_root: Optional[Path] = None, **values: str) -> ToolResult:
        raise NotImplementedError


class CommandTool(Tool):
    def __init__(self, name: str, command: List[str], env: Optional[Mapping[str, str]] = None):
        if not command:
            raise ValueError(f"Tool '{name}' has no command configured")
        self.name = name
        self.command = list(command)
        self.env = dict(env or {})

    def render(self, input_root: Path, output_root: Optional[Path] = None, **values: str) -> List[str]:
        # Placeholders: {input_root}, {output_root} and any caller-supplied values, e.g. {cache_dir}
        mapping: Dict[str, str] = {"input_root": str(input_root), "output_root": str(output_root or "")}
        mapping.update(values)
        try:
            return [arg.format_map(mapping) for arg in self.command]
        except (KeyError, IndexError, ValueError) as e:
            raise ConfigError(
                f"Tool '{self.name}' command {self.command} cannot be rendered ({e!r}). "
                f"Available placeholders: {sorted(mapping)}"
            ) from e

    def invoke(self, input_root: Path, output_root: Optional[Path] = None, **values: str) -> ToolResult:
        args = self.render(input_root, output_root, **values)
        return run_command(args, cwd=input_root, env=self.env)
