"""Pipeline nodes: immutable descriptions of sources and process stages.

Building a pipeline never spawns a process or opens a file. Every node kind
exposes ``pipe`` to extend the chain and the terminal coroutines (``run``,
``run_silent``, ``get``, ``get_all``, ``to_file``) that execute it.
"""

from __future__ import annotations

import os
import shlex
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, ClassVar, Mapping, Optional, Union

from .models import CommandSpec, parse_command_input
from .process_utils import normalize_command

if TYPE_CHECKING:
    from .models import Output
    from .streams import Ambient


class NodeKind(str, Enum):
    """Tag identifying which variant a node is."""

    FILE = "file"
    TEXT = "text"
    STDIN = "stdin"
    PROCESS = "process"


class _Chainable:
    """Chain construction and terminal operations shared by all node kinds."""

    def pipe(
        self,
        *args: Any,
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> "ProcessNode":
        """Return a new stage reading this node's output on its stdin."""
        spec = parse_command_input(args, cwd=cwd, env=env)
        return ProcessNode.from_spec(spec, upstream=self)

    async def run(self, *, ambient: Optional["Ambient"] = None) -> None:
        """Run with stdout/stderr inherited from the ambient streams."""
        from . import runner

        await runner.run(self, ambient=ambient)

    async def run_silent(self, *, ambient: Optional["Ambient"] = None) -> None:
        """Run with all output discarded."""
        from . import runner

        await runner.run_silent(self, ambient=ambient)

    async def get(self, *, ambient: Optional["Ambient"] = None) -> str:
        """Return the tail's stdout decoded as UTF-8."""
        from . import runner

        return await runner.get(self, ambient=ambient)

    async def get_all(self, *, ambient: Optional["Ambient"] = None) -> "Output":
        """Return stdout and stderr decoded as UTF-8."""
        from . import runner

        return await runner.get_all(self, ambient=ambient)

    async def to_file(
        self,
        path: str | os.PathLike[str],
        *,
        ambient: Optional["Ambient"] = None,
    ) -> None:
        """Write the tail's stdout to ``path``."""
        from . import runner

        await runner.to_file(self, path, ambient=ambient)

    def describe(self) -> str:
        """Shell-like rendering of the chain, for logs and error messages."""
        return describe_pipeline(self)


@dataclass(frozen=True)
class FileSource(_Chainable):
    """Contents of a file on disk."""

    path: str
    kind: ClassVar[NodeKind] = NodeKind.FILE

    def __post_init__(self) -> None:
        object.__setattr__(self, "path", os.fspath(self.path))


@dataclass(frozen=True)
class TextSource(_Chainable):
    """Literal text fed to the next stage."""

    text: str
    kind: ClassVar[NodeKind] = NodeKind.TEXT

    def __post_init__(self) -> None:
        if not isinstance(self.text, str):
            raise TypeError("Text source requires a str")


@dataclass(frozen=True)
class StdinSource(_Chainable):
    """The ambient standard input, passed through unmodified."""

    kind: ClassVar[NodeKind] = NodeKind.STDIN


@dataclass(frozen=True)
class ProcessNode(_Chainable):
    """One process stage: argv, optional cwd/env overrides and upstream."""

    command: tuple[str, ...]
    cwd: Optional[str] = None
    # Excluded from hashing: the read-only mapping view is unhashable
    env: Mapping[str, str] = field(default_factory=dict, hash=False)
    upstream: Optional["Node"] = None
    kind: ClassVar[NodeKind] = NodeKind.PROCESS

    def __post_init__(self) -> None:
        object.__setattr__(self, "command", normalize_command(self.command))
        if self.cwd is not None:
            object.__setattr__(self, "cwd", os.fspath(self.cwd))
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    @classmethod
    def from_spec(
        cls, spec: CommandSpec, upstream: Optional["Node"] = None
    ) -> "ProcessNode":
        return cls(
            command=tuple(spec.cmd),
            cwd=spec.cwd,
            env=spec.env,
            upstream=upstream,
        )


Node = Union[FileSource, TextSource, StdinSource, ProcessNode]


def iter_stages(node: Node) -> list[Node]:
    """Return the chain ending at ``node`` in head-to-tail order."""
    stages = []
    current: Optional[Node] = node
    while current is not None:
        stages.append(current)
        current = current.upstream if current.kind is NodeKind.PROCESS else None
    stages.reverse()
    return stages


def _describe_stage(node: Node) -> str:
    if node.kind is NodeKind.FILE:
        return f"cat {shlex.quote(node.path)}"
    if node.kind is NodeKind.TEXT:
        preview = node.text if len(node.text) <= 20 else node.text[:17] + "..."
        return f"printf %s {shlex.quote(preview)}"
    if node.kind is NodeKind.STDIN:
        return "<stdin>"
    return shlex.join(node.command)


def describe_pipeline(node: Node) -> str:
    """Render a chain as ``head | ... | tail``.

    Example:
        >>> describe_pipeline(TextSource("hi").pipe("cat"))
        "printf %s hi | cat"
    """
    return " | ".join(_describe_stage(stage) for stage in iter_stages(node))


__all__ = [
    "FileSource",
    "Node",
    "NodeKind",
    "ProcessNode",
    "StdinSource",
    "TextSource",
    "describe_pipeline",
    "iter_stages",
]
