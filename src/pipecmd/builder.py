"""The ``cmd`` entry point for building pipelines."""

from __future__ import annotations

import os
from typing import Any, Mapping

from .models import parse_command_input
from .nodes import FileSource, ProcessNode, StdinSource, TextSource


class CommandFactory:
    """Builds pipeline heads.

    Examples:
        cmd("echo", "hi").pipe("cat")
        cmd({"cmd": ["ls", "-l"], "cwd": "/tmp"})
        cmd("printenv", "HOME", env={"HOME": "/root"})
        cmd.file("data.txt").pipe("sort")
        cmd.text("bananas").pipe("cat")
        cmd.stdin().pipe("wc", "-l")
    """

    def __call__(
        self,
        *args: Any,
        cwd: str | os.PathLike[str] | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ProcessNode:
        return ProcessNode.from_spec(parse_command_input(args, cwd=cwd, env=env))

    def file(self, path: str | os.PathLike[str]) -> FileSource:
        return FileSource(path)

    def text(self, text: str) -> TextSource:
        return TextSource(text)

    def stdin(self) -> StdinSource:
        return StdinSource()


cmd = CommandFactory()

__all__ = ["CommandFactory", "cmd"]
