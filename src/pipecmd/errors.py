"""Pipeline error types."""

from __future__ import annotations

import shlex
from collections.abc import Sequence


class CmdError(Exception):
    """The tail stage of a pipeline exited with a non-zero code.

    Attributes:
        command: argv of the failing (tail) stage
        code: exit code; negative when the process was killed by a signal
        stderr: captured stderr text, when the operation captured it
    """

    def __init__(
        self, command: Sequence[str], code: int, stderr: str | None = None
    ) -> None:
        self.command = tuple(command)
        self.code = code
        self.stderr = stderr
        message = f"Command {shlex.join(self.command)!r} failed with exit code {code}"
        if stderr:
            message += f". Stderr:\n{stderr}"
        super().__init__(message)

    def __reduce__(self):
        return (type(self), (self.command, self.code, self.stderr))


__all__ = ["CmdError"]
