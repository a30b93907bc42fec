"""Process utilities shared by the execution layer.

Includes argv validation, environment merging and a validated wrapper around
asyncio's process creation. Kept free of pipeline types so that both the
models and the execution engine can depend on it.
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Mapping, Sequence
from typing import Any

CommandArg = str | os.PathLike[str]


def normalize_command(cmd: Sequence[CommandArg]) -> tuple[str, ...]:
    """Validate and normalize command arguments.

    The executable must be a non-empty string; later arguments are passed
    through literally, so empty strings are allowed there.
    """
    if isinstance(cmd, (str, bytes)):
        msg = "Command must be a sequence of arguments, not a single string"
        raise TypeError(msg)
    if not cmd:
        msg = "Command must include at least one argument"
        raise ValueError(msg)

    normalized: list[str] = []
    for arg in cmd:
        if isinstance(arg, os.PathLike):
            value = os.fspath(arg)
        elif isinstance(arg, str):
            value = arg
        else:
            msg = "Command arguments must be strings or os.PathLike"
            raise TypeError(msg)
        normalized.append(value)

    if not normalized[0].strip():
        msg = "Executable cannot be empty or whitespace"
        raise ValueError(msg)

    return tuple(normalized)


def merge_env(
    ambient: Mapping[str, str], overrides: Mapping[str, str] | None = None
) -> dict[str, str]:
    """Return the ambient environment with per-stage overrides applied on top."""
    env = dict(ambient)
    if overrides:
        env.update(overrides)
    return env


async def spawn_with_validation(
    cmd: Sequence[CommandArg], **kwargs: Any
) -> asyncio.subprocess.Process:
    """Run asyncio.create_subprocess_exec with validated argv (never a shell)."""
    normalized_cmd = normalize_command(cmd)
    return await asyncio.create_subprocess_exec(*normalized_cmd, **kwargs)  # noqa: S603
