"""Pydantic models for command configuration and captured output."""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .process_utils import normalize_command


class CommandSpec(BaseModel):
    """Configuration call shape for a process stage: ``{cmd, cwd?, env?}``."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    cmd: list[str]
    cwd: Optional[str] = None
    env: Dict[str, str] = Field(default_factory=dict)

    @field_validator("cmd", mode="before")
    @classmethod
    def _normalize_cmd(cls, value: Any) -> list[str]:
        return list(normalize_command(value))

    @field_validator("cwd", mode="before")
    @classmethod
    def _fspath_cwd(cls, value: Any) -> Any:
        if isinstance(value, os.PathLike):
            return os.fspath(value)
        return value

    @field_validator("env", mode="before")
    @classmethod
    def _parse_env(cls, value: Any) -> Any:
        # Accept ["KEY=VALUE", ...] as well as a mapping; split on the first "="
        if value is None:
            return {}
        if isinstance(value, (list, tuple)):
            pairs = {}
            for item in value:
                if not isinstance(item, str) or "=" not in item:
                    raise ValueError(f"Invalid env entry: {item!r} (expected KEY=VALUE)")
                key, val = item.split("=", 1)
                pairs[key] = val
            return pairs
        return value

    @field_validator("env")
    @classmethod
    def _check_env_names(cls, value: Dict[str, str]) -> Dict[str, str]:
        for key in value:
            if not key or "=" in key or "\0" in key:
                raise ValueError(f"Invalid environment variable name: {key!r}")
        return value


class Output(BaseModel):
    """Captured stdout and stderr of a pipeline."""

    stdout: str
    stderr: str


def parse_command_input(
    args: tuple[Any, ...],
    *,
    cwd: str | os.PathLike[str] | None = None,
    env: Mapping[str, str] | None = None,
) -> CommandSpec:
    """Accept either a flat argv or a single configuration value.

    Raises:
        TypeError: configuration value mixed with other arguments
        ValueError: empty command vector or invalid configuration
    """
    if len(args) == 1 and isinstance(args[0], (CommandSpec, Mapping)):
        if cwd is not None or env is not None:
            raise TypeError(
                "cwd/env keywords cannot be combined with a configuration value"
            )
        if isinstance(args[0], CommandSpec):
            return args[0]
        return CommandSpec.model_validate(dict(args[0]))

    if any(isinstance(arg, (CommandSpec, Mapping)) for arg in args):
        raise TypeError("A configuration value must be the only argument")

    return CommandSpec(cmd=list(args), cwd=cwd, env=env)


__all__ = ["CommandSpec", "Output", "parse_command_input"]
