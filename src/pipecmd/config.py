"""Config layer: runtime settings read from the environment."""

import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field

__all__ = [
    "Settings",
    "get_settings",
    "reset_settings",
    "set_settings",
]

_SETTINGS: Optional["Settings"] = None


class Settings(BaseModel):
    """Tunables for stream copying and decoding."""

    chunk_size: int = Field(default=65536, gt=0)
    decode_errors: Literal["strict", "replace", "ignore"] = "replace"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from PIPECMD_* variables, falling back to defaults."""
        environ = os.environ if environ is None else environ
        values = {}
        if environ.get("PIPECMD_CHUNK_SIZE"):
            values["chunk_size"] = environ["PIPECMD_CHUNK_SIZE"]
        if environ.get("PIPECMD_DECODE_ERRORS"):
            values["decode_errors"] = environ["PIPECMD_DECODE_ERRORS"]
        return cls.model_validate(values)


def get_settings() -> Settings:
    """Return cached Settings (read from the environment on first use)."""
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS


def set_settings(settings: Settings) -> None:
    """Inject Settings (for unit tests)."""
    global _SETTINGS
    _SETTINGS = settings


def reset_settings() -> None:
    """Reset cached settings (for tests)."""
    global _SETTINGS
    _SETTINGS = None
