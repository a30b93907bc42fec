"""Stream endpoints: stdio policies, binding requests and resolved outputs."""

from __future__ import annotations

import asyncio
import os
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from enum import Enum
from typing import IO, Any, Optional


class StdinPolicy(str, Enum):
    """How the head stage's stdin is bound."""

    INHERIT = "inherit"
    IGNORE = "ignore"
    UPSTREAM = "upstream"


class OutputPolicy(str, Enum):
    """How a stage's stdout or stderr is bound."""

    INHERIT = "inherit"
    IGNORE = "ignore"
    CALLER = "caller"
    NEXT_STAGE = "next-stage"


@dataclass(frozen=True)
class StreamRequest:
    """Stream bindings a terminal operation asks of the tail stage."""

    stdin: StdinPolicy
    stdout: OutputPolicy
    stderr: OutputPolicy

    def __post_init__(self) -> None:
        if self.stderr is OutputPolicy.NEXT_STAGE:
            raise ValueError("stderr is never chained between stages")

    def for_upstream(self) -> "StreamRequest":
        """Sub-request issued to a stage's upstream node."""
        return StreamRequest(
            stdin=self.stdin,
            stdout=OutputPolicy.NEXT_STAGE,
            stderr=self.stderr,
        )


class StreamKind(str, Enum):
    """What a resolved output endpoint actually is."""

    DESCRIPTOR = "descriptor"  # binary file object with a real fileno()
    READER = "reader"  # asyncio StreamReader piped to the caller
    TEXT = "text"  # in-memory bytes, must be written into a pipe
    EMPTY = "empty"  # no bytes at all


@dataclass(eq=False)
class Endpoint:
    """A resolved output stream of one stage.

    ``handle`` depends on ``kind``: a binary file object for DESCRIPTOR, an
    ``asyncio.StreamReader`` for READER, ``bytes`` for TEXT and ``None`` for
    EMPTY. ``owned`` marks handles the execution must close.
    """

    kind: StreamKind
    handle: Any = None
    owned: bool = False

    @classmethod
    def descriptor(cls, handle: IO[bytes], owned: bool = True) -> "Endpoint":
        return cls(StreamKind.DESCRIPTOR, handle, owned)

    @classmethod
    def reader(cls, reader: asyncio.StreamReader) -> "Endpoint":
        return cls(StreamKind.READER, reader)

    @classmethod
    def text(cls, data: bytes) -> "Endpoint":
        return cls(StreamKind.TEXT, data)

    @classmethod
    def empty(cls) -> "Endpoint":
        return cls(StreamKind.EMPTY)

    async def chunks(self, chunk_size: int) -> AsyncIterator[bytes]:
        """Yield the endpoint's bytes in emission order."""
        if self.kind is StreamKind.TEXT:
            if self.handle:
                yield self.handle
        elif self.kind is StreamKind.READER:
            while True:
                chunk = await self.handle.read(chunk_size)
                if not chunk:
                    break
                yield chunk
        elif self.kind is StreamKind.DESCRIPTOR:
            while True:
                chunk = await asyncio.to_thread(self.handle.read, chunk_size)
                if not chunk:
                    break
                yield chunk

    def close(self) -> None:
        if self.owned and self.kind is StreamKind.DESCRIPTOR:
            self.handle.close()


@dataclass(frozen=True)
class Ambient:
    """Environment and standard streams a pipeline runs against.

    ``None`` for a stream means the current process's real descriptor
    (0, 1 or 2). Injected streams must be binary files with a ``fileno()``.
    """

    env: Mapping[str, str]
    stdin: Optional[IO[bytes]] = None
    stdout: Optional[IO[bytes]] = None
    stderr: Optional[IO[bytes]] = None

    @classmethod
    def current(cls) -> "Ambient":
        """Snapshot of os.environ with the real standard streams."""
        return cls(env=dict(os.environ))

    def stdin_file(self) -> IO[bytes]:
        if self.stdin is not None:
            return self.stdin
        return os.fdopen(0, "rb", buffering=0, closefd=False)

    def stdout_file(self) -> IO[bytes]:
        if self.stdout is not None:
            return self.stdout
        return os.fdopen(1, "wb", closefd=False)


__all__ = [
    "Ambient",
    "Endpoint",
    "OutputPolicy",
    "StdinPolicy",
    "StreamKind",
    "StreamRequest",
]
