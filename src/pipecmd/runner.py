"""Terminal operations: run a built chain and consume the tail's output.

Each operation picks a stream-binding request, executes the chain and decides
what happens to the tail's stdout. A non-zero tail exit raises ``CmdError``;
errors from spawning the tail or from file I/O propagate unchanged.
"""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Optional

import aiofiles

from .config import get_settings
from .errors import CmdError
from .execution import Execution, execute
from .models import Output
from .nodes import Node, describe_pipeline
from .streams import Ambient, Endpoint, OutputPolicy, StdinPolicy, StreamRequest

logger = logging.getLogger(__name__)

RUN = StreamRequest(StdinPolicy.IGNORE, OutputPolicy.INHERIT, OutputPolicy.INHERIT)
RUN_SILENT = StreamRequest(StdinPolicy.IGNORE, OutputPolicy.IGNORE, OutputPolicy.IGNORE)
GET = StreamRequest(StdinPolicy.IGNORE, OutputPolicy.CALLER, OutputPolicy.IGNORE)
GET_ALL = StreamRequest(StdinPolicy.IGNORE, OutputPolicy.CALLER, OutputPolicy.CALLER)
TO_FILE = StreamRequest(StdinPolicy.IGNORE, OutputPolicy.CALLER, OutputPolicy.IGNORE)


async def _read_all(endpoint: Endpoint) -> bytes:
    chunk_size = get_settings().chunk_size
    return b"".join([chunk async for chunk in endpoint.chunks(chunk_size)])


def _decode(data: bytes) -> str:
    return data.decode("utf-8", errors=get_settings().decode_errors)


async def _check(execution: Execution, stderr: Optional[str] = None) -> None:
    """Raise CmdError when the tail process exited non-zero."""
    code = await execution.wait()
    if code:
        raise CmdError(execution.tail_command, code, stderr)


async def run(node: Node, *, ambient: Optional[Ambient] = None) -> None:
    """Run with stdout and stderr inherited from the ambient streams."""
    logger.debug("run: %s", describe_pipeline(node))
    async with execute(node, RUN, ambient) as execution:
        if execution.tail is None:
            # A source tail has no process to inherit stdout; copy its bytes.
            sink = execution.ambient.stdout_file()
            async for chunk in execution.output.chunks(get_settings().chunk_size):
                await asyncio.to_thread(sink.write, chunk)
            await asyncio.to_thread(sink.flush)
        await _check(execution)


async def run_silent(node: Node, *, ambient: Optional[Ambient] = None) -> None:
    """Run with all output discarded."""
    logger.debug("run_silent: %s", describe_pipeline(node))
    async with execute(node, RUN_SILENT, ambient) as execution:
        await _check(execution)


async def get(node: Node, *, ambient: Optional[Ambient] = None) -> str:
    """Return the tail's complete stdout decoded as UTF-8."""
    logger.debug("get: %s", describe_pipeline(node))
    async with execute(node, GET, ambient) as execution:
        data = await _read_all(execution.output)
        await _check(execution)
    return _decode(data)


async def get_all(node: Node, *, ambient: Optional[Ambient] = None) -> Output:
    """Return stdout and stderr decoded as UTF-8.

    stderr is captured from every process stage and concatenated head to tail,
    so this waits until every stage has closed its stderr.
    """
    logger.debug("get_all: %s", describe_pipeline(node))
    async with execute(node, GET_ALL, ambient) as execution:
        stdout = await _read_all(execution.output)
        stderr = _decode(await execution.collect_stderr())
        await _check(execution, stderr)
    return Output(stdout=_decode(stdout), stderr=stderr)


async def to_file(
    node: Node,
    path: str | os.PathLike[str],
    *,
    ambient: Optional[Ambient] = None,
) -> None:
    """Write the tail's stdout to ``path``, replacing its contents.

    The chain is resolved before the destination is opened, so a missing
    source file fails without touching ``path``.
    """
    logger.debug("to_file %s: %s", os.fspath(path), describe_pipeline(node))
    chunk_size = get_settings().chunk_size
    async with execute(node, TO_FILE, ambient) as execution:
        async with aiofiles.open(path, "wb") as destination:
            async for chunk in execution.output.chunks(chunk_size):
                await destination.write(chunk)
        await _check(execution)


__all__ = ["get", "get_all", "run", "run_silent", "to_file"]
