"""Pipeline execution engine.

Resolves a chain of nodes into running processes by walking from the tail to
the head, spawning upstream stages first and wiring each stage's stdout into
the next stage's stdin through OS pipes. Only the tail process is awaited;
upstream stages are left to finish on their own, as in a shell pipeline.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import shlex
from collections.abc import AsyncIterator
from typing import Any, Optional

from .nodes import Node, NodeKind, ProcessNode
from .process_utils import merge_env, spawn_with_validation
from .streams import (
    Ambient,
    Endpoint,
    OutputPolicy,
    StdinPolicy,
    StreamKind,
    StreamRequest,
)

logger = logging.getLogger(__name__)

PIPE = asyncio.subprocess.PIPE
DEVNULL = asyncio.subprocess.DEVNULL


class Execution:
    """Transient state of one terminal call.

    Owns every parent-side descriptor opened while resolving the chain and
    every background task feeding text or draining stderr. Nothing here is
    stored on the nodes, so one chain can be executed concurrently.
    """

    def __init__(self, ambient: Ambient) -> None:
        self.ambient = ambient
        self.output: Optional[Endpoint] = None
        self.tail: Optional[asyncio.subprocess.Process] = None
        self.tail_command: Optional[tuple[str, ...]] = None
        self._endpoints: list[Endpoint] = []
        self._upstreams: list[tuple[tuple[str, ...], asyncio.subprocess.Process]] = []
        self._feeders: list[tuple[asyncio.Task, asyncio.StreamWriter]] = []
        self._stderr_drains: list[asyncio.Task] = []

    def track(self, endpoint: Endpoint) -> Endpoint:
        self._endpoints.append(endpoint)
        return endpoint

    def release(self, endpoint: Endpoint) -> None:
        """Close the parent's copy of an endpoint once a child holds it."""
        endpoint.close()
        if endpoint in self._endpoints:
            self._endpoints.remove(endpoint)

    def add_upstream(
        self, command: tuple[str, ...], process: asyncio.subprocess.Process
    ) -> None:
        self._upstreams.append((command, process))

    def feed(self, writer: asyncio.StreamWriter, data: bytes) -> None:
        self._feeders.append((asyncio.create_task(_feed(writer, data)), writer))

    def drain_stderr(self, reader: asyncio.StreamReader) -> None:
        self._stderr_drains.append(asyncio.create_task(reader.read()))

    async def collect_stderr(self) -> bytes:
        """Captured stderr of every process stage, head to tail."""
        chunks = await asyncio.gather(*self._stderr_drains)
        return b"".join(chunks)

    async def wait(self) -> Optional[int]:
        """Exit code of the tail process, or None when the tail is a source."""
        if self.tail is None:
            return None
        code = await self.tail.wait()
        logger.debug("%s exited with code %s", shlex.join(self.tail_command), code)
        return code

    async def abort(self) -> None:
        """Kill every stage that is still running.

        Reached when resolution or the terminal call fails, including a tail
        that never started. Killed stages close their pipes, so pending
        stderr drains reach end of file instead of holding descriptors open.
        """
        stages = list(self._upstreams)
        if self.tail is not None:
            stages.append((self.tail_command, self.tail))
        for command, process in stages:
            if process.returncode is None:
                logger.debug("Killing %s", shlex.join(command))
                with contextlib.suppress(ProcessLookupError):
                    process.kill()
        await asyncio.gather(*(process.wait() for _, process in stages))
        if self._stderr_drains:
            await asyncio.gather(*self._stderr_drains, return_exceptions=True)

    async def close(self) -> None:
        for command, process in self._upstreams:
            # Upstream exit codes never fail the pipeline
            if process.returncode:
                logger.debug(
                    "Upstream %s exited with code %s",
                    shlex.join(command),
                    process.returncode,
                )
        self._upstreams.clear()
        for endpoint in self._endpoints:
            endpoint.close()
        self._endpoints.clear()
        # Feeders still pending after the tail settled belong to stages
        # nobody is reading from anymore.
        feeders = [task for task, _ in self._feeders]
        for task in feeders:
            if not task.done():
                task.cancel()
        for task in self._stderr_drains:
            if not task.done():
                task.cancel()
        results = await asyncio.gather(
            *feeders, *self._stderr_drains, return_exceptions=True
        )
        # A feeder cancelled before its first step never reaches its own
        # cleanup, and the child would block reading stdin forever.
        for _, writer in self._feeders:
            with contextlib.suppress(BrokenPipeError, ConnectionResetError):
                writer.close()
        self._feeders.clear()
        self._stderr_drains.clear()
        for result in results:
            if isinstance(result, Exception):
                logger.warning("Background stream task failed: %s", result)


async def _feed(writer: asyncio.StreamWriter, data: bytes) -> None:
    """Write literal text into a child's stdin and close it."""
    try:
        writer.write(data)
        await writer.drain()
    except (BrokenPipeError, ConnectionResetError):
        logger.debug("Reader closed stdin before all text was written")
    finally:
        writer.close()
        with contextlib.suppress(BrokenPipeError, ConnectionResetError):
            await writer.wait_closed()


async def resolve(node: Node, request: StreamRequest, execution: Execution) -> Endpoint:
    """Produce the output endpoint of ``node`` under ``request``.

    Sources are opened, processes are spawned (upstream first). Errors opening
    a file propagate; a process that fails to start is only fatal when it is
    the tail.
    """
    if node.kind is NodeKind.FILE:
        handle = await asyncio.to_thread(open, node.path, "rb")
        logger.debug("Opened %s for reading", node.path)
        return execution.track(Endpoint.descriptor(handle))
    if node.kind is NodeKind.TEXT:
        return Endpoint.text(node.text.encode("utf-8"))
    if node.kind is NodeKind.STDIN:
        return Endpoint.descriptor(execution.ambient.stdin_file(), owned=False)
    if node.kind is NodeKind.PROCESS:
        return await _spawn_stage(node, request, execution)
    raise TypeError(f"Unknown node kind: {node.kind!r}")


def _stdin_binding(
    upstream: Optional[Endpoint], request: StreamRequest, ambient: Ambient
) -> Any:
    if upstream is None:
        if request.stdin is StdinPolicy.INHERIT:
            return ambient.stdin
        if request.stdin is StdinPolicy.IGNORE:
            return DEVNULL
        raise ValueError("Head stage has no upstream to read stdin from")
    if upstream.kind is StreamKind.DESCRIPTOR:
        return upstream.handle
    if upstream.kind is StreamKind.TEXT:
        return PIPE
    if upstream.kind is StreamKind.EMPTY:
        return DEVNULL
    raise ValueError(f"Cannot bind a {upstream.kind.value} endpoint to stdin")


def _output_binding(policy: OutputPolicy, inherited: Any) -> Any:
    if policy is OutputPolicy.INHERIT:
        return inherited
    if policy is OutputPolicy.CALLER:
        return PIPE
    return DEVNULL


async def _spawn_stage(
    node: ProcessNode, request: StreamRequest, execution: Execution
) -> Endpoint:
    upstream = None
    if node.upstream is not None:
        upstream = await resolve(node.upstream, request.for_upstream(), execution)

    ambient = execution.ambient
    stdin = _stdin_binding(upstream, request, ambient)
    read_fd = write_fd = None
    if request.stdout is OutputPolicy.NEXT_STAGE:
        read_fd, write_fd = os.pipe()
        stdout = write_fd
    else:
        stdout = _output_binding(request.stdout, ambient.stdout)
    stderr = _output_binding(request.stderr, ambient.stderr)

    try:
        process = await spawn_with_validation(
            node.command,
            stdin=stdin,
            stdout=stdout,
            stderr=stderr,
            cwd=node.cwd,
            env=merge_env(ambient.env, node.env),
        )
    except OSError as exc:
        if read_fd is not None:
            os.close(read_fd)
        if request.stdout is not OutputPolicy.NEXT_STAGE:
            raise
        logger.warning("Upstream stage %s failed to start: %s", shlex.join(node.command), exc)
        return Endpoint.empty()
    finally:
        if write_fd is not None:
            os.close(write_fd)
        if upstream is not None:
            execution.release(upstream)

    logger.debug("Spawned %s (pid %s)", shlex.join(node.command), process.pid)
    if upstream is not None and upstream.kind is StreamKind.TEXT:
        execution.feed(process.stdin, upstream.handle)
    if request.stderr is OutputPolicy.CALLER:
        execution.drain_stderr(process.stderr)

    if request.stdout is OutputPolicy.NEXT_STAGE:
        execution.add_upstream(node.command, process)
        return execution.track(
            Endpoint.descriptor(os.fdopen(read_fd, "rb", buffering=0))
        )

    execution.tail = process
    execution.tail_command = node.command
    if request.stdout is OutputPolicy.CALLER:
        return Endpoint.reader(process.stdout)
    return Endpoint.empty()


@contextlib.asynccontextmanager
async def execute(
    node: Node, request: StreamRequest, ambient: Optional[Ambient] = None
) -> AsyncIterator[Execution]:
    """Resolve ``node`` under ``request`` and yield the live execution.

    Running stages are killed if resolution or the body raises; descriptors
    and background tasks are released on every exit path.

    Example:
        async with execute(node, request) as execution:
            async for chunk in execution.output.chunks(65536):
                ...
            code = await execution.wait()
    """
    execution = Execution(ambient if ambient is not None else Ambient.current())
    try:
        execution.output = await resolve(node, request, execution)
        yield execution
    except Exception:
        await execution.abort()
        raise
    finally:
        await execution.close()


__all__ = ["Execution", "execute", "resolve"]
