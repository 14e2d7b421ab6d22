from __future__ import annotations

import asyncio
import logging
import time
from typing import Mapping, Sequence

from sitekeeper.domain.entities import ChildTaskResult
from sitekeeper.domain.interfaces import IChildTaskRunner

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECS = 120.0
DEFAULT_MAX_OUTPUT   = 12 * 1024 * 1024
READ_CHUNK           = 64 * 1024


class ChildTaskError(Exception):
    """Base class for a child process that could not run to completion."""
    pass


class ChildTaskTimeout(ChildTaskError):
    pass


class ChildOutputLimitExceeded(ChildTaskError):
    pass


def _kill(proc: asyncio.subprocess.Process) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass


class SubprocessRunner(IChildTaskRunner):
    """
    Runs one command as a child process with a bounded lifetime and a
    bounded amount of captured output per stream.

    Whatever happens to the caller (timeout, output overflow, cancellation),
    the child is killed and reaped before run() returns or raises.
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT_SECS,
        max_output: int = DEFAULT_MAX_OUTPUT,
        env: Mapping[str, str] | None = None,
        cwd: str | None = None,
    ) -> None:
        self._timeout    = timeout
        self._max_output = max_output
        self._env        = dict(env) if env is not None else None
        self._cwd        = cwd

    async def run(self, args: Sequence[str]) -> ChildTaskResult:
        started  = time.monotonic()
        stdout   = bytearray()
        stderr   = bytearray()
        overflow: list[str] = []

        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env=self._env,
            cwd=self._cwd,
        )
        log.debug("Spawned pid %d: %s", proc.pid, args[0])

        async def drain(stream: asyncio.StreamReader, sink: bytearray, label: str) -> None:
            # keep reading to EOF even after overflow so the pipes never stall
            while True:
                chunk = await stream.read(READ_CHUNK)
                if not chunk:
                    return
                if overflow:
                    continue
                if len(sink) + len(chunk) > self._max_output:
                    overflow.append(label)
                    _kill(proc)
                    continue
                sink.extend(chunk)

        async def communicate() -> int:
            await asyncio.gather(
                drain(proc.stdout, stdout, "stdout"),
                drain(proc.stderr, stderr, "stderr"),
            )
            return await proc.wait()

        try:
            returncode = await asyncio.wait_for(communicate(), self._timeout)
        except asyncio.TimeoutError as exc:
            raise ChildTaskTimeout(f"timed out after {self._timeout:g}s") from exc
        finally:
            if proc.returncode is None:
                log.debug("Killing pid %d", proc.pid)
                _kill(proc)
                await proc.communicate()

        if overflow:
            raise ChildOutputLimitExceeded(f"{overflow[0]} exceeded {self._max_output} bytes")

        return ChildTaskResult(
            returncode   = returncode,
            stdout       = stdout.decode("utf-8", errors="replace"),
            stderr       = stderr.decode("utf-8", errors="replace"),
            elapsed_secs = time.monotonic() - started,
        )
