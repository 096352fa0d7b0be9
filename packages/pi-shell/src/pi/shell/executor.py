"""External program execution: spawn, capture, timeout and abort."""

from __future__ import annotations

import asyncio
import errno
import logging
import os
import signal
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol

logger = logging.getLogger(__name__)

MAX_OUTPUT = 10 * 1024 * 1024  # 10 MB per stream


@dataclass
class ExecResult:
    """Captured output and exit status of a finished child process."""

    stdout: str
    stderr: str
    code: int
    timed_out: bool = False
    aborted: bool = False
    # Per-stream byte limit, set when either stream was cut short
    truncated_at: int | None = None

    @property
    def signal_number(self) -> int | None:
        """Signal that killed the process, if any."""
        return -self.code if self.code < 0 else None


class SpawnError(Exception):
    """The program could not be started."""

    def __init__(self, program: str, reason: str) -> None:
        super().__init__(f"{program}: {reason}")
        self.program = program
        self.reason = reason

    @classmethod
    def from_os_error(cls, program: str, error: OSError) -> SpawnError:
        if isinstance(error, FileNotFoundError):
            return cls(program, "command not found")
        if isinstance(error, PermissionError) or error.errno == errno.EACCES:
            return cls(program, "permission denied")
        return cls(program, error.strerror or str(error))


class ProgramRunner(Protocol):
    async def __call__(
        self,
        program: str,
        args: list[str],
        *,
        cwd: str,
        timeout: float | None = None,
        abort_event: asyncio.Event | None = None,
    ) -> ExecResult: ...


async def run_program(
    program: str,
    args: list[str],
    *,
    cwd: str,
    timeout: float | None = None,
    abort_event: asyncio.Event | None = None,
    env: Mapping[str, str] | None = None,
    max_output: int = MAX_OUTPUT,
) -> ExecResult:
    """Run *program* with *args* in *cwd* and capture both streams.

    Output is decoded as UTF-8 with invalid bytes replaced. Each stream keeps
    at most *max_output* bytes; the rest is read and discarded. On timeout or
    when *abort_event* is set, the whole process group is killed and the
    output captured so far is returned with ``timed_out``/``aborted`` set.

    Raises:
        SpawnError: the program could not be started.
    """
    try:
        proc = await asyncio.create_subprocess_exec(
            program,
            *args,
            cwd=cwd,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            env={**(os.environ if env is None else env), "TERM": "dumb"},
            start_new_session=True,
        )
    except OSError as e:
        raise SpawnError.from_os_error(program, e) from e

    logger.debug("Started %s (pid %s) in %s", program, proc.pid, cwd)

    stdout_task = asyncio.create_task(_read_stream(proc.stdout, max_output))
    stderr_task = asyncio.create_task(_read_stream(proc.stderr, max_output))
    wait_task = asyncio.create_task(proc.wait())

    abort_task: asyncio.Task[Any] | None = None
    if abort_event is not None:
        abort_task = asyncio.create_task(abort_event.wait())

    timed_out = False
    aborted = False
    try:
        waiting: set[asyncio.Task[Any]] = {wait_task}
        if abort_task is not None:
            waiting.add(abort_task)

        done, _pending = await asyncio.wait(
            waiting, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )

        # The process may finish in the same tick as the abort request.
        if wait_task not in done:
            timed_out = not done
            aborted = abort_task is not None and abort_task in done
            if timed_out:
                logger.warning("%s timed out after %ss, killing pid %s", program, timeout, proc.pid)
            else:
                logger.debug("Killing %s (pid %s)", program, proc.pid)
            _kill_process_tree(proc.pid)
            await proc.wait()

        stdout, stdout_cut = await stdout_task
        stderr, stderr_cut = await stderr_task
    finally:
        if abort_task is not None and not abort_task.done():
            abort_task.cancel()
        if not wait_task.done():
            wait_task.cancel()

    code = proc.returncode if proc.returncode is not None else 0
    logger.debug("%s exited with %s", program, code)
    return ExecResult(
        stdout=stdout,
        stderr=stderr,
        code=code,
        timed_out=timed_out,
        aborted=aborted,
        truncated_at=max_output if stdout_cut or stderr_cut else None,
    )


async def _read_stream(stream: asyncio.StreamReader | None, limit: int) -> tuple[str, bool]:
    """Read *stream* to EOF, keeping the first *limit* bytes. Returns (text, truncated)."""
    if stream is None:
        return "", False
    chunks: list[bytes] = []
    kept = 0
    truncated = False
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            break
        # Keep draining past the limit so the child never blocks on a full pipe
        room = limit - kept
        if len(chunk) > room:
            truncated = True
            chunk = chunk[: max(room, 0)]
        if chunk:
            chunks.append(chunk)
            kept += len(chunk)
    return b"".join(chunks).decode("utf-8", errors="replace"), truncated


def _kill_process_tree(pid: int | None) -> None:
    if pid is None:
        return
    try:
        os.killpg(pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            os.kill(pid, signal.SIGKILL)
        except (ProcessLookupError, PermissionError):
            pass
