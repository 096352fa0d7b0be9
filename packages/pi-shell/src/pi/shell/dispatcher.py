"""Command dispatch: built-ins run in-process, everything else is spawned.

Every submission produces its effects in a fixed order: the input line is
recorded in the transcript, then in history, then the built-in or external
effects are applied, then a fresh prompt line is appended. Recoverable
failures become transcript lines and never escape :meth:`CommandDispatcher.submit`.
"""

from __future__ import annotations

import asyncio
import logging
import os
import shlex
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from pathlib import Path

from pi.shell.context import SessionContext
from pi.shell.executor import ExecResult, ProgramRunner, SpawnError, run_program
from pi.shell.history import HistoryStore
from pi.shell.transcript import LineBuffer, LineRole, TranscriptLine

logger = logging.getLogger(__name__)

SHELL_NAME = "pi-shell"
INTERRUPT_MARKER = "^C"

BUILTIN_HELP: dict[str, str] = {
    "cd": "cd [dir]       change the working directory (default: home, '-' for previous)",
    "clear": "clear          clear the screen",
    "exit": "exit [code]    leave the shell",
    "help": "help           show this list",
    "history": "history [-c|N] list (or clear) previously entered commands",
    "pwd": "pwd            print the working directory",
}

BUILTIN_COMMANDS: tuple[str, ...] = tuple(BUILTIN_HELP)


@dataclass
class ParsedCommand:
    """A submitted line split into a command name and its arguments."""

    name: str
    args: list[str] = field(default_factory=list)


def parse_command_line(line: str) -> ParsedCommand | None:
    """Split *line* into name and arguments, honouring POSIX quoting.

    Returns ``None`` for a blank line.

    Raises:
        ValueError: unbalanced quotes or a dangling escape.
    """
    if not line.strip():
        return None
    tokens = shlex.split(line.strip())
    if not tokens:
        return None
    return ParsedCommand(name=tokens[0], args=tokens[1:])


class CommandDispatcher:
    """Classifies submitted lines and applies their effects to the transcript."""

    def __init__(
        self,
        transcript: LineBuffer,
        history: HistoryStore,
        context: SessionContext,
        *,
        timeout: float | None = None,
        runner: ProgramRunner = run_program,
        on_exit: Callable[[int], None] | None = None,
    ) -> None:
        self.transcript = transcript
        self.history = history
        self.context = context
        self.timeout = timeout
        self._runner = runner
        self._on_exit = on_exit
        self._builtins: dict[str, Callable[[list[str]], Awaitable[None] | None]] = {
            "cd": self._cd,
            "clear": self._clear,
            "exit": self._exit,
            "help": self._help,
            "history": self._history,
            "pwd": self._pwd,
        }

    def is_builtin(self, name: str) -> bool:
        return name in self._builtins

    def emit_prompt(self) -> TranscriptLine:
        return self.transcript.append(self.context.prompt(), LineRole.PROMPT)

    async def submit(self, line: str, *, abort_event: asyncio.Event | None = None) -> None:
        """Run one submitted line through the full dispatch sequence."""
        if not line.strip():
            self.emit_prompt()
            return

        self.transcript.append(line, LineRole.INPUT)
        self.history.record(line)

        try:
            command = parse_command_line(line)
        except ValueError as e:
            self._diagnostic(f"{SHELL_NAME}: syntax error: {e}")
            self.emit_prompt()
            return

        if command is not None:
            handler = self._builtins.get(command.name)
            if handler is not None:
                logger.debug("Built-in %s %s", command.name, command.args)
                result = handler(command.args)
                if result is not None:
                    await result
            else:
                await self._run_external(command, abort_event)

        self.emit_prompt()

    # --- External programs ---

    async def _run_external(
        self, command: ParsedCommand, abort_event: asyncio.Event | None
    ) -> None:
        logger.debug("External %s %s in %s", command.name, command.args, self.context.current_directory)
        try:
            result = await self._runner(
                command.name,
                command.args,
                cwd=str(self.context.current_directory),
                timeout=self.timeout,
                abort_event=abort_event,
            )
        except SpawnError as e:
            logger.warning("Could not start %s: %s", command.name, e.reason)
            self._diagnostic(f"{e.program}: {e.reason}")
            return

        # Output is applied in one batch once the child has finished.
        self.transcript.extend(render_result(command.name, result, timeout=self.timeout))

    # --- Built-ins ---

    def _cd(self, args: list[str]) -> None:
        if len(args) > 1:
            self._diagnostic("cd: too many arguments")
            return

        raw = args[0] if args else "~"
        announce = False
        if raw == "-":
            previous = self.context.previous_directory
            if previous is None:
                self._diagnostic("cd: OLDPWD not set")
                return
            raw = str(previous)
            announce = True

        target = self._expand_home(raw)
        if not target.is_absolute():
            target = self.context.current_directory / target

        try:
            resolved = target.resolve(strict=True)
        except FileNotFoundError:
            self._diagnostic(f"cd: {raw}: No such file or directory")
            return
        except (OSError, RuntimeError) as e:
            self._diagnostic(f"cd: {raw}: {getattr(e, 'strerror', None) or e}")
            return

        if not resolved.is_dir():
            self._diagnostic(f"cd: {raw}: Not a directory")
            return
        if not os.access(resolved, os.X_OK):
            self._diagnostic(f"cd: {raw}: Permission denied")
            return

        self.context.change_directory(resolved)
        logger.info("Changed directory to %s", resolved)
        if announce:
            self.transcript.append(str(resolved))

    def _expand_home(self, raw: str) -> Path:
        if raw == "~":
            return self.context.home
        if raw.startswith("~/"):
            return self.context.home / raw[2:]
        return Path(raw)

    def _clear(self, args: list[str]) -> None:
        self.transcript.clear()

    def _exit(self, args: list[str]) -> None:
        code = 0
        if args:
            try:
                code = int(args[0])
            except ValueError:
                self._diagnostic(f"exit: {args[0]}: numeric argument required")
                return
        logger.debug("Exit requested with status %s", code)
        if self._on_exit is None:
            raise SystemExit(code)
        self._on_exit(code)

    def _help(self, args: list[str]) -> None:
        self.transcript.append("Built-in commands:")
        for text in BUILTIN_HELP.values():
            self.transcript.append(f"  {text}")
        self.transcript.append("Anything else runs as an external program.")

    def _history(self, args: list[str]) -> None:
        entries = self.history.entries()
        if args and args[0] == "-c":
            self.history.clear()
            return

        start = 0
        if args:
            try:
                count = int(args[0])
            except ValueError:
                self._diagnostic(f"history: {args[0]}: numeric argument required")
                return
            start = max(0, len(entries) - max(count, 0))

        for index in range(start, len(entries)):
            self.transcript.append(f"{index + 1:>5}  {entries[index]}")

    def _pwd(self, args: list[str]) -> None:
        self.transcript.append(str(self.context.current_directory))

    def _diagnostic(self, text: str) -> None:
        self.transcript.append(text, is_error=True)


def render_result(name: str, result: ExecResult, *, timeout: float | None = None) -> list[TranscriptLine]:
    """Turn a finished process into transcript lines.

    Standard output lines are kept as-is (blank ones included); standard
    error lines are tagged as errors and blank ones dropped. A notice follows
    when output was truncated, then a status line when the process failed,
    timed out, or was interrupted.
    """
    lines = [TranscriptLine(text) for text in split_output_lines(result.stdout)]
    lines.extend(
        TranscriptLine(text, is_error=True)
        for text in split_output_lines(result.stderr)
        if text.strip()
    )
    if result.truncated_at is not None:
        lines.append(
            TranscriptLine(f"[{name}: output truncated at {result.truncated_at} bytes]", is_error=True)
        )

    if result.aborted:
        lines.append(TranscriptLine(INTERRUPT_MARKER))
    elif result.timed_out:
        lines.append(TranscriptLine(f"{name}: timed out after {timeout:g}s", is_error=True))
    elif result.signal_number is not None:
        lines.append(TranscriptLine(f"{name}: terminated by signal {result.signal_number}"))
    elif result.code != 0:
        lines.append(TranscriptLine(f"{name}: exited with status {result.code}"))
    return lines


def split_output_lines(text: str) -> list[str]:
    """Split child output on ``\\n`` only, dropping a trailing ``\\r`` from each line.

    Other characters that :meth:`str.splitlines` treats as breaks (form feed,
    ``\\x85``, ``\\u2028`` and so on) stay inside the line.
    """
    if not text:
        return []
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return [line.removesuffix("\r") for line in lines]
