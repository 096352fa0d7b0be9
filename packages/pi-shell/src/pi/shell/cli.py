"""CLI entry point for pi-shell. Uses Click for argument parsing.

The front end here is line-mode: the terminal does the echoing and line
editing, each entered line is fed to the engine as text plus ``enter``, and
new transcript lines are printed as they appear.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
import sys

import click

from pi.shell.engine import EngineState, SessionEngine, SessionSnapshot
from pi.shell.events import CharEvent, KeyEvent
from pi.shell.settings import load_settings
from pi.shell.transcript import LineRole, TranscriptLine

ENTER = KeyEvent("enter")
INTERRUPT = KeyEvent("c", frozenset({"ctrl"}))
TERMINATE = KeyEvent("d", frozenset({"ctrl"}))


class LineRenderer:
    """Prints transcript lines that appeared since the previous render."""

    def __init__(self, *, show_prompts: bool = True) -> None:
        self._printed = 0
        self._clear_count = 0
        self._show_prompts = show_prompts

    def render(self, snapshot: SessionSnapshot) -> None:
        if snapshot.clear_count != self._clear_count:
            self._clear_count = snapshot.clear_count
            click.clear()
            fresh = snapshot.lines
        else:
            count = min(snapshot.sequence - self._printed, len(snapshot.lines))
            fresh = snapshot.lines[len(snapshot.lines) - count :] if count > 0 else ()
        self._printed = snapshot.sequence

        for index, line in enumerate(fresh):
            self._print_line(line, is_last=index == len(fresh) - 1)

    def _print_line(self, line: TranscriptLine, *, is_last: bool) -> None:
        # The terminal already echoed what was typed
        if line.role is LineRole.INPUT:
            return
        if line.role is LineRole.PROMPT:
            if self._show_prompts:
                click.echo(click.style(line.text, fg="green", bold=True), nl=not is_last)
            return
        if line.is_error:
            click.echo(click.style(line.text, fg="red"))
        else:
            click.echo(line.text)


async def _submit(engine: SessionEngine, line: str) -> None:
    """Feed one line and wait for it to finish; Ctrl+C meanwhile interrupts the command."""
    loop = asyncio.get_running_loop()
    pending: set[asyncio.Task[None]] = set()

    def _on_sigint() -> None:
        task = asyncio.ensure_future(engine.handle_event(INTERRUPT))
        pending.add(task)
        task.add_done_callback(pending.discard)

    installed = False
    with contextlib.suppress(NotImplementedError, RuntimeError):
        loop.add_signal_handler(signal.SIGINT, _on_sigint)
        installed = True
    try:
        await engine.handle_event(CharEvent(line))
        await engine.handle_event(ENTER)
    finally:
        if installed:
            loop.remove_signal_handler(signal.SIGINT)
        if pending:
            await asyncio.gather(*pending)


async def run_session(engine: SessionEngine, renderer: LineRenderer) -> int:
    """Interactive loop; returns the exit status the session asked for."""
    engine.on_exit = lambda code: None
    renderer.render(engine.snapshot())

    while engine.state is not EngineState.EXITED:
        try:
            line = input()
        except EOFError:
            click.echo()
            await engine.handle_event(TERMINATE)
            break
        except KeyboardInterrupt:
            click.echo()
            await engine.handle_event(INTERRUPT)
            renderer.render(engine.snapshot())
            continue

        await _submit(engine, line)
        renderer.render(engine.snapshot())

    return engine.exit_code or 0


async def run_once(engine: SessionEngine, renderer: LineRenderer, line: str) -> int:
    """Run a single line and return the exit status it produced."""
    engine.on_exit = lambda code: None
    renderer.render(engine.snapshot())
    await _submit(engine, line)
    renderer.render(engine.snapshot())
    return engine.exit_code or 0


@click.command()
@click.option(
    "--settings",
    "settings_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Settings file (default: ~/.pi/shell.json)",
)
@click.option("--capacity", type=click.IntRange(min=1), default=None, help="Transcript capacity in lines")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Kill external commands after this many seconds",
)
@click.option("--scan-path/--no-scan-path", default=None, help="Complete executables found on PATH")
@click.option("-c", "command", default=None, help="Run one command and exit")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"]),
    default="warning",
    help="Log level (logs go to stderr)",
)
def main(settings_path, capacity, timeout, scan_path, command, log_level):
    """Interactive command shell."""
    logging.basicConfig(
        level=getattr(logging, log_level.upper()),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )

    settings = load_settings(
        settings_path,
        {
            "transcriptCapacity": capacity,
            "commandTimeout": timeout,
            "scanPath": scan_path,
        },
    )
    engine = SessionEngine(settings)

    if command is not None:
        code = asyncio.run(run_once(engine, LineRenderer(show_prompts=False), command))
    else:
        code = asyncio.run(run_session(engine, LineRenderer()))
    sys.exit(code)


if __name__ == "__main__":
    main()
