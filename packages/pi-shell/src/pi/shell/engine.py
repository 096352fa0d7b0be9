"""Session engine: routes input events and exposes read-only snapshots.

The engine owns all session state. A front end feeds it events through
:meth:`SessionEngine.handle_event` and renders :meth:`SessionEngine.snapshot`;
it never mutates engine state directly.

While an external command runs the engine is in ``RUNNING`` state and only
accepts interrupt and terminate events; interrupt cancels the child.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from pi.shell.autocomplete import AutocompleteEngine, CommandSpec, CommandVocabulary
from pi.shell.context import SessionContext
from pi.shell.dispatcher import INTERRUPT_MARKER, CommandDispatcher
from pi.shell.editor import InputEditor
from pi.shell.events import CharEvent, InputEvent, KeyEvent, TickEvent
from pi.shell.executor import ProgramRunner, run_program
from pi.shell.history import HistoryStore
from pi.shell.keybindings import ShellAction, ShellKeybindingsManager
from pi.shell.settings import ShellSettings
from pi.shell.transcript import LineBuffer, TranscriptLine
from pi.shell.utils import display_width

logger = logging.getLogger(__name__)


class EngineState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    EXITED = "exited"


@dataclass(frozen=True)
class SessionSnapshot:
    """Everything a renderer needs for one frame."""

    lines: tuple[TranscriptLine, ...]
    input: str
    cursor: int
    cursor_column: int
    cursor_visible: bool
    suggestions: tuple[str, ...]
    selected: int | None
    prompt: str
    running: bool
    sequence: int
    clear_count: int


class SessionEngine:
    """Orchestrates editor, history, autocomplete and dispatch for one session."""

    def __init__(
        self,
        settings: ShellSettings | None = None,
        *,
        context: SessionContext | None = None,
        vocabulary: CommandVocabulary | None = None,
        runner: ProgramRunner = run_program,
    ) -> None:
        self.settings = settings or ShellSettings()
        self.context = context or SessionContext.from_environment()

        self.on_exit: Callable[[int], None] | None = None
        self.exit_code: int | None = None

        self._transcript = LineBuffer(self.settings.capacity)
        self._history = HistoryStore(self.settings.history_size)
        self._editor = InputEditor()
        self._keybindings = ShellKeybindingsManager(self.settings.keybindings)  # type: ignore[arg-type]
        self._autocomplete = AutocompleteEngine(
            vocabulary=vocabulary or self._build_vocabulary(),
            max_suggestions=self.settings.max_suggestions,
        )
        self._dispatcher = CommandDispatcher(
            self._transcript,
            self._history,
            self.context,
            timeout=self.settings.command_timeout,
            runner=runner,
            on_exit=self._request_exit,
        )

        self._state = EngineState.IDLE
        self._abort_event: asyncio.Event | None = None
        self._blink_elapsed = 0.0
        self._cursor_visible = True

        self._dispatcher.emit_prompt()

    def _build_vocabulary(self) -> CommandVocabulary:
        vocab = CommandVocabulary.default()
        for name, flags in self.settings.commands.items():
            vocab.add(CommandSpec(name, tuple(flags), tuple(self.settings.subcommands.get(name, ()))))
        for name, subs in self.settings.subcommands.items():
            vocab.add(CommandSpec(name, (), tuple(subs)))
        if self.settings.scan_path:
            added = vocab.add_path_commands()
            logger.debug("Added %d commands from PATH", added)
        return vocab

    # --- Read-only views ---

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def transcript(self) -> LineBuffer:
        return self._transcript

    @property
    def history(self) -> HistoryStore:
        return self._history

    @property
    def autocomplete(self) -> AutocompleteEngine:
        return self._autocomplete

    def snapshot(self) -> SessionSnapshot:
        text = self._editor.text
        cursor = self._editor.cursor
        return SessionSnapshot(
            lines=self._transcript.lines(),
            input=text,
            cursor=cursor,
            cursor_column=display_width(text[:cursor]),
            cursor_visible=self._cursor_visible,
            suggestions=self._autocomplete.suggestions,
            selected=self._autocomplete.selected,
            prompt=self.context.prompt(),
            running=self._state is EngineState.RUNNING,
            sequence=self._transcript.sequence,
            clear_count=self._transcript.clear_count,
        )

    # --- Event intake ---

    async def handle_event(self, event: InputEvent) -> None:
        """Process one event to completion."""
        if self._state is EngineState.EXITED:
            return

        if isinstance(event, TickEvent):
            self._tick(event.elapsed)
            return

        self._cursor_visible = True
        self._blink_elapsed = 0.0

        if isinstance(event, CharEvent):
            if self._state is EngineState.RUNNING:
                return
            self._editor.insert_text(event.text)
            self._refresh_suggestions()
            return

        if isinstance(event, KeyEvent):
            action = self._keybindings.action_for(event.id)
            if action is None:
                logger.debug("Unbound key %s", event.id)
                return
            await self._handle_action(action)

    async def _handle_action(self, action: ShellAction) -> None:
        if self._state is EngineState.RUNNING:
            if action == "interrupt" and self._abort_event is not None:
                logger.debug("Interrupting running command")
                self._abort_event.set()
            elif action == "terminate":
                self._request_exit(0)
            return

        editor = self._editor

        if action == "submit":
            selection = self._autocomplete.selected_text
            if selection is not None:
                editor.set_text(self._autocomplete.apply(selection, editor.text))
                self._refresh_suggestions()
                return
            await self.submit()
            return

        if action == "historyPrevious":
            self._recall(self._history.recall_previous())
            return
        if action == "historyNext":
            self._recall(self._history.recall_next())
            return

        if action == "autocompleteCycle":
            self._autocomplete.cycle_selection()
            return
        if action == "autocompleteDismiss":
            self._autocomplete.reset()
            return

        if action == "interrupt":
            self.interrupt()
            return
        if action == "clearScreen":
            self._transcript.clear()
            self._dispatcher.emit_prompt()
            return
        if action == "terminate":
            if editor.text:
                editor.delete_at_cursor()
                self._refresh_suggestions()
            else:
                self._request_exit(0)
            return

        edits: dict[str, Callable[[], None]] = {
            "deleteCharBackward": editor.delete_before_cursor,
            "deleteCharForward": editor.delete_at_cursor,
            "deleteWordBackward": editor.delete_word_before_cursor,
            "deleteToLineStart": editor.delete_to_start,
            "deleteToLineEnd": editor.delete_to_end,
            "yank": editor.yank,
        }
        if action in edits:
            edits[action]()
            self._refresh_suggestions()
            return

        moves: dict[str, Callable[[], None]] = {
            "cursorLeft": lambda: editor.move_cursor(-1),
            "cursorRight": lambda: editor.move_cursor(1),
            "cursorLineStart": lambda: editor.move_cursor("start"),
            "cursorLineEnd": lambda: editor.move_cursor("end"),
            "cursorWordLeft": editor.move_word_left,
            "cursorWordRight": editor.move_word_right,
        }
        if action in moves:
            moves[action]()

    # --- Operations ---

    async def submit(self) -> None:
        """Submit the current input line and run it to completion."""
        line = self._editor.take()
        self._autocomplete.reset()

        self._abort_event = asyncio.Event()
        self._state = EngineState.RUNNING
        try:
            await self._dispatcher.submit(line, abort_event=self._abort_event)
        finally:
            self._abort_event = None
            if self._state is EngineState.RUNNING:
                self._state = EngineState.IDLE

    def interrupt(self) -> None:
        """Discard the current line, print the interrupt marker and a new prompt."""
        self._editor.take()
        self._autocomplete.reset()
        self._transcript.append(INTERRUPT_MARKER)
        self._dispatcher.emit_prompt()

    def _recall(self, entry: str | None) -> None:
        if entry is None:
            return
        self._editor.set_text(entry)
        self._autocomplete.reset()

    def _refresh_suggestions(self) -> None:
        self._autocomplete.update(self._editor.text)

    def _tick(self, elapsed: float) -> None:
        interval = self.settings.blink_interval
        if interval <= 0:
            return
        self._blink_elapsed += elapsed
        while self._blink_elapsed >= interval:
            self._blink_elapsed -= interval
            self._cursor_visible = not self._cursor_visible

    def _request_exit(self, code: int) -> None:
        logger.debug("Session exiting with status %s", code)
        self._state = EngineState.EXITED
        self.exit_code = code
        if self._abort_event is not None:
            self._abort_event.set()
        if self.on_exit is None:
            raise SystemExit(code)
        self.on_exit(code)
