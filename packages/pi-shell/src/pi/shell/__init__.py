"""pi-shell: interactive command shell session engine."""

# Autocomplete
from pi.shell.autocomplete import (
    ActiveToken,
    AutocompleteEngine,
    CommandSpec,
    CommandVocabulary,
    find_active_token,
)

# Session identity and directories
from pi.shell.context import SessionContext

# Dispatch
from pi.shell.dispatcher import (
    BUILTIN_COMMANDS,
    INTERRUPT_MARKER,
    CommandDispatcher,
    ParsedCommand,
    parse_command_line,
)

# Line editing
from pi.shell.editor import InputEditor, KillRing

# Engine
from pi.shell.engine import EngineState, SessionEngine, SessionSnapshot

# Events
from pi.shell.events import CharEvent, InputEvent, KeyEvent, TickEvent

# External execution
from pi.shell.executor import ExecResult, SpawnError, run_program

# History
from pi.shell.history import HistoryStore

# Keybindings
from pi.shell.keybindings import (
    DEFAULT_SHELL_KEYBINDINGS,
    ShellAction,
    ShellKeybindingsManager,
    key_id,
)

# Settings
from pi.shell.settings import ShellSettings, load_settings

# Transcript
from pi.shell.transcript import LineBuffer, LineRole, TranscriptLine

__all__ = [
    # Autocomplete
    "ActiveToken",
    "AutocompleteEngine",
    "CommandSpec",
    "CommandVocabulary",
    "find_active_token",
    # Context
    "SessionContext",
    # Dispatch
    "BUILTIN_COMMANDS",
    "INTERRUPT_MARKER",
    "CommandDispatcher",
    "ParsedCommand",
    "parse_command_line",
    # Editing
    "InputEditor",
    "KillRing",
    # Engine
    "EngineState",
    "SessionEngine",
    "SessionSnapshot",
    # Events
    "CharEvent",
    "InputEvent",
    "KeyEvent",
    "TickEvent",
    # Execution
    "ExecResult",
    "SpawnError",
    "run_program",
    # History
    "HistoryStore",
    # Keybindings
    "DEFAULT_SHELL_KEYBINDINGS",
    "ShellAction",
    "ShellKeybindingsManager",
    "key_id",
    # Settings
    "ShellSettings",
    "load_settings",
    # Transcript
    "LineBuffer",
    "LineRole",
    "TranscriptLine",
]
