"""Command, subcommand and flag completion for the shell prompt.

Suggestions are prefix matches against an ordered vocabulary: command names
in command position, the command's flags once the token being typed starts
with the flag marker, and the command's subcommands in second position.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from pi.shell.utils import is_whitespace_char, split_words

logger = logging.getLogger(__name__)

DEFAULT_MAX_SUGGESTIONS = 5
FLAG_MARKER = "-"


@dataclass(frozen=True)
class CommandSpec:
    """A known command with its flag and subcommand vocabularies."""

    name: str
    flags: tuple[str, ...] = ()
    subcommands: tuple[str, ...] = ()


# Built-ins first, then common tools. Order is suggestion order.
DEFAULT_COMMANDS: tuple[CommandSpec, ...] = (
    CommandSpec("cd"),
    CommandSpec("clear"),
    CommandSpec("exit"),
    CommandSpec("help"),
    CommandSpec("history", ("-c",)),
    CommandSpec("pwd"),
    CommandSpec("cat", ("-n", "-b", "-s", "-A")),
    CommandSpec("cp", ("-r", "-i", "-f", "-v", "-p")),
    CommandSpec("date", ("-u", "-R", "-I")),
    CommandSpec("df", ("-h", "-T", "-i")),
    CommandSpec("du", ("-h", "-s", "-a", "-c")),
    CommandSpec("echo", ("-n", "-e")),
    CommandSpec("env", ("-i", "-u")),
    CommandSpec("find", ("-name", "-type", "-maxdepth", "-mtime", "-size", "-exec")),
    CommandSpec(
        "git",
        ("--version", "--help", "-C"),
        ("add", "branch", "checkout", "clone", "commit", "diff", "fetch", "init",
         "log", "merge", "pull", "push", "rebase", "reset", "restore", "stash",
         "status", "switch", "tag"),
    ),
    CommandSpec("grep", ("-i", "-r", "-n", "-v", "-l", "-c", "-E", "-w")),
    CommandSpec("head", ("-n", "-c")),
    CommandSpec("ls", ("-l", "-a", "-la", "-lh", "-R", "-t", "-S", "-1", "--color=")),
    CommandSpec("mkdir", ("-p", "-v", "-m")),
    CommandSpec("mv", ("-i", "-f", "-n", "-v")),
    CommandSpec("pip", ("--version", "--help"), ("download", "freeze", "install", "list", "show", "uninstall")),
    CommandSpec("ps", ("-e", "-f", "-u", "-A")),
    CommandSpec("python3", ("-c", "-m", "-V", "-u")),
    CommandSpec("rm", ("-r", "-f", "-rf", "-i", "-v")),
    CommandSpec("rmdir", ("-p", "-v")),
    CommandSpec("sort", ("-n", "-r", "-u", "-k", "-t")),
    CommandSpec("tail", ("-n", "-c", "-f")),
    CommandSpec("touch", ("-a", "-m", "-c")),
    CommandSpec("uname", ("-a", "-s", "-r", "-m")),
    CommandSpec("wc", ("-l", "-w", "-c", "-m")),
    CommandSpec("which", ("-a",)),
    CommandSpec("whoami"),
)


class CommandVocabulary:
    """Ordered set of known commands, keyed by name."""

    def __init__(self, commands: Iterable[CommandSpec] = ()) -> None:
        self._commands: dict[str, CommandSpec] = {}
        for spec in commands:
            self.add(spec)

    @classmethod
    def default(cls) -> CommandVocabulary:
        return cls(DEFAULT_COMMANDS)

    @classmethod
    def from_mapping(
        cls,
        flags: Mapping[str, Iterable[str]],
        subcommands: Mapping[str, Iterable[str]] | None = None,
    ) -> CommandVocabulary:
        """Build a vocabulary from ``{name: flags}`` (and optional subcommands)."""
        subs = subcommands or {}
        vocab = cls()
        for name, command_flags in flags.items():
            vocab.add(CommandSpec(name, tuple(command_flags), tuple(subs.get(name, ()))))
        for name, command_subs in subs.items():
            if name not in vocab:
                vocab.add(CommandSpec(name, (), tuple(command_subs)))
        return vocab

    def add(self, spec: CommandSpec) -> None:
        """Add a command, merging flags/subcommands into an existing entry.

        A new name goes to the end; an existing one keeps its position.
        """
        existing = self._commands.get(spec.name)
        if existing is None:
            self._commands[spec.name] = spec
            return
        self._commands[spec.name] = CommandSpec(
            spec.name,
            _merge_ordered(existing.flags, spec.flags),
            _merge_ordered(existing.subcommands, spec.subcommands),
        )

    def add_path_commands(self, path: str | None = None) -> int:
        """Append every executable found on *path* (default ``$PATH``).

        Returns the number of names added.
        """
        search = path if path is not None else os.environ.get("PATH", "")
        found: set[str] = set()
        for directory in search.split(os.pathsep):
            if not directory:
                continue
            try:
                with os.scandir(directory) as entries:
                    for entry in entries:
                        try:
                            if entry.is_file() and os.access(entry.path, os.X_OK):
                                found.add(entry.name)
                        except OSError:
                            continue
            except OSError as e:
                logger.debug("Skipping PATH entry %s: %s", directory, e)
        added = 0
        for name in sorted(found):
            if name not in self._commands:
                self._commands[name] = CommandSpec(name)
                added += 1
        return added

    def names(self) -> list[str]:
        return list(self._commands)

    def get(self, name: str) -> CommandSpec | None:
        return self._commands.get(name)

    def flags_for(self, name: str) -> tuple[str, ...]:
        spec = self._commands.get(name)
        return spec.flags if spec else ()

    def subcommands_for(self, name: str) -> tuple[str, ...]:
        spec = self._commands.get(name)
        return spec.subcommands if spec else ()

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def __len__(self) -> int:
        return len(self._commands)


def _merge_ordered(first: tuple[str, ...], second: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys((*first, *second)))


@dataclass(frozen=True)
class ActiveToken:
    """The whitespace-delimited word currently being typed."""

    start: int
    text: str
    index: int
    first: str


def find_active_token(text: str) -> ActiveToken:
    """Locate the final token of *text*.

    When *text* is empty or ends in whitespace the active token is empty and
    starts at the end of the input.
    """
    tokens = split_words(text)
    if not text or is_whitespace_char(text[-1]):
        return ActiveToken(
            start=len(text),
            text="",
            index=len(tokens),
            first=tokens[0] if tokens else "",
        )

    start = len(text)
    while start > 0 and not is_whitespace_char(text[start - 1]):
        start -= 1
    return ActiveToken(start=start, text=text[start:], index=len(tokens) - 1, first=tokens[0])


def prefix_matches(candidates: Iterable[str], prefix: str, limit: int) -> list[str]:
    """Case-sensitive prefix matches in candidate order, excluding *prefix* itself."""
    matches: list[str] = []
    for candidate in candidates:
        if candidate != prefix and candidate.startswith(prefix):
            matches.append(candidate)
            if len(matches) >= limit:
                break
    return matches


@dataclass
class AutocompleteEngine:
    """Suggestion list derived from the current input, plus a cyclic selection.

    State is transient: :meth:`update` recomputes it from scratch and clears
    the selection.
    """

    vocabulary: CommandVocabulary = field(default_factory=CommandVocabulary.default)
    max_suggestions: int = DEFAULT_MAX_SUGGESTIONS
    flag_marker: str = FLAG_MARKER

    def __post_init__(self) -> None:
        if self.max_suggestions < 1:
            raise ValueError(f"max_suggestions must be at least 1, got {self.max_suggestions}")
        self._suggestions: list[str] = []
        self._selected: int | None = None
        self._source = ""

    @property
    def suggestions(self) -> tuple[str, ...]:
        return tuple(self._suggestions)

    @property
    def selected(self) -> int | None:
        return self._selected

    @property
    def selected_text(self) -> str | None:
        if self._selected is None:
            return None
        return self._suggestions[self._selected]

    @property
    def visible(self) -> bool:
        return bool(self._suggestions)

    def suggest(self, text: str) -> list[str]:
        """Compute suggestions for *text* without touching engine state."""
        if not text.strip():
            return []
        token = find_active_token(text)
        if not token.text:
            return []

        if token.index == 0:
            return prefix_matches(self.vocabulary.names(), token.text, self.max_suggestions)
        if token.text.startswith(self.flag_marker):
            return prefix_matches(
                self.vocabulary.flags_for(token.first), token.text, self.max_suggestions
            )
        if token.index == 1:
            return prefix_matches(
                self.vocabulary.subcommands_for(token.first), token.text, self.max_suggestions
            )
        return []

    def update(self, text: str) -> tuple[str, ...]:
        """Recompute suggestions for *text*; the selection is cleared."""
        self._source = text
        self._suggestions = self.suggest(text)
        self._selected = None
        return self.suggestions

    def cycle_selection(self) -> str | None:
        """Advance the selection, wrapping to the first suggestion after the last."""
        if not self._suggestions:
            self._selected = None
            return None
        if self._selected is None:
            self._selected = 0
        else:
            self._selected = (self._selected + 1) % len(self._suggestions)
        return self._suggestions[self._selected]

    def apply(self, selection: str, text: str | None = None) -> str:
        """Replace the final token of *text* (default: the last updated input) with *selection*.

        Preceding tokens are kept verbatim. A trailing space is added unless
        the selection ends with ``=``.
        """
        source = self._source if text is None else text
        token = find_active_token(source)
        completed = source[: token.start] + selection
        if not selection.endswith("="):
            completed += " "
        return completed

    def reset(self) -> None:
        """Hide suggestions and clear the selection."""
        self._suggestions = []
        self._selected = None
        self._source = ""
