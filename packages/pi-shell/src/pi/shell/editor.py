"""Single-line input editor with readline-style editing.

Cursor motion and deletion work on grapheme clusters, so a multi-codepoint
glyph is never split. The cursor is a code point offset into the buffer and
always stays within ``[0, len(text)]``.
"""

from __future__ import annotations

from collections import deque
from typing import Literal

from pi.shell.utils import (
    first_grapheme_length,
    graphemes,
    is_punctuation_char,
    is_whitespace_char,
    last_grapheme_length,
    strip_control_chars,
)

KILL_RING_SIZE = 32

CursorTarget = Literal["start", "end"]


class KillRing:
    """Bounded ring of killed text for yank.

    Consecutive kills accumulate into the newest entry, prepended for
    backward kills and appended for forward ones.
    """

    def __init__(self, size: int = KILL_RING_SIZE) -> None:
        self._entries: deque[str] = deque(maxlen=size)

    def push(self, text: str, *, backward: bool, accumulate: bool = False) -> None:
        if not text:
            return
        if accumulate and self._entries:
            newest = self._entries.pop()
            text = text + newest if backward else newest + text
        self._entries.append(text)

    def peek(self) -> str | None:
        return self._entries[-1] if self._entries else None

    def __len__(self) -> int:
        return len(self._entries)


class InputEditor:
    """Mutable text buffer with a cursor.

    All operations are no-ops at the buffer edges rather than errors.
    """

    def __init__(self) -> None:
        self._text = ""
        self._cursor = 0
        self._kill_ring = KillRing()
        self._last_was_kill = False

    @property
    def text(self) -> str:
        return self._text

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def kill_ring(self) -> KillRing:
        return self._kill_ring

    # --- Insertion ---

    def insert_char(self, char: str) -> None:
        self.insert_text(char)

    def insert_text(self, text: str) -> None:
        """Insert *text* at the cursor, dropping control characters and line terminators."""
        clean = strip_control_chars(text)
        self._last_was_kill = False
        if not clean:
            return
        self._text = self._text[: self._cursor] + clean + self._text[self._cursor :]
        self._cursor += len(clean)

    def set_text(self, text: str) -> None:
        """Replace the whole buffer and move the cursor to the end."""
        self._text = strip_control_chars(text)
        self._cursor = len(self._text)
        self._last_was_kill = False

    def take(self) -> str:
        """Return the buffer contents and reset to an empty line."""
        text = self._text
        self._text = ""
        self._cursor = 0
        self._last_was_kill = False
        return text

    # --- Deletion ---

    def delete_before_cursor(self) -> None:
        self._last_was_kill = False
        if self._cursor == 0:
            return
        size = last_grapheme_length(self._text[: self._cursor])
        self._text = self._text[: self._cursor - size] + self._text[self._cursor :]
        self._cursor -= size

    def delete_at_cursor(self) -> None:
        self._last_was_kill = False
        if self._cursor >= len(self._text):
            return
        size = first_grapheme_length(self._text[self._cursor :])
        self._text = self._text[: self._cursor] + self._text[self._cursor + size :]

    def delete_word_before_cursor(self) -> None:
        if self._cursor == 0:
            return
        end = self._cursor
        start = self._word_start(end)
        self._kill(start, end, backward=True)

    def delete_to_start(self) -> None:
        if self._cursor == 0:
            return
        self._kill(0, self._cursor, backward=True)

    def delete_to_end(self) -> None:
        if self._cursor >= len(self._text):
            return
        self._kill(self._cursor, len(self._text), backward=False)

    def yank(self) -> None:
        """Insert the most recent kill at the cursor."""
        text = self._kill_ring.peek()
        self._last_was_kill = False
        if not text:
            return
        self._text = self._text[: self._cursor] + text + self._text[self._cursor :]
        self._cursor += len(text)

    def _kill(self, start: int, end: int, *, backward: bool) -> None:
        self._kill_ring.push(
            self._text[start:end], backward=backward, accumulate=self._last_was_kill
        )
        self._last_was_kill = True
        self._text = self._text[:start] + self._text[end:]
        self._cursor = start

    # --- Cursor motion ---

    def move_cursor(self, delta: int | CursorTarget) -> None:
        """Move by *delta* grapheme clusters, or to ``"start"`` / ``"end"``."""
        self._last_was_kill = False
        if delta == "start":
            self._cursor = 0
            return
        if delta == "end":
            self._cursor = len(self._text)
            return

        steps = int(delta)
        while steps < 0 and self._cursor > 0:
            self._cursor -= last_grapheme_length(self._text[: self._cursor])
            steps += 1
        while steps > 0 and self._cursor < len(self._text):
            self._cursor += first_grapheme_length(self._text[self._cursor :])
            steps -= 1

    def move_word_left(self) -> None:
        self._last_was_kill = False
        self._cursor = self._word_start(self._cursor)

    def move_word_right(self) -> None:
        self._last_was_kill = False
        self._cursor = self._word_end(self._cursor)

    def _word_start(self, position: int) -> int:
        clusters = graphemes(self._text[:position])

        while clusters and is_whitespace_char(clusters[-1]):
            position -= len(clusters.pop())

        if clusters and is_punctuation_char(clusters[-1]):
            while clusters and is_punctuation_char(clusters[-1]):
                position -= len(clusters.pop())
        else:
            while (
                clusters
                and not is_whitespace_char(clusters[-1])
                and not is_punctuation_char(clusters[-1])
            ):
                position -= len(clusters.pop())
        return position

    def _word_end(self, position: int) -> int:
        clusters = graphemes(self._text[position:])
        idx = 0

        while idx < len(clusters) and is_whitespace_char(clusters[idx]):
            position += len(clusters[idx])
            idx += 1

        if idx < len(clusters) and is_punctuation_char(clusters[idx]):
            while idx < len(clusters) and is_punctuation_char(clusters[idx]):
                position += len(clusters[idx])
                idx += 1
        else:
            while (
                idx < len(clusters)
                and not is_whitespace_char(clusters[idx])
                and not is_punctuation_char(clusters[idx])
            ):
                position += len(clusters[idx])
                idx += 1
        return position
