"""Command history with up/down recall."""

from __future__ import annotations

DEFAULT_HISTORY_SIZE = 1000


class HistoryStore:
    """Ordered list of submitted commands plus a recall cursor.

    ``None`` for the cursor means "not browsing". Blank commands and an
    immediate repeat of the newest entry are never recorded.
    """

    def __init__(self, max_size: int | None = DEFAULT_HISTORY_SIZE) -> None:
        if max_size is not None and max_size < 1:
            raise ValueError(f"max_size must be at least 1, got {max_size}")
        self._max_size = max_size
        self._entries: list[str] = []
        self._cursor: int | None = None

    @property
    def cursor(self) -> int | None:
        return self._cursor

    @property
    def is_browsing(self) -> bool:
        return self._cursor is not None

    def entries(self) -> tuple[str, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def record(self, command: str) -> bool:
        """Append *command*. Returns ``True`` if it was stored."""
        self._cursor = None
        if not command.strip():
            return False
        if self._entries and self._entries[-1] == command:
            return False
        self._entries.append(command)
        if self._max_size is not None and len(self._entries) > self._max_size:
            del self._entries[: len(self._entries) - self._max_size]
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = None

    def reset_recall(self) -> None:
        self._cursor = None

    def recall_previous(self) -> str | None:
        """Step back one entry.

        The first call jumps to the newest entry. At the oldest entry, and
        with an empty history, this is a no-op returning ``None``.
        """
        if not self._entries:
            return None
        if self._cursor is None:
            self._cursor = len(self._entries) - 1
            return self._entries[self._cursor]
        if self._cursor == 0:
            return None
        self._cursor -= 1
        return self._entries[self._cursor]

    def recall_next(self) -> str | None:
        """Step forward one entry.

        Stepping past the newest entry leaves recall mode and returns ``""``
        so the editor goes back to a blank line. Returns ``None`` when not
        browsing.
        """
        if not self._entries or self._cursor is None:
            return None
        if self._cursor >= len(self._entries) - 1:
            self._cursor = None
            return ""
        self._cursor += 1
        return self._entries[self._cursor]
