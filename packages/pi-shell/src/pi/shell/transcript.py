"""Bounded transcript of rendered session lines with FIFO eviction."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

DEFAULT_CAPACITY = 1000


class LineRole(str, Enum):
    """What produced a transcript line."""

    OUTPUT = "output"
    INPUT = "input"
    PROMPT = "prompt"


@dataclass(frozen=True)
class TranscriptLine:
    """A single rendered line. Immutable once appended."""

    text: str
    role: LineRole = LineRole.OUTPUT
    is_error: bool = False


class LineBuffer:
    """Append-only, capacity-bounded log of transcript lines.

    When the capacity is exceeded the oldest lines are dropped first;
    surviving lines keep their order.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be at least 1, got {capacity}")
        self._capacity = capacity
        self._lines: deque[TranscriptLine] = deque(maxlen=capacity)
        self._sequence = 0
        self._clear_count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def sequence(self) -> int:
        """Total number of lines ever appended (never decreases)."""
        return self._sequence

    @property
    def clear_count(self) -> int:
        return self._clear_count

    def append(
        self,
        text: str,
        role: LineRole = LineRole.OUTPUT,
        *,
        is_error: bool = False,
    ) -> TranscriptLine:
        line = TranscriptLine(text=text, role=role, is_error=is_error)
        self._lines.append(line)
        self._sequence += 1
        return line

    def extend(self, lines: list[TranscriptLine]) -> None:
        """Append already-built lines in order."""
        for line in lines:
            self._lines.append(line)
            self._sequence += 1

    def clear(self) -> None:
        self._lines.clear()
        self._clear_count += 1

    def iterate(self) -> Iterator[TranscriptLine]:
        """Iterate the current lines, oldest first.

        Each call starts a fresh pass over a stable copy, so appending while
        iterating is safe.
        """
        return iter(tuple(self._lines))

    def lines(self) -> tuple[TranscriptLine, ...]:
        return tuple(self._lines)

    def __iter__(self) -> Iterator[TranscriptLine]:
        return self.iterate()

    def __len__(self) -> int:
        return len(self._lines)
