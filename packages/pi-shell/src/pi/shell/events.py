"""Input events fed into the session engine by a front end."""

from __future__ import annotations

from dataclasses import dataclass, field

from pi.shell.keybindings import KeyId, key_id


@dataclass(frozen=True)
class CharEvent:
    """Typed or pasted text."""

    text: str


@dataclass(frozen=True)
class KeyEvent:
    """A named key with its modifier set, e.g. ``KeyEvent("c", frozenset({"ctrl"}))``."""

    name: str
    modifiers: frozenset[str] = field(default_factory=frozenset)

    @property
    def id(self) -> KeyId:
        return key_id(self.name, self.modifiers)

    @classmethod
    def parse(cls, key: KeyId) -> KeyEvent:
        """Build an event from an identifier like ``"ctrl+c"``."""
        *mods, name = key.split("+")
        return cls(name=name, modifiers=frozenset(mods))


@dataclass(frozen=True)
class TickEvent:
    """Time passing on the front end, in seconds since the previous tick."""

    elapsed: float


InputEvent = CharEvent | KeyEvent | TickEvent
