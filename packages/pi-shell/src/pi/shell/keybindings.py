"""Shell keybindings: map key identifiers to editing and session actions."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Literal

ShellAction = Literal[
    # Submission
    "submit",
    # Cursor movement
    "cursorLeft",
    "cursorRight",
    "cursorWordLeft",
    "cursorWordRight",
    "cursorLineStart",
    "cursorLineEnd",
    # Deletion
    "deleteCharBackward",
    "deleteCharForward",
    "deleteWordBackward",
    "deleteToLineStart",
    "deleteToLineEnd",
    # Kill ring
    "yank",
    # History
    "historyPrevious",
    "historyNext",
    # Autocomplete
    "autocompleteCycle",
    "autocompleteDismiss",
    # Session
    "interrupt",
    "clearScreen",
    "terminate",
]

KeyId = str

ShellKeybindingsConfig = Mapping[ShellAction, KeyId | list[KeyId]]

# Resolution walks this table in order; the first action bound to a key wins.
DEFAULT_SHELL_KEYBINDINGS: dict[ShellAction, KeyId | list[KeyId]] = {
    "submit": "enter",
    "cursorLeft": ["left", "ctrl+b"],
    "cursorRight": ["right", "ctrl+f"],
    "cursorWordLeft": ["alt+left", "ctrl+left", "alt+b"],
    "cursorWordRight": ["alt+right", "ctrl+right", "alt+f"],
    "cursorLineStart": ["home", "ctrl+a"],
    "cursorLineEnd": ["end", "ctrl+e"],
    "deleteCharBackward": ["backspace", "ctrl+h"],
    "deleteCharForward": "delete",
    "deleteWordBackward": ["ctrl+w", "alt+backspace"],
    "deleteToLineStart": "ctrl+u",
    "deleteToLineEnd": "ctrl+k",
    "yank": "ctrl+y",
    "historyPrevious": ["up", "ctrl+p"],
    "historyNext": ["down", "ctrl+n"],
    "autocompleteCycle": "tab",
    "autocompleteDismiss": "escape",
    "interrupt": "ctrl+c",
    "clearScreen": "ctrl+l",
    "terminate": "ctrl+d",
}

_MODIFIER_ORDER = ("ctrl", "alt", "shift", "meta")
_MODIFIER_ALIASES = {"control": "ctrl", "option": "alt", "cmd": "meta", "super": "meta"}
_NAME_ALIASES = {"esc": "escape", "del": "delete", "bs": "backspace", "return": "enter"}

logger = logging.getLogger(__name__)


def key_id(name: str, modifiers: Iterable[str] = ()) -> KeyId:
    """Normalize a key name plus modifiers to an identifier like ``"ctrl+c"``."""
    normalized = {_MODIFIER_ALIASES.get(m.lower(), m.lower()) for m in modifiers}
    base = name.lower()
    base = _NAME_ALIASES.get(base, base)
    ordered = [m for m in _MODIFIER_ORDER if m in normalized]
    ordered.extend(sorted(normalized - set(_MODIFIER_ORDER)))
    return "+".join([*ordered, base])


def _normalize_id(key: KeyId) -> KeyId:
    *mods, name = key.split("+") if key != "+" else ["+"]
    return key_id(name, mods)


class ShellKeybindingsManager:
    """Resolves key identifiers to shell actions, with per-action overrides."""

    def __init__(self, config: ShellKeybindingsConfig | None = None) -> None:
        self._action_to_keys: dict[ShellAction, list[KeyId]] = {}
        self._overridden: list[ShellAction] = []
        self._build_maps(config or {})

    def _build_maps(self, config: ShellKeybindingsConfig) -> None:
        self._action_to_keys.clear()
        self._overridden.clear()

        for action, keys in DEFAULT_SHELL_KEYBINDINGS.items():
            key_array = keys if isinstance(keys, list) else [keys]
            self._action_to_keys[action] = [_normalize_id(k) for k in key_array]

        # User overrides replace the default keys for that action
        for action, keys in config.items():
            if action not in DEFAULT_SHELL_KEYBINDINGS:
                logger.warning("Ignoring keybinding for unknown action %s", action)
                continue
            key_array = keys if isinstance(keys, list) else [keys]
            self._action_to_keys[action] = [_normalize_id(k) for k in key_array]
            self._overridden.append(action)

    def keys_for(self, action: ShellAction) -> list[KeyId]:
        return list(self._action_to_keys.get(action, []))

    def matches(self, key: KeyId, action: ShellAction) -> bool:
        return _normalize_id(key) in self._action_to_keys.get(action, [])

    def action_for(self, key: KeyId) -> ShellAction | None:
        normalized = _normalize_id(key)
        # Overridden actions win over defaults that share the key
        for action in self._overridden:
            if normalized in self._action_to_keys[action]:
                return action
        for action, keys in self._action_to_keys.items():
            if normalized in keys:
                return action
        return None
