"""Shell settings: JSON file at ``~/.pi/shell.json`` merged over defaults.

Precedence: CLI overrides > settings file > defaults. Keys in the file are
camelCase; ``None`` values never override.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from pi.shell.autocomplete import DEFAULT_MAX_SUGGESTIONS
from pi.shell.history import DEFAULT_HISTORY_SIZE
from pi.shell.transcript import DEFAULT_CAPACITY

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".pi"
SETTINGS_FILE_NAME = "shell.json"


@dataclass
class ShellSettings:
    """Resolved shell configuration."""

    capacity: int = DEFAULT_CAPACITY
    history_size: int | None = DEFAULT_HISTORY_SIZE
    max_suggestions: int = DEFAULT_MAX_SUGGESTIONS
    command_timeout: float | None = None
    blink_interval: float = 0.5
    scan_path: bool = False
    commands: dict[str, list[str]] = field(default_factory=dict)
    subcommands: dict[str, list[str]] = field(default_factory=dict)
    keybindings: dict[str, str | list[str]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("capacity", "max_suggestions"):
            value = getattr(self, name)
            if value < 1:
                raise ValueError(f"{name} must be at least 1, got {value}")
        if self.history_size is not None and self.history_size < 1:
            raise ValueError(f"history_size must be at least 1, got {self.history_size}")
        if self.command_timeout is not None and self.command_timeout <= 0:
            raise ValueError(f"command_timeout must be positive, got {self.command_timeout}")
        for action, keys in self.keybindings.items():
            key_list = keys if isinstance(keys, list) else [keys]
            if not all(isinstance(key, str) for key in key_list):
                raise ValueError(f"keybinding for {action} must be a key id or a list of key ids")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ShellSettings:
        """Build settings from a camelCase mapping, ignoring unknown keys."""
        defaults = cls()
        return cls(
            capacity=int(data.get("transcriptCapacity", defaults.capacity)),
            history_size=_optional_int(data.get("historySize", defaults.history_size)),
            max_suggestions=int(data.get("maxSuggestions", defaults.max_suggestions)),
            command_timeout=_optional_float(data.get("commandTimeout")),
            blink_interval=float(data.get("blinkInterval", defaults.blink_interval)),
            scan_path=bool(data.get("scanPath", defaults.scan_path)),
            commands=_word_lists(data.get("commands"), "commands"),
            subcommands=_word_lists(data.get("subcommands"), "subcommands"),
            keybindings=dict(data.get("keybindings") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "transcriptCapacity": self.capacity,
            "historySize": self.history_size,
            "maxSuggestions": self.max_suggestions,
            "commandTimeout": self.command_timeout,
            "blinkInterval": self.blink_interval,
            "scanPath": self.scan_path,
            "commands": {k: list(v) for k, v in self.commands.items()},
            "subcommands": {k: list(v) for k, v in self.subcommands.items()},
            "keybindings": dict(self.keybindings),
        }


def _optional_int(value: Any) -> int | None:
    return None if value is None else int(value)


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _word_lists(value: Any, key: str) -> dict[str, list[str]]:
    """Validate a ``{name: [word, ...]}`` mapping."""
    if not value:
        return {}
    if not isinstance(value, dict):
        raise ValueError(f"{key} must be an object")
    result: dict[str, list[str]] = {}
    for name, words in value.items():
        if not isinstance(words, list) or not all(isinstance(w, str) for w in words):
            raise ValueError(f"{key}.{name} must be a list of strings")
        result[name] = list(words)
    return result


def deep_merge_settings(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge overrides into base settings.

    Nested dicts merge; any other value replaces the base value. ``None``
    values in *overrides* are skipped.
    """
    result = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge_settings(result[key], value)
        else:
            result[key] = value
    return result


def default_settings_path() -> str:
    """``~/.pi/shell.json``."""
    return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME, SETTINGS_FILE_NAME)


def _load_from_file(path: str) -> tuple[dict[str, Any], Exception | None]:
    """Load settings from a JSON file. Returns (settings, error)."""
    if not os.path.exists(path):
        return {}, None
    try:
        content = Path(path).read_text(encoding="utf-8")
        settings = json.loads(content)
    except (OSError, json.JSONDecodeError) as e:
        return {}, e
    if not isinstance(settings, dict):
        return {}, ValueError(f"{path}: expected a JSON object")
    return settings, None


def load_settings(
    path: str | None = None,
    overrides: dict[str, Any] | None = None,
) -> ShellSettings:
    """Resolve settings from *path* (default ``~/.pi/shell.json``) and *overrides*.

    A missing file yields defaults; an unreadable or malformed one is logged
    and ignored.
    """
    settings_path = path or default_settings_path()
    data, error = _load_from_file(settings_path)
    if error is not None:
        logger.warning("Ignoring settings file %s: %s", settings_path, error)

    merged = deep_merge_settings(ShellSettings().to_dict(), data)
    merged = deep_merge_settings(merged, overrides or {})
    try:
        return ShellSettings.from_dict(merged)
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("Invalid settings in %s, using defaults: %s", settings_path, e)

    try:
        return ShellSettings.from_dict(deep_merge_settings(ShellSettings().to_dict(), overrides or {}))
    except (TypeError, ValueError, AttributeError) as e:
        logger.warning("Invalid settings overrides, using defaults: %s", e)
        return ShellSettings()
