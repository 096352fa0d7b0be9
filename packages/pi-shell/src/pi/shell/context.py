"""Session identity and working-directory state."""

from __future__ import annotations

import os
import socket
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

DEFAULT_USERNAME = "user"
DEFAULT_HOSTNAME = "localhost"
DEFAULT_HOME = "/"


@dataclass
class SessionContext:
    """Current directory and identity of a session.

    Only the ``cd`` built-in mutates the directories, and only after the
    target has been validated.
    """

    current_directory: Path
    username: str = DEFAULT_USERNAME
    hostname: str = DEFAULT_HOSTNAME
    home: Path = Path(DEFAULT_HOME)
    previous_directory: Path | None = None

    @classmethod
    def from_environment(cls, environ: Mapping[str, str] | None = None) -> SessionContext:
        """Read identity and directories once; anything missing falls back to a default."""
        env = os.environ if environ is None else environ

        username = env.get("USER") or env.get("LOGNAME") or env.get("USERNAME") or DEFAULT_USERNAME
        hostname = env.get("HOSTNAME") or _system_hostname() or DEFAULT_HOSTNAME
        home = Path(env.get("HOME") or DEFAULT_HOME)

        try:
            cwd = Path(os.getcwd())
        except OSError:
            cwd = home

        return cls(current_directory=cwd, username=username, hostname=hostname, home=home)

    def change_directory(self, target: Path) -> None:
        """Commit an already validated directory change."""
        if target != self.current_directory:
            self.previous_directory = self.current_directory
        self.current_directory = target

    def display_directory(self) -> str:
        """Current directory with the home prefix abbreviated to ``~``."""
        current = self.current_directory
        if str(self.home) != DEFAULT_HOME:
            if current == self.home:
                return "~"
            try:
                return "~/" + current.relative_to(self.home).as_posix()
            except ValueError:
                pass
        return str(current)

    def prompt(self) -> str:
        return f"{self.username}@{self.hostname}:{self.display_directory()}$ "


def _system_hostname() -> str | None:
    try:
        name = socket.gethostname()
    except OSError:
        return None
    return name.split(".")[0] or None
