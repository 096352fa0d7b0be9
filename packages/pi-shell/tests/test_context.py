"""Tests for pi.shell.context.SessionContext."""

from __future__ import annotations

from pathlib import Path

from pi.shell.context import DEFAULT_HOSTNAME, DEFAULT_USERNAME, SessionContext


class TestFromEnvironment:
    """Identity and directories are read once, with defaults."""

    def test_reads_environment(self) -> None:
        ctx = SessionContext.from_environment(
            {"USER": "ada", "HOSTNAME": "engine", "HOME": "/home/ada"}
        )
        assert ctx.username == "ada"
        assert ctx.hostname == "engine"
        assert ctx.home == Path("/home/ada")

    def test_logname_fallback(self) -> None:
        ctx = SessionContext.from_environment({"LOGNAME": "grace", "HOSTNAME": "h"})
        assert ctx.username == "grace"

    def test_missing_values_fall_back(self, monkeypatch) -> None:
        monkeypatch.setattr("pi.shell.context._system_hostname", lambda: None)
        ctx = SessionContext.from_environment({})
        assert ctx.username == DEFAULT_USERNAME
        assert ctx.hostname == DEFAULT_HOSTNAME
        assert ctx.home == Path("/")


class TestPrompt:
    """Prompt rendering."""

    def test_home_abbreviated(self) -> None:
        ctx = SessionContext(Path("/home/ada"), "ada", "box", Path("/home/ada"))
        assert ctx.prompt() == "ada@box:~$ "

    def test_below_home(self) -> None:
        ctx = SessionContext(Path("/home/ada/src/pi"), "ada", "box", Path("/home/ada"))
        assert ctx.display_directory() == "~/src/pi"

    def test_outside_home(self) -> None:
        ctx = SessionContext(Path("/tmp"), "ada", "box", Path("/home/ada"))
        assert ctx.prompt() == "ada@box:/tmp$ "

    def test_root_home_not_abbreviated(self) -> None:
        ctx = SessionContext(Path("/etc"), "root", "box", Path("/"))
        assert ctx.display_directory() == "/etc"


class TestChangeDirectory:
    def test_tracks_previous(self) -> None:
        ctx = SessionContext(Path("/a"))
        ctx.change_directory(Path("/b"))
        assert ctx.current_directory == Path("/b")
        assert ctx.previous_directory == Path("/a")
