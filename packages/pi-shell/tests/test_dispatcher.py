"""Tests for pi.shell.dispatcher."""

from __future__ import annotations

import asyncio

import pytest

from pi.shell.context import SessionContext
from pi.shell.dispatcher import (
    INTERRUPT_MARKER,
    CommandDispatcher,
    parse_command_line,
    render_result,
)
from pi.shell.executor import ExecResult, SpawnError
from pi.shell.history import HistoryStore
from pi.shell.transcript import LineBuffer, LineRole


class FakeRunner:
    """Records calls and returns a canned result (or raises)."""

    def __init__(self, result: ExecResult | None = None, error: Exception | None = None):
        self.result = result or ExecResult(stdout="", stderr="", code=0)
        self.error = error
        self.calls: list[tuple[str, list[str], str]] = []

    async def __call__(self, program, args, *, cwd, timeout=None, abort_event=None):
        self.calls.append((program, list(args), cwd))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def home(tmp_path):
    path = (tmp_path / "home").resolve()
    path.mkdir()
    return path


@pytest.fixture
def context(home):
    return SessionContext(home, "ada", "box", home)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def exits():
    return []


@pytest.fixture
def dispatcher(context, runner, exits):
    return CommandDispatcher(
        LineBuffer(100),
        HistoryStore(),
        context,
        runner=runner,
        on_exit=exits.append,
    )


def texts(dispatcher: CommandDispatcher) -> list[str]:
    return [line.text for line in dispatcher.transcript]


def body(dispatcher: CommandDispatcher):
    """Lines between the last input line and the trailing prompt."""
    lines = list(dispatcher.transcript)
    assert lines[-1].role is LineRole.PROMPT
    start = max(i for i, line in enumerate(lines) if line.role is LineRole.INPUT)
    return lines[start + 1 : -1]


class TestParseCommandLine:
    def test_blank(self) -> None:
        assert parse_command_line("   ") is None

    def test_splits_on_whitespace(self) -> None:
        command = parse_command_line("  ls   -la  /tmp ")
        assert command.name == "ls"
        assert command.args == ["-la", "/tmp"]

    def test_quotes_group_words(self) -> None:
        command = parse_command_line("echo 'a  b' \"c d\"")
        assert command.args == ["a  b", "c d"]

    def test_unbalanced_quote(self) -> None:
        with pytest.raises(ValueError):
            parse_command_line("echo 'oops")


class TestSubmitSequence:
    """Ordering of transcript effects."""

    @pytest.mark.asyncio
    async def test_empty_line_only_prompts(self, dispatcher) -> None:
        await dispatcher.submit("")
        await dispatcher.submit("   ")
        assert [line.role for line in dispatcher.transcript] == [LineRole.PROMPT, LineRole.PROMPT]
        assert len(dispatcher.history) == 0

    @pytest.mark.asyncio
    async def test_input_output_prompt(self, dispatcher, runner) -> None:
        runner.result = ExecResult(stdout="hi\n", stderr="", code=0)
        await dispatcher.submit("echo hi")
        lines = list(dispatcher.transcript)
        assert [(line.role, line.text) for line in lines] == [
            (LineRole.INPUT, "echo hi"),
            (LineRole.OUTPUT, "hi"),
            (LineRole.PROMPT, "ada@box:~$ "),
        ]
        assert dispatcher.history.entries() == ("echo hi",)

    @pytest.mark.asyncio
    async def test_duplicates_recorded_once(self, dispatcher) -> None:
        await dispatcher.submit("pwd")
        await dispatcher.submit("pwd")
        assert dispatcher.history.entries() == ("pwd",)

    @pytest.mark.asyncio
    async def test_syntax_error(self, dispatcher, runner) -> None:
        await dispatcher.submit("echo 'oops")
        [line] = body(dispatcher)
        assert line.is_error
        assert line.text.startswith("pi-shell: syntax error")
        assert runner.calls == []
        assert dispatcher.history.entries() == ("echo 'oops",)

    @pytest.mark.asyncio
    async def test_runner_receives_cwd_and_args(self, dispatcher, runner, home) -> None:
        await dispatcher.submit("grep -n 'two words' file.txt")
        assert runner.calls == [("grep", ["-n", "two words", "file.txt"], str(home))]


class TestExternal:
    @pytest.mark.asyncio
    async def test_real_echo(self, context) -> None:
        dispatcher = CommandDispatcher(LineBuffer(100), HistoryStore(), context)
        await dispatcher.submit("echo hi")
        assert [line.text for line in body(dispatcher)] == ["hi"]

    @pytest.mark.asyncio
    async def test_spawn_failure_is_single_diagnostic(self, dispatcher, runner) -> None:
        runner.error = SpawnError("nosuch", "command not found")
        await dispatcher.submit("nosuch --flag")
        [line] = body(dispatcher)
        assert line.text == "nosuch: command not found"
        assert line.is_error

    @pytest.mark.asyncio
    async def test_real_missing_binary(self, context) -> None:
        dispatcher = CommandDispatcher(LineBuffer(100), HistoryStore(), context)
        await dispatcher.submit("definitely-not-a-command-xyz")
        [line] = body(dispatcher)
        assert line.text == "definitely-not-a-command-xyz: command not found"
        assert "status" not in line.text

    @pytest.mark.asyncio
    async def test_nonzero_status(self, dispatcher, runner) -> None:
        runner.result = ExecResult(stdout="", stderr="bad thing\n\n", code=2)
        await dispatcher.submit("tool")
        lines = body(dispatcher)
        assert [(line.text, line.is_error) for line in lines] == [
            ("bad thing", True),
            ("tool: exited with status 2", False),
        ]


class TestCd:
    @pytest.mark.asyncio
    async def test_missing_directory(self, dispatcher, context, home) -> None:
        await dispatcher.submit("cd nope")
        [line] = body(dispatcher)
        assert line.is_error
        assert "nope" in line.text
        assert line.text == "cd: nope: No such file or directory"
        assert context.current_directory == home

    @pytest.mark.asyncio
    async def test_parent(self, dispatcher, context, home) -> None:
        (home / "a" / "b").mkdir(parents=True)
        await dispatcher.submit("cd a/b")
        await dispatcher.submit("cd ..")
        assert context.current_directory == home / "a"
        assert texts(dispatcher)[-1] == "ada@box:~/a$ "

    @pytest.mark.asyncio
    async def test_no_argument_goes_home(self, dispatcher, context, home) -> None:
        (home / "sub").mkdir()
        await dispatcher.submit("cd sub")
        await dispatcher.submit("cd")
        assert context.current_directory == home

    @pytest.mark.asyncio
    async def test_tilde(self, dispatcher, context, home) -> None:
        (home / "src").mkdir()
        await dispatcher.submit("cd /")
        await dispatcher.submit("cd ~/src")
        assert context.current_directory == home / "src"

    @pytest.mark.asyncio
    async def test_dash_returns_and_announces(self, dispatcher, context, home) -> None:
        (home / "sub").mkdir()
        await dispatcher.submit("cd sub")
        await dispatcher.submit("cd -")
        assert context.current_directory == home
        assert [line.text for line in body(dispatcher)] == [str(home)]

    @pytest.mark.asyncio
    async def test_dash_without_previous(self, dispatcher) -> None:
        await dispatcher.submit("cd -")
        assert [line.text for line in body(dispatcher)] == ["cd: OLDPWD not set"]

    @pytest.mark.asyncio
    async def test_not_a_directory(self, dispatcher, context, home) -> None:
        (home / "file.txt").write_text("x")
        await dispatcher.submit("cd file.txt")
        assert [line.text for line in body(dispatcher)] == ["cd: file.txt: Not a directory"]
        assert context.current_directory == home

    @pytest.mark.asyncio
    async def test_too_many_arguments(self, dispatcher) -> None:
        await dispatcher.submit("cd a b")
        assert [line.text for line in body(dispatcher)] == ["cd: too many arguments"]


class TestOtherBuiltins:
    @pytest.mark.asyncio
    async def test_pwd(self, dispatcher, home) -> None:
        await dispatcher.submit("pwd")
        assert [line.text for line in body(dispatcher)] == [str(home)]

    @pytest.mark.asyncio
    async def test_history_listing(self, dispatcher) -> None:
        await dispatcher.submit("pwd")
        await dispatcher.submit("help")
        await dispatcher.submit("history")
        assert [line.text for line in body(dispatcher)] == [
            "    1  pwd",
            "    2  help",
            "    3  history",
        ]

    @pytest.mark.asyncio
    async def test_history_last_n(self, dispatcher) -> None:
        await dispatcher.submit("pwd")
        await dispatcher.submit("help")
        await dispatcher.submit("history 1")
        assert [line.text for line in body(dispatcher)] == ["    3  history 1"]

    @pytest.mark.asyncio
    async def test_history_clear(self, dispatcher) -> None:
        await dispatcher.submit("pwd")
        await dispatcher.submit("history -c")
        assert body(dispatcher) == []
        assert len(dispatcher.history) == 0

    @pytest.mark.asyncio
    async def test_history_bad_argument(self, dispatcher) -> None:
        await dispatcher.submit("history lots")
        [line] = body(dispatcher)
        assert line.is_error

    @pytest.mark.asyncio
    async def test_clear(self, dispatcher) -> None:
        await dispatcher.submit("pwd")
        await dispatcher.submit("clear")
        assert [line.role for line in dispatcher.transcript] == [LineRole.PROMPT]
        assert dispatcher.transcript.clear_count == 1

    @pytest.mark.asyncio
    async def test_help_lists_builtins(self, dispatcher) -> None:
        await dispatcher.submit("help")
        text = "\n".join(texts(dispatcher))
        for name in ("cd", "clear", "exit", "history", "pwd"):
            assert f"  {name} " in text

    @pytest.mark.asyncio
    async def test_exit(self, dispatcher, exits) -> None:
        await dispatcher.submit("exit")
        await dispatcher.submit("exit 4")
        assert exits == [0, 4]

    @pytest.mark.asyncio
    async def test_exit_bad_code(self, dispatcher, exits) -> None:
        await dispatcher.submit("exit soon")
        assert exits == []
        assert [line.text for line in body(dispatcher)] == ["exit: soon: numeric argument required"]

    @pytest.mark.asyncio
    async def test_exit_without_hook_raises(self, context) -> None:
        dispatcher = CommandDispatcher(LineBuffer(10), HistoryStore(), context)
        with pytest.raises(SystemExit) as info:
            await dispatcher.submit("exit 3")
        assert info.value.code == 3

    def test_is_builtin(self, dispatcher) -> None:
        assert dispatcher.is_builtin("cd")
        assert not dispatcher.is_builtin("ls")


class TestRenderResult:
    def test_blank_stdout_lines_kept(self) -> None:
        lines = render_result("x", ExecResult(stdout="a\n\nb\n", stderr="", code=0))
        assert [line.text for line in lines] == ["a", "", "b"]

    def test_no_trailing_newline(self) -> None:
        lines = render_result("x", ExecResult(stdout="a", stderr="", code=0))
        assert [line.text for line in lines] == ["a"]

    def test_only_newline_splits_lines(self) -> None:
        result = ExecResult(stdout="a\x0cb\r\nc\x85d\u2028e\n", stderr="", code=0)
        lines = render_result("x", result)
        assert [line.text for line in lines] == ["a\x0cb", "c\x85d\u2028e"]

    def test_truncation_notice(self) -> None:
        result = ExecResult(stdout="abcd", stderr="", code=0, truncated_at=4)
        lines = render_result("cat", result)
        assert [line.text for line in lines] == ["abcd", "[cat: output truncated at 4 bytes]"]
        assert lines[-1].is_error

    def test_aborted(self) -> None:
        lines = render_result("sleep", ExecResult(stdout="", stderr="", code=-9, aborted=True))
        assert [line.text for line in lines] == [INTERRUPT_MARKER]

    def test_timed_out(self) -> None:
        result = ExecResult(stdout="", stderr="", code=-9, timed_out=True)
        [line] = render_result("sleep", result, timeout=1.5)
        assert line.text == "sleep: timed out after 1.5s"
        assert line.is_error

    def test_signal(self) -> None:
        [line] = render_result("app", ExecResult(stdout="", stderr="", code=-15))
        assert line.text == "app: terminated by signal 15"


@pytest.mark.asyncio
async def test_abort_event_is_passed_through(context) -> None:
    seen: list[asyncio.Event | None] = []

    async def runner(program, args, *, cwd, timeout=None, abort_event=None):
        seen.append(abort_event)
        return ExecResult(stdout="", stderr="", code=0)

    dispatcher = CommandDispatcher(LineBuffer(10), HistoryStore(), context, runner=runner)
    event = asyncio.Event()
    await dispatcher.submit("true", abort_event=event)
    assert seen == [event]
