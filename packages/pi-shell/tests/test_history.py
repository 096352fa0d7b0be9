"""Tests for pi.shell.history.HistoryStore -- recording and recall."""

from __future__ import annotations

import pytest

from pi.shell.history import HistoryStore


def _store(*commands: str) -> HistoryStore:
    store = HistoryStore()
    for command in commands:
        store.record(command)
    return store


class TestRecord:
    """What gets recorded."""

    def test_records_in_order(self) -> None:
        assert _store("ls", "pwd").entries() == ("ls", "pwd")

    def test_blank_not_recorded(self) -> None:
        store = _store("", "   ", "\t")
        assert len(store) == 0

    def test_consecutive_duplicate_recorded_once(self) -> None:
        store = _store("ls", "ls")
        assert store.entries() == ("ls",)

    def test_non_consecutive_duplicate_recorded(self) -> None:
        assert _store("ls", "pwd", "ls").entries() == ("ls", "pwd", "ls")

    def test_record_exits_recall_mode(self) -> None:
        store = _store("ls")
        store.recall_previous()
        assert store.is_browsing
        store.record("pwd")
        assert not store.is_browsing

    def test_size_limit_drops_oldest(self) -> None:
        store = HistoryStore(max_size=2)
        for command in ("a", "b", "c"):
            store.record(command)
        assert store.entries() == ("b", "c")

    def test_invalid_size_rejected(self) -> None:
        with pytest.raises(ValueError):
            HistoryStore(max_size=0)


class TestRecall:
    """Up/down navigation."""

    def test_empty_history_is_noop(self) -> None:
        store = HistoryStore()
        assert store.recall_previous() is None
        assert store.recall_next() is None
        assert store.cursor is None

    def test_first_previous_is_newest(self) -> None:
        store = _store("a", "b", "c")
        assert store.recall_previous() == "c"

    def test_previous_stops_at_oldest(self) -> None:
        store = _store("a", "b", "c")
        values = [store.recall_previous() for _ in range(6)]
        assert values[:3] == ["c", "b", "a"]
        assert values[3:] == [None, None, None]
        assert store.cursor == 0

    def test_next_steps_forward(self) -> None:
        store = _store("a", "b", "c")
        store.recall_previous()
        store.recall_previous()
        store.recall_previous()
        assert store.recall_next() == "b"
        assert store.recall_next() == "c"

    def test_next_past_newest_returns_blank_and_exits(self) -> None:
        store = _store("a", "b")
        store.recall_previous()
        assert store.recall_next() == ""
        assert store.cursor is None
        assert not store.is_browsing

    def test_next_without_browsing_is_noop(self) -> None:
        store = _store("a")
        assert store.recall_next() is None

    def test_clear(self) -> None:
        store = _store("a", "b")
        store.recall_previous()
        store.clear()
        assert len(store) == 0
        assert store.cursor is None
