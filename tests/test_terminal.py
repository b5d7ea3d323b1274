"""Tests for pish.terminal.ProcessTerminal output and cursor-report routing.

Raw mode is never entered here. Input sequences are either fed straight to
the handler the stdin buffer would call, or written to a pipe standing in
for stdin.
"""

from __future__ import annotations

import asyncio
import os

import pytest

from pish.dispatcher import EvaluationDispatcher
from pish.editor import LineEditor
from pish.errors import CursorQueryError
from pish.evaluator import PythonEvaluator
from pish.screen import Position
from pish.terminal import ProcessTerminal


@pytest.fixture
def terminal() -> ProcessTerminal:
    return ProcessTerminal(cursor_query_timeout=0.05)


async def next_event(terminal: ProcessTerminal):
    return await asyncio.wait_for(terminal.read_key_events().__anext__(), 1)


class TestOutput:
    def test_move_to(self, terminal: ProcessTerminal, capsys):
        terminal.move_to(3, 7)
        assert capsys.readouterr().out == "\x1b[7;3H"

    def test_move_to_clamps_to_one(self, terminal: ProcessTerminal, capsys):
        terminal.move_to(0, -2)
        assert capsys.readouterr().out == "\x1b[1;1H"

    def test_erase_area(self, terminal: ProcessTerminal, capsys):
        terminal.erase_area(1, 4, 80, 2)
        assert capsys.readouterr().out == "\x1b[4;1H\x1b[80X\x1b[5;1H\x1b[80X"

    def test_erase_empty_area(self, terminal: ProcessTerminal, capsys):
        terminal.erase_area(1, 4, 80, 0)
        assert capsys.readouterr().out == ""

    def test_cursor_visibility(self, terminal: ProcessTerminal, capsys):
        terminal.hide_cursor()
        terminal.hide_cursor(False)
        assert capsys.readouterr().out == "\x1b[?25l\x1b[?25h"


class TestCursorQuery:
    async def test_report_answers_query(self, terminal: ProcessTerminal, capsys):
        query = asyncio.ensure_future(terminal.get_cursor_location())
        await asyncio.sleep(0)
        assert capsys.readouterr().out == "\x1b[6n"
        terminal._on_sequence("\x1b[12;5R")
        assert await query == Position(5, 12)

    async def test_report_is_not_a_key_event(self, terminal: ProcessTerminal):
        query = asyncio.ensure_future(terminal.get_cursor_location())
        await asyncio.sleep(0)
        terminal._on_sequence("\x1b[1;1R")
        terminal._on_sequence("x")
        await query
        event = await next_event(terminal)
        assert event.is_character
        assert event.data == "x"

    async def test_keys_during_query_are_kept_in_order(self, terminal: ProcessTerminal):
        query = asyncio.ensure_future(terminal.get_cursor_location())
        await asyncio.sleep(0)
        terminal._on_sequence("a")
        terminal._on_sequence("\x1b[2;9R")
        terminal._on_sequence("b")
        assert await query == Position(9, 2)
        assert (await next_event(terminal)).data == "a"
        assert (await next_event(terminal)).data == "b"

    async def test_concurrent_callers_share_one_query(self, terminal: ProcessTerminal, capsys):
        first = asyncio.ensure_future(terminal.get_cursor_location())
        second = asyncio.ensure_future(terminal.get_cursor_location())
        await asyncio.sleep(0)
        assert capsys.readouterr().out == "\x1b[6n"
        terminal._on_sequence("\x1b[3;4R")
        assert await first == await second == Position(4, 3)

    async def test_timeout(self, terminal: ProcessTerminal):
        with pytest.raises(CursorQueryError):
            await terminal.get_cursor_location()

    async def test_late_report_after_timeout_is_ignored(self, terminal: ProcessTerminal, capsys):
        with pytest.raises(CursorQueryError):
            await terminal.get_cursor_location()
        terminal._on_sequence("\x1b[8;8R")
        capsys.readouterr()

        query = asyncio.ensure_future(terminal.get_cursor_location())
        await asyncio.sleep(0)
        assert capsys.readouterr().out == "\x1b[6n"
        terminal._on_sequence("\x1b[2;2R")
        assert await query == Position(2, 2)

    async def test_report_without_query_is_queued(self, terminal: ProcessTerminal):
        terminal._on_sequence("\x1b[8;8R")
        event = await next_event(terminal)
        assert event.name == ""
        assert not event.is_character


# ---------------------------------------------------------------------------
# Reading from stdin
# ---------------------------------------------------------------------------


class PipeStdin:
    def __init__(self, fd: int) -> None:
        self.fd = fd

    def fileno(self) -> int:
        return self.fd


@pytest.fixture
def stdin_pipe(monkeypatch):
    """Replace stdin with a pipe and yield its write end."""
    read_fd, write_fd = os.pipe()
    monkeypatch.setattr("sys.stdin", PipeStdin(read_fd))
    yield write_fd
    os.close(read_fd)


async def read_all(terminal: ProcessTerminal) -> list:
    async def collect():
        return [event async for event in terminal.read_key_events()]

    return await asyncio.wait_for(collect(), 2)


class TestStdinReading:
    async def test_keys_arrive_as_events(self, terminal: ProcessTerminal, stdin_pipe):
        terminal._attach_input()
        os.write(stdin_pipe, b"ab\x1b[A")
        os.close(stdin_pipe)
        events = await read_all(terminal)
        assert [event.data for event in events] == ["a", "b", "\x1b[A"]
        assert events[2].name == "up"

    async def test_character_split_across_reads(self, terminal: ProcessTerminal, stdin_pipe):
        terminal._attach_input()
        # The first read takes 4096 bytes, ending halfway through "é"
        os.write(stdin_pipe, b"a" * 4095 + b"\xc3")
        os.write(stdin_pipe, b"\xa9")
        os.close(stdin_pipe)
        text = "".join(event.data for event in await read_all(terminal))
        assert text == "a" * 4095 + "é"

    async def test_truncated_character_at_end_of_input(self, terminal: ProcessTerminal, stdin_pipe):
        terminal._attach_input()
        os.write(stdin_pipe, b"x\xc3")
        os.close(stdin_pipe)
        assert [event.data for event in await read_all(terminal)] == ["x", "\ufffd"]

    async def test_end_of_input_ends_the_stream(self, terminal: ProcessTerminal, stdin_pipe):
        terminal._attach_input()
        os.close(stdin_pipe)
        assert await read_all(terminal) == []
        assert not terminal._stdin_reader_active

    async def test_pending_escape_is_delivered_at_end_of_input(self, terminal: ProcessTerminal, stdin_pipe):
        terminal._attach_input()
        os.write(stdin_pipe, b"\x1b")
        os.close(stdin_pipe)
        events = await read_all(terminal)
        assert [event.data for event in events] == ["\x1b"]

    async def test_editor_returns_when_input_closes(self, terminal: ProcessTerminal, stdin_pipe, capsys):
        terminal._attach_input()
        editor = LineEditor(terminal, EvaluationDispatcher(PythonEvaluator()), colors=False)
        os.close(stdin_pipe)
        assert await asyncio.wait_for(editor.run(), 2) == 0
