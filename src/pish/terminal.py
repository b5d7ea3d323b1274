"""Terminal abstraction for raw-mode stdin/stdout interaction.

Provides a ``Terminal`` protocol and a concrete ``ProcessTerminal``
implementation that manages raw mode, cursor positioning, area erasing, and
cursor position queries via ANSI escape sequences. Key presses are delivered
as an ordered async stream of :class:`~pish.keys.KeyEvent`.
"""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import sys
import termios
import tty
from typing import AsyncIterator, Protocol

from pish.errors import CursorQueryError
from pish.keys import KeyEvent, parse_cursor_position, parse_key
from pish.screen import Position
from pish.stdin_buffer import StdinBuffer

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# ANSI escape constants
# ---------------------------------------------------------------------------

_HIDE_CURSOR = "\x1b[?25l"
_SHOW_CURSOR = "\x1b[?25h"
_CLEAR_SCREEN = "\x1b[2J\x1b[H"
_MOVE_TO_FMT = "\x1b[{y};{x}H"
_ERASE_CHARS_FMT = "\x1b[{n}X"
_QUERY_CURSOR = "\x1b[6n"

DEFAULT_CURSOR_QUERY_TIMEOUT = 0.5


# ---------------------------------------------------------------------------
# Terminal protocol
# ---------------------------------------------------------------------------


class Terminal(Protocol):
    """Interface for the terminal operations the line editor needs."""

    def read_key_events(self) -> AsyncIterator[KeyEvent]: ...

    def write(self, data: str) -> None: ...

    def move_to(self, x: int, y: int) -> None: ...

    def erase_area(self, x: int, y: int, width: int, height: int) -> None: ...

    def hide_cursor(self, hidden: bool = True) -> None: ...

    async def get_cursor_location(self) -> Position: ...

    def clear(self) -> None: ...

    @property
    def columns(self) -> int: ...

    @property
    def rows(self) -> int: ...


# ---------------------------------------------------------------------------
# ProcessTerminal implementation
# ---------------------------------------------------------------------------


class ProcessTerminal:
    """Concrete terminal backed by ``sys.stdin``/``sys.stdout``.

    Input is read by an event-loop reader, split into complete sequences by
    :class:`StdinBuffer`, and queued as key events. Cursor position reports
    are intercepted while a query is pending and never reach the queue.
    """

    def __init__(self, cursor_query_timeout: float = DEFAULT_CURSOR_QUERY_TIMEOUT) -> None:
        self._cursor_query_timeout = cursor_query_timeout
        # None marks the end of input
        self._events: asyncio.Queue[KeyEvent | None] = asyncio.Queue()
        self._stdin_buffer: StdinBuffer | None = None
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._stdin_reader_active: bool = False
        self._original_termios: list | None = None
        self._pending_query: asyncio.Future[Position] | None = None

    # -- properties ---------------------------------------------------------

    @property
    def columns(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).columns
        except (ValueError, OSError):
            return 80

    @property
    def rows(self) -> int:
        try:
            return os.get_terminal_size(sys.stdout.fileno()).lines
        except (ValueError, OSError):
            return 24

    # -- start / stop -------------------------------------------------------

    def start(self) -> None:
        """Enable raw input mode and begin reading stdin.

        Output post-processing stays on so ``\\n`` still returns the carriage
        for anything the evaluated code prints.
        """
        fd = sys.stdin.fileno()
        self._original_termios = termios.tcgetattr(fd)

        tty.setraw(fd)
        mode = termios.tcgetattr(fd)
        mode[1] |= termios.OPOST
        termios.tcsetattr(fd, termios.TCSADRAIN, mode)

        self._attach_input()

    def _attach_input(self) -> None:
        self._stdin_buffer = StdinBuffer(timeout=0.01)
        self._stdin_buffer.on_data(self._on_sequence)
        self._decoder.reset()
        self._start_stdin_reader()

    def stop(self) -> None:
        """Restore terminal state and clean up all handlers."""
        if self._stdin_buffer is not None:
            self._stdin_buffer.clear()
            self._stdin_buffer = None

        self._remove_stdin_reader()

        if self._pending_query is not None and not self._pending_query.done():
            self._pending_query.cancel()
        self._pending_query = None

        self._raw_write(_SHOW_CURSOR)

        fd = sys.stdin.fileno()
        if self._original_termios is not None:
            termios.tcsetattr(fd, termios.TCSADRAIN, self._original_termios)
            self._original_termios = None

    # -- input --------------------------------------------------------------

    async def read_key_events(self) -> AsyncIterator[KeyEvent]:
        """Yield key events in arrival order until stdin is closed."""
        while True:
            event = await self._events.get()
            if event is None:
                return
            yield event

    # -- output -------------------------------------------------------------

    def write(self, data: str) -> None:
        self._raw_write(data)

    def move_to(self, x: int, y: int) -> None:
        self._raw_write(_MOVE_TO_FMT.format(x=max(x, 1), y=max(y, 1)))

    def erase_area(self, x: int, y: int, width: int, height: int) -> None:
        """Blank a rectangle of *width* x *height* cells starting at ``(x, y)``."""
        if width <= 0 or height <= 0:
            return
        parts = []
        for row in range(max(y, 1), y + height):
            parts.append(_MOVE_TO_FMT.format(x=max(x, 1), y=row))
            parts.append(_ERASE_CHARS_FMT.format(n=width))
        self._raw_write("".join(parts))

    def hide_cursor(self, hidden: bool = True) -> None:
        self._raw_write(_HIDE_CURSOR if hidden else _SHOW_CURSOR)

    def clear(self) -> None:
        self._raw_write(_CLEAR_SCREEN)

    # -- cursor position query ---------------------------------------------

    async def get_cursor_location(self) -> Position:
        """Ask the terminal where the cursor is.

        Raises :class:`CursorQueryError` when no report arrives in time.
        Concurrent callers share one outstanding query.
        """
        loop = asyncio.get_running_loop()
        if self._pending_query is None or self._pending_query.done():
            self._pending_query = loop.create_future()
            self._raw_write(_QUERY_CURSOR)
        query = self._pending_query
        try:
            return await asyncio.wait_for(asyncio.shield(query), self._cursor_query_timeout)
        except asyncio.TimeoutError as exc:
            error = CursorQueryError("No cursor position report")
            # A late report must not answer the next query
            if not query.done():
                query.set_exception(error)
                query.exception()
            raise error from exc

    # -- private: stdin reading --------------------------------------------

    def _on_sequence(self, data: str) -> None:
        query = self._pending_query
        if query is not None and not query.done():
            location = parse_cursor_position(data)
            if location is not None:
                query.set_result(Position(x=location[0], y=location[1]))
                return
        self._events.put_nowait(parse_key(data))

    def _start_stdin_reader(self) -> None:
        """Register an asyncio reader on stdin to feed the stdin buffer."""
        if self._stdin_reader_active:
            return
        loop = asyncio.get_running_loop()
        loop.add_reader(sys.stdin.fileno(), self._on_stdin_readable)
        self._stdin_reader_active = True

    def _remove_stdin_reader(self) -> None:
        if not self._stdin_reader_active:
            return
        try:
            loop = asyncio.get_running_loop()
            loop.remove_reader(sys.stdin.fileno())
        except (RuntimeError, ValueError):
            pass
        self._stdin_reader_active = False

    def _on_stdin_readable(self) -> None:
        """Callback invoked by the event loop when stdin has data."""
        try:
            raw = os.read(sys.stdin.fileno(), 4096)
        except (BlockingIOError, InterruptedError):
            return
        except OSError as exc:
            logger.debug("stdin read failed: %s", exc)
            self._on_stdin_closed()
            return

        if not raw:
            self._on_stdin_closed()
            return

        # Multi-byte characters may be split across reads
        data = self._decoder.decode(raw)
        if data and self._stdin_buffer is not None:
            self._stdin_buffer.process(data)

    def _on_stdin_closed(self) -> None:
        """Deliver what is left of the input, then end the key stream."""
        self._remove_stdin_reader()
        tail = self._decoder.decode(b"", final=True)
        if self._stdin_buffer is not None:
            if tail:
                self._stdin_buffer.process(tail)
            for sequence in self._stdin_buffer.flush():
                self._on_sequence(sequence)
        self._events.put_nowait(None)

    # -- private: raw write ------------------------------------------------

    def _raw_write(self, data: str) -> None:
        """Write directly to stdout, bypassing buffering."""
        try:
            sys.stdout.write(data)
            sys.stdout.flush()
        except OSError as exc:
            logger.debug("terminal write failed: %s", exc)
