"""Single-line editor anchored to the live terminal cursor.

The editor keeps three views of the same line in step: the logical buffer
(:class:`~pish.buffer.TextBuffer`), the wrapped screen layout computed by
:class:`~pish.screen.ScreenMapper`, and the terminal's real cursor, which is
re-read after every redraw because output and scrolling move it in ways the
arithmetic cannot see.

Key events are handled strictly one at a time by :meth:`LineEditor.run`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Literal

from pish.buffer import TextBuffer
from pish.dispatcher import EvaluationDispatcher, EvaluationResult, format_result
from pish.errors import CursorQueryError, SessionExit
from pish.highlight import Highlighter, highlight_python
from pish.history import HistoryStore
from pish.keybindings import EditorKeybindingsManager
from pish.keys import KeyEvent
from pish.runtime import rewrite_shell_escape
from pish.screen import Position, ScreenMapper
from pish.settings import DEFAULT_PROMPT
from pish.storage import HistoryBackend
from pish.terminal import Terminal
from pish.utils import visible_width

logger = logging.getLogger(__name__)

EditorState = Literal["idle", "prompting", "editing", "submitting"]

HELP_TEXT = """Available commands

clear - Clear screen
exit - Exit
help - Show this help screen
version - Show version

Shell commands: $ <command>  (runs through sh)
"""


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


@dataclass
class Session:
    """Everything one interactive session edits: buffer, anchors, history."""

    prompt: str = DEFAULT_PROMPT
    history: HistoryStore = field(default_factory=HistoryStore)
    buffer: TextBuffer = field(default_factory=TextBuffer)
    start_position: Position = field(default_factory=Position)
    end_position: Position = field(default_factory=Position)
    last_known_position: Position = field(default_factory=Position)

    def __post_init__(self) -> None:
        self.mapper = ScreenMapper(visible_width(self.prompt))

    @property
    def prompt_width(self) -> int:
        return self.mapper.prompt_width

    def offset(self, index: int) -> int:
        """Display columns taken by the buffer text before *index*."""
        return visible_width(self.buffer.text[:index])

    def screen_position(self, index: int, columns: int) -> Position:
        return self.mapper.absolute(self.offset(index), self.start_position, columns)


# ---------------------------------------------------------------------------
# LineEditor
# ---------------------------------------------------------------------------


class LineEditor:
    """Turns key events into buffer edits, redraws and submissions."""

    def __init__(
        self,
        terminal: Terminal,
        dispatcher: EvaluationDispatcher,
        session: Session | None = None,
        *,
        keybindings: EditorKeybindingsManager | None = None,
        highlighter: Highlighter = highlight_python,
        history_backend: HistoryBackend | None = None,
        colors: bool = True,
        version: str = "",
    ) -> None:
        self.terminal = terminal
        self.dispatcher = dispatcher
        self.session = session or Session()
        self.keybindings = keybindings or EditorKeybindingsManager()
        self.highlighter = highlighter
        self.history_backend = history_backend
        self.colors = colors
        self.version = version
        self.state: EditorState = "idle"

        self._pending_writes: set[asyncio.Future[Any]] = set()
        self._builtins: dict[str, Callable[[], Awaitable[None]]] = {
            "help": self._builtin_help,
            "clear": self._builtin_clear,
            "exit": self._builtin_exit,
            "version": self._builtin_version,
        }

    # -- main loop ----------------------------------------------------------

    async def run(self) -> int:
        """Prompt and handle keys until the session ends. Returns the exit code."""
        await self.show_prompt()
        try:
            async for event in self.terminal.read_key_events():
                await self.handle_key(event)
        except SessionExit as exc:
            return exc.code
        finally:
            self.state = "idle"
            await self.drain()
        return 0

    async def drain(self) -> None:
        """Wait for outstanding history writes."""
        if self._pending_writes:
            await asyncio.gather(*self._pending_writes, return_exceptions=True)

    async def handle_key(self, event: KeyEvent) -> None:  # noqa: C901
        buffer = self.session.buffer

        if event.is_character:
            buffer.insert(event.data)
            await self.update_line()
            return

        action = self.keybindings.action_for(event)
        if action is None:
            logger.debug("unbound key %r", event.data)
            return

        if action == "submit":
            await self._submit()
        elif action == "cancel":
            await self._cancel()
        elif action == "clearScreen":
            await self.clear_screen()
        elif action == "deleteCharBackward":
            if buffer.delete_backward():
                await self.update_line()
        elif action == "deleteCharForward":
            if buffer.delete_forward():
                await self.update_line()
        elif action == "historyPrevious":
            await self._recall(self.session.history.recall_previous())
        elif action == "historyNext":
            await self._recall(self.session.history.recall_next())
        elif action == "cursorLeft":
            self._move_cursor(buffer.cursor - 1)
        elif action == "cursorRight":
            self._move_cursor(buffer.cursor + 1)
        elif action == "cursorWordLeft":
            self._move_cursor(buffer.word_left())
        elif action == "cursorWordRight":
            self._move_cursor(buffer.word_right())
        elif action == "cursorLineStart":
            self._move_cursor(0)
        elif action == "cursorLineEnd":
            self._move_cursor(len(buffer))

    # -- drawing ------------------------------------------------------------

    async def show_prompt(self) -> None:
        """Start a fresh line: anchor at the live cursor and write the prompt."""
        self.state = "prompting"
        session = self.session
        session.buffer.reset()
        session.history.reset_cursor()

        start = await self._cursor_location()
        if start.x > 1:
            # Output left the cursor mid-line; the prompt always starts a row
            self.terminal.write("\r\n")
            fallback = Position(1, min(start.y + 1, self.terminal.rows))
            start = await self._cursor_location(fallback)

        session.start_position = Position(start.x, start.y)
        self.terminal.hide_cursor(False)
        self.terminal.write(session.prompt)
        session.end_position = Position(start.x + session.prompt_width, start.y)
        self.state = "editing"

    async def update_line(self) -> None:
        """Redraw prompt and buffer in place, then put the cursor back."""
        terminal = self.terminal
        session = self.session
        columns, rows = terminal.columns, terminal.rows
        text = session.buffer.text

        terminal.hide_cursor()
        height = max(session.end_position.y - session.start_position.y + 1, 1)
        terminal.erase_area(1, session.start_position.y, columns, height)
        terminal.move_to(session.start_position.x, session.start_position.y)
        terminal.write("\r" + session.prompt + (self.highlighter(text) if text else ""))

        adjustment = session.mapper.compensate_scroll(
            session.start_position, session.offset(len(text)), columns, rows
        )
        if adjustment.delta:
            logger.debug("scrolled %d, anchor now %s", adjustment.delta, session.start_position)
        if adjustment.needs_newline:
            terminal.write("\n")

        session.end_position = await self._cursor_location()

        cursor = session.screen_position(session.buffer.cursor, columns)
        terminal.move_to(cursor.x, cursor.y)
        terminal.hide_cursor(False)

    async def clear_screen(self) -> None:
        self.terminal.clear()
        session = self.session
        session.start_position = Position(1, 1)
        session.end_position = Position(1, 1)
        await self.update_line()

    def _move_cursor(self, index: int) -> None:
        """Move the logical and terminal cursor without redrawing."""
        buffer = self.session.buffer
        buffer.move_cursor(index)
        cursor = self.session.screen_position(buffer.cursor, self.terminal.columns)
        self.terminal.move_to(cursor.x, cursor.y)

    async def _cursor_location(self, fallback: Position | None = None) -> Position:
        """Live cursor position, or the last known one when the query fails."""
        session = self.session
        try:
            location = await self.terminal.get_cursor_location()
        except CursorQueryError as exc:
            location = fallback or Position(session.last_known_position.x, session.last_known_position.y)
            logger.debug("cursor query failed (%s); using %s", exc, location)
            return location
        session.last_known_position = Position(location.x, location.y)
        return location

    # -- line actions -------------------------------------------------------

    async def _recall(self, entry: str | None) -> None:
        if entry is None:
            return
        self.session.buffer.reset(entry)
        await self.update_line()

    def _leave_line(self) -> None:
        """Put the terminal cursor on the row after the rendered buffer."""
        session = self.session
        end = session.screen_position(len(session.buffer), self.terminal.columns)
        self.terminal.move_to(1, end.y)
        self.terminal.write("\r\n")

    async def _cancel(self) -> None:
        if not self.session.buffer:
            raise SessionExit(0)
        self._leave_line()
        await self.show_prompt()

    async def _submit(self) -> None:
        self.state = "submitting"
        line = self.session.buffer.text
        self._leave_line()

        builtin = self._builtins.get(line)
        if builtin is not None:
            await builtin()
            return

        if not line.strip():
            await self.show_prompt()
            return

        self.session.history.push(line)
        self._persist(line)

        result = await self.dispatcher.dispatch(rewrite_shell_escape(line))
        self._print_result(result)
        await self.show_prompt()

    def _print_result(self, result: EvaluationResult) -> None:
        text = format_result(result, width=self.terminal.columns, colors=self.colors)
        if text is None:
            return
        self.terminal.write(text if text.endswith("\n") else text + "\n")

    # -- history write-through ----------------------------------------------

    def _persist(self, line: str) -> None:
        if self.history_backend is None:
            return
        task = asyncio.ensure_future(self.history_backend.append(line))
        self._pending_writes.add(task)
        task.add_done_callback(self._on_persisted)

    def _on_persisted(self, task: asyncio.Future[Any]) -> None:
        self._pending_writes.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.warning("Failed to save history entry: %s", error)

    # -- built-in commands --------------------------------------------------

    async def _builtin_help(self) -> None:
        self.terminal.write(HELP_TEXT)
        await self.show_prompt()

    async def _builtin_clear(self) -> None:
        self.session.buffer.reset()
        await self.clear_screen()
        self.state = "editing"

    async def _builtin_exit(self) -> None:
        raise SessionExit(0)

    async def _builtin_version(self) -> None:
        self.terminal.write(f"Version {self.version}\n")
        await self.show_prompt()
