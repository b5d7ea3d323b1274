"""Edit buffer: the in-progress line and its logical cursor."""

from __future__ import annotations

from pish.utils import char_class


class TextBuffer:
    """A line of text with a cursor index in ``[0, len(text)]``.

    Every index argument is clamped into range instead of raising, so
    callers can pass ``cursor - 1`` or ``cursor + 1`` without bounds checks.
    The buffer has no side effects; redrawing is the caller's job.
    """

    def __init__(self, text: str = "", cursor: int | None = None) -> None:
        self._text = text
        self._cursor = len(text) if cursor is None else self._clamp(cursor)

    @property
    def text(self) -> str:
        return self._text

    @property
    def cursor(self) -> int:
        return self._cursor

    def __len__(self) -> int:
        return len(self._text)

    def __bool__(self) -> bool:
        return bool(self._text)

    def __repr__(self) -> str:
        return f"TextBuffer({self._text!r}, cursor={self._cursor})"

    def _clamp(self, index: int) -> int:
        return max(0, min(index, len(self._text)))

    # -- primitive edits ----------------------------------------------------

    def insert_at(self, index: int, text: str) -> None:
        """Insert *text* at *index*; the cursor shifts if it sits after it."""
        index = self._clamp(index)
        self._text = self._text[:index] + text + self._text[index:]
        if self._cursor > index:
            self._cursor += len(text)

    def delete_range(self, start: int, end: int) -> str:
        """Delete ``text[start:end]`` and return what was removed."""
        start, end = sorted((self._clamp(start), self._clamp(end)))
        removed = self._text[start:end]
        self._text = self._text[:start] + self._text[end:]
        if self._cursor > end:
            self._cursor -= end - start
        elif self._cursor > start:
            self._cursor = start
        return removed

    def move_cursor(self, index: int) -> None:
        self._cursor = self._clamp(index)

    # -- editing helpers ----------------------------------------------------

    def insert(self, text: str) -> None:
        """Insert *text* at the cursor and advance past it (typing)."""
        at = self._cursor
        self.insert_at(at, text)
        self._cursor = at + len(text)

    def delete_backward(self) -> bool:
        """Delete the character left of the cursor. Returns whether it did."""
        if self._cursor == 0:
            return False
        self.delete_range(self._cursor - 1, self._cursor)
        return True

    def delete_forward(self) -> bool:
        """Delete the character at the cursor. Returns whether it did."""
        if self._cursor >= len(self._text):
            return False
        self.delete_range(self._cursor, self._cursor + 1)
        return True

    def reset(self, text: str = "") -> None:
        """Replace the content and put the cursor at its end."""
        self._text = text
        self._cursor = len(text)

    # -- word motion --------------------------------------------------------

    def word_left(self) -> int:
        """Index of the start of the character run ending at the cursor."""
        if self._cursor == 0:
            return 0
        kind = char_class(self._text[self._cursor - 1])
        index = self._cursor - 1
        while index > 0 and char_class(self._text[index - 1]) == kind:
            index -= 1
        return index

    def word_right(self) -> int:
        """Index of the end of the character run starting at the cursor."""
        if self._cursor >= len(self._text):
            return len(self._text)
        kind = char_class(self._text[self._cursor])
        index = self._cursor + 1
        while index < len(self._text) and char_class(self._text[index]) == kind:
            index += 1
        return index
