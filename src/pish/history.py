"""Bounded submission history with an up/down recall cursor."""

from __future__ import annotations

from typing import Iterable

DEFAULT_CAPACITY = 100


class HistoryStore:
    """Past submissions, oldest first, capped at *capacity*.

    ``cursor == len(entries)`` means the user is editing a fresh line.
    Recall moves the cursor one step at a time and silently clamps at
    both ends; only :meth:`push` changes the entries.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._capacity = max(capacity, 1)
        self._entries: list[str] = []
        self._cursor: int = 0

    @property
    def entries(self) -> list[str]:
        return list(self._entries)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def seed(self, lines: Iterable[str]) -> None:
        """Load previously persisted lines, keeping the newest *capacity*."""
        self._entries = list(lines)[-self._capacity:]
        self._cursor = len(self._entries)

    def push(self, line: str) -> None:
        self._entries.append(line)
        overflow = len(self._entries) - self._capacity
        if overflow > 0:
            del self._entries[:overflow]
        self._cursor = len(self._entries)

    def reset_cursor(self) -> None:
        self._cursor = len(self._entries)

    def recall_previous(self) -> str | None:
        """Step back one entry. Returns ``None`` at the oldest entry."""
        if self._cursor > 0 and self._cursor - 1 < len(self._entries):
            self._cursor -= 1
            return self._entries[self._cursor]
        return None

    def recall_next(self) -> str | None:
        """Step forward one entry, or back to an empty fresh line.

        Returns ``None`` only when there is no history at all.
        """
        if not self._entries:
            return None
        if self._cursor + 1 < len(self._entries):
            self._cursor += 1
            return self._entries[self._cursor]
        self._cursor = len(self._entries)
        return ""
