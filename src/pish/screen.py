"""Mapping between buffer offsets and wrapped terminal positions.

Terminal coordinates are 1-based ``(x, y)``. Offsets are measured in display
columns from the start of the buffer; the prompt occupies the first
``prompt_width`` columns of the first row.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class Position:
    """An absolute terminal cell, 1-based."""

    x: int = 1
    y: int = 1


@dataclass(frozen=True)
class ScrollAdjustment:
    """Result of scroll compensation after a redraw."""

    delta: int = 0
    needs_newline: bool = False


def position_for(offset: int, prompt_width: int, columns: int) -> tuple[int, int]:
    """Return ``(col, row)`` of *offset* relative to the prompt anchor.

    A non-positive width or a negative offset yields ``(0, 0)``.
    """
    if columns <= 0 or offset < 0:
        return 0, 0
    index = offset + max(prompt_width, 0)
    row = index // columns
    col = index - columns * row
    if col < 0:
        col = 0
    return col, row


class ScreenMapper:
    """Converts buffer offsets into screen positions for one prompt line."""

    def __init__(self, prompt_width: int = 0) -> None:
        self.prompt_width = prompt_width

    def relative(self, offset: int, columns: int) -> tuple[int, int]:
        return position_for(offset, self.prompt_width, columns)

    def absolute(self, offset: int, start: Position, columns: int) -> Position:
        """Screen position of *offset* given the prompt anchor *start*."""
        col, row = self.relative(offset, columns)
        return Position(x=start.x + col, y=start.y + row)

    def compensate_scroll(
        self,
        start: Position,
        end_offset: int,
        columns: int,
        rows: int,
    ) -> ScrollAdjustment:
        """Shift *start* upward when the rendered text reached the bottom row.

        When the end of the buffer lands on or past the last terminal row the
        terminal has scrolled, so the anchor row moves by the overflow
        (a non-positive delta). When the overflow is exactly one row and the
        end sits at column zero, the caller must emit one newline so the
        cursor ends up on a fresh empty line rather than the previous one.
        """
        col, row = self.relative(end_offset, columns)
        end_row = start.y + row
        if end_row < rows:
            return ScrollAdjustment()
        delta = rows - end_row
        start.y += delta
        return ScrollAdjustment(delta=delta, needs_newline=delta == -1 and col == 0)
