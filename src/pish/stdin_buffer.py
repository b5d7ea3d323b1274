"""Split raw stdin chunks into complete key sequences.

A single ``read()`` may return several key presses at once (fast typing,
pasted text) or only part of an escape sequence. :class:`StdinBuffer`
accumulates data and emits one complete sequence at a time, in arrival
order. An escape sequence still incomplete after a short timeout is flushed
as-is, so a lone ESC key press is not held forever.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Literal

ESC = "\x1b"

Completeness = Literal["complete", "incomplete", "not-escape"]


def _is_complete_sequence(data: str) -> Completeness:
    """Check whether *data* is a complete escape sequence."""
    if not data.startswith(ESC):
        return "not-escape"
    if len(data) == 1:
        return "incomplete"

    introducer = data[1]

    # CSI: parameters then one final byte in 0x40..0x7E
    if introducer == "[":
        if len(data) < 3:
            return "incomplete"
        return "complete" if 0x40 <= ord(data[-1]) <= 0x7E else "incomplete"

    # OSC: terminated by BEL or ST
    if introducer == "]":
        if data.endswith("\x07") or data.endswith(ESC + "\\"):
            return "complete"
        return "incomplete"

    # SS3: one more byte
    if introducer == "O":
        return "complete" if len(data) >= 3 else "incomplete"

    # Meta key: ESC followed by a single character
    return "complete"


def _extract_complete_sequences(buffer: str) -> tuple[list[str], str]:
    """Split *buffer* into complete sequences.

    Returns ``(sequences, remainder)`` where *remainder* is a trailing
    incomplete escape sequence.
    """
    sequences: list[str] = []
    pos = 0

    while pos < len(buffer):
        if buffer[pos] != ESC:
            sequences.append(buffer[pos])
            pos += 1
            continue

        end = pos + 1
        while True:
            if end > len(buffer):
                return sequences, buffer[pos:]
            status = _is_complete_sequence(buffer[pos:end])
            if status == "incomplete":
                end += 1
                continue
            sequences.append(buffer[pos:end])
            pos = end
            break

    return sequences, ""


class StdinBuffer:
    """Buffers stdin input and emits complete sequences."""

    def __init__(self, *, timeout: float = 0.01) -> None:
        self._buffer: str = ""
        self._timeout: float = timeout
        self._timeout_handle: asyncio.TimerHandle | None = None
        self._on_data: Callable[[str], None] | None = None

    def on_data(self, callback: Callable[[str], None]) -> None:
        """Set callback for complete sequences."""
        self._on_data = callback

    def _emit(self, data: str) -> None:
        if self._on_data:
            self._on_data(data)

    def process(self, data: str) -> None:
        """Feed input data into the buffer."""
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None

        self._buffer += data
        sequences, self._buffer = _extract_complete_sequences(self._buffer)
        for sequence in sequences:
            self._emit(sequence)

        if self._buffer:
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                # No event loop - flush immediately
                for sequence in self.flush():
                    self._emit(sequence)
            else:
                self._timeout_handle = loop.call_later(self._timeout, self._flush_timeout)

    def _flush_timeout(self) -> None:
        self._timeout_handle = None
        for sequence in self.flush():
            self._emit(sequence)

    def flush(self) -> list[str]:
        """Return whatever is buffered as a single sequence and clear it."""
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        if not self._buffer:
            return []
        sequences = [self._buffer]
        self._buffer = ""
        return sequences

    def clear(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        self._buffer = ""
