"""Keyboard input parsing for raw terminal sequences.

Turns one complete input sequence (as split by :class:`pish.stdin_buffer.StdinBuffer`)
into a :class:`KeyEvent`. Key names use the ``"ctrl+left"`` / ``"alt+b"`` /
``"enter"`` format, modifiers ordered ``ctrl+shift+alt+``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

KeyId = str

# ---------------------------------------------------------------------------
# Key event
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class KeyEvent:
    """A single key press.

    ``name`` is the key id (the character itself for printable input),
    ``is_character`` marks text to insert, ``data`` is the raw sequence.
    """

    name: KeyId
    is_character: bool = False
    data: str = ""


# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

MODIFIERS: dict[str, int] = {
    "shift": 1,
    "alt": 2,
    "ctrl": 4,
}

# Unmodified legacy sequences (CSI and SS3 forms)
LEGACY_KEY_SEQUENCES: dict[str, str] = {
    "\x1b[A": "up",
    "\x1b[B": "down",
    "\x1b[C": "right",
    "\x1b[D": "left",
    "\x1b[H": "home",
    "\x1b[F": "end",
    "\x1bOA": "up",
    "\x1bOB": "down",
    "\x1bOC": "right",
    "\x1bOD": "left",
    "\x1bOH": "home",
    "\x1bOF": "end",
    "\x1b[1~": "home",
    "\x1b[4~": "end",
    "\x1b[7~": "home",
    "\x1b[8~": "end",
    "\x1b[2~": "insert",
    "\x1b[3~": "delete",
    "\x1b[5~": "pageUp",
    "\x1b[6~": "pageDown",
    "\x1b[Z": "shift+tab",
    # rxvt control-arrows
    "\x1bOa": "ctrl+up",
    "\x1bOb": "ctrl+down",
    "\x1bOc": "ctrl+right",
    "\x1bOd": "ctrl+left",
}

_LETTER_KEYS: dict[str, str] = {
    "A": "up",
    "B": "down",
    "C": "right",
    "D": "left",
    "H": "home",
    "F": "end",
}

_TILDE_KEYS: dict[int, str] = {
    1: "home",
    2: "insert",
    3: "delete",
    4: "end",
    5: "pageUp",
    6: "pageDown",
    7: "home",
    8: "end",
}

# CSI 1;<mod> <letter>  and  CSI <num>;<mod> ~
_MODIFIED_LETTER_RE = re.compile(r"^\x1b\[1;(\d+)([ABCDHF])$")
_MODIFIED_TILDE_RE = re.compile(r"^\x1b\[(\d+);(\d+)~$")

# Cursor position report: CSI <row>;<col> R
CURSOR_POSITION_RE = re.compile(r"^\x1b\[(\d+);(\d+)R$")


def _modifier_prefix(modifier: int) -> str:
    """Build the ``ctrl+shift+alt+`` prefix from an xterm modifier parameter."""
    mod = max(modifier - 1, 0)
    prefix = ""
    if mod & MODIFIERS["ctrl"]:
        prefix += "ctrl+"
    if mod & MODIFIERS["shift"]:
        prefix += "shift+"
    if mod & MODIFIERS["alt"]:
        prefix += "alt+"
    return prefix


def _has_control(data: str) -> bool:
    return any(
        ord(ch) < 32 or ord(ch) == 0x7F or 0x80 <= ord(ch) <= 0x9F for ch in data
    )


# ---------------------------------------------------------------------------
# parse_key
# ---------------------------------------------------------------------------


def parse_key_name(data: str) -> KeyId | None:  # noqa: C901
    """Return the key id for a raw sequence, or ``None`` if unrecognised."""
    if not data:
        return None

    named = LEGACY_KEY_SEQUENCES.get(data)
    if named is not None:
        return named

    match = _MODIFIED_LETTER_RE.match(data)
    if match:
        return _modifier_prefix(int(match.group(1))) + _LETTER_KEYS[match.group(2)]

    match = _MODIFIED_TILDE_RE.match(data)
    if match:
        key = _TILDE_KEYS.get(int(match.group(1)))
        if key is None:
            return None
        return _modifier_prefix(int(match.group(2))) + key

    # Simple single-byte keys
    if data == "\x1b":
        return "escape"
    if data == "\r" or data == "\n":
        return "enter"
    if data == "\t":
        return "tab"
    if data == "\x7f" or data == "\x08":
        return "backspace"
    if data == "\x00":
        return "ctrl+space"

    # Ctrl + letter (0x01 - 0x1a)
    if len(data) == 1 and 1 <= ord(data) <= 26:
        return "ctrl+" + chr(ord(data) + ord("a") - 1)

    # Alt + key (ESC prefix)
    if len(data) == 2 and data[0] == "\x1b":
        ch = data[1]
        if ch == "\r" or ch == "\n":
            return "alt+enter"
        if ch == "\x7f" or ch == "\x08":
            return "alt+backspace"
        if 1 <= ord(ch) <= 26:
            return "ctrl+alt+" + chr(ord(ch) + ord("a") - 1)
        if ch.isupper():
            return "shift+alt+" + ch.lower()
        if ch.isprintable():
            return "alt+" + ch

    return None


def parse_key(data: str) -> KeyEvent:
    """Turn one complete input sequence into a :class:`KeyEvent`.

    Printable text (including multi-character chunks) becomes a character
    event; unrecognised control sequences get an empty name.
    """
    name = parse_key_name(data)
    if name is not None:
        return KeyEvent(name=name, is_character=False, data=data)
    if data and not _has_control(data):
        return KeyEvent(name=data, is_character=True, data=data)
    return KeyEvent(name="", is_character=False, data=data)


def parse_cursor_position(data: str) -> tuple[int, int] | None:
    """Parse a cursor position report into ``(x, y)``, 1-based."""
    match = CURSOR_POSITION_RE.match(data)
    if match is None:
        return None
    return int(match.group(2)), int(match.group(1))
