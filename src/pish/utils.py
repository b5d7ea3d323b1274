"""Terminal text utilities: ANSI stripping, width measurement, character classes."""

from __future__ import annotations

import re
import unicodedata

import grapheme
import wcwidth as _wcwidth

# ---------------------------------------------------------------------------
# Regex patterns
# ---------------------------------------------------------------------------

# CSI sequences (any final byte) and OSC sequences terminated by BEL or ST
_STRIP_RE = re.compile(r"\x1b\[[0-9;?]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)")

_WHITESPACE_RE = re.compile(r"\s")

# ---------------------------------------------------------------------------
# Width cache (capped at 512 entries)
# ---------------------------------------------------------------------------

_width_cache: dict[str, int] = {}
_WIDTH_CACHE_MAX = 512


def strip_ansi(text: str) -> str:
    """Remove ANSI escape sequences from *text*."""
    return _STRIP_RE.sub("", text)


def _grapheme_width(g: str) -> int:
    """Return the terminal display width of a single grapheme cluster."""
    cp = ord(g[0])
    if cp < 0x20 or (0x7F <= cp <= 0x9F):
        return 0
    if len(g) > 1:
        # Emoji presentation selector or ZWJ sequence
        if "\ufe0f" in g or "\u200d" in g:
            return 2
        if unicodedata.category(g[0]).startswith("M"):
            return 0
    return max(_wcwidth.wcwidth(g[0]), 0)


def visible_width(text: str) -> int:
    """Calculate the visible terminal width of *text*.

    ANSI escape sequences are ignored. Pure ASCII takes a fast path;
    everything else is measured per grapheme cluster and cached.
    """
    if not text:
        return 0

    stripped = _STRIP_RE.sub("", text)
    if stripped.isascii() and stripped.isprintable():
        return len(stripped)

    cached = _width_cache.get(stripped)
    if cached is not None:
        return cached

    total = sum(_grapheme_width(g) for g in grapheme.graphemes(stripped))

    if len(_width_cache) >= _WIDTH_CACHE_MAX:
        _width_cache.clear()
    _width_cache[stripped] = total
    return total


# ---------------------------------------------------------------------------
# Character classes for word motion
# ---------------------------------------------------------------------------


def is_whitespace_char(char: str) -> bool:
    return bool(_WHITESPACE_RE.match(char))


def is_word_char(char: str) -> bool:
    """Word characters: letters, digits, underscore and hyphen."""
    return char == "-" or char == "_" or char.isalnum()


def char_class(char: str) -> str:
    """Classify *char* as ``"word"``, ``"space"`` or ``"punct"``."""
    if is_word_char(char):
        return "word"
    if is_whitespace_char(char):
        return "space"
    return "punct"
