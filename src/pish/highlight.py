"""Syntax highlighting for the edit line and the value inspector."""

from __future__ import annotations

import pprint
from typing import Any, Callable

from pygments import format as pygments_format
from pygments.formatters import TerminalFormatter
from pygments.lexers import PythonLexer

Highlighter = Callable[[str], str]

_RED = "\x1b[31m"
_RESET_FG = "\x1b[39m"

# Keep the text exactly as typed: no added or stripped newlines
_lexer = PythonLexer(stripnl=False, ensurenl=False)
_formatter = TerminalFormatter()


def highlight_python(source: str) -> str:
    """Colour *source* as Python for a terminal."""
    if not source:
        return ""
    return pygments_format(_lexer.get_tokens(source), _formatter)


def plain(source: str) -> str:
    return source


def red(text: str) -> str:
    return f"{_RED}{text}{_RESET_FG}"


def inspect_value(value: Any, *, width: int = 80, colors: bool = True) -> str:
    """Render *value* completely: no depth limit and no truncation."""
    text = pprint.pformat(value, width=max(width, 20), depth=None, sort_dicts=False)
    return highlight_python(text) if colors else text
