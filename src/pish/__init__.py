"""pish: interactive Python shell with a screen-position line editor."""

__version__ = "0.1.0"

# Editing model
from pish.buffer import TextBuffer
from pish.history import DEFAULT_CAPACITY, HistoryStore
from pish.screen import Position, ScreenMapper, ScrollAdjustment, position_for

# Evaluation
from pish.dispatcher import (
    EvaluationDispatcher,
    EvaluationResult,
    Failed,
    Ok,
    SyntaxRetry,
    classify,
    format_error,
    format_result,
    format_value,
    is_syntax_failure,
)
from pish.evaluator import Evaluator, PythonEvaluator

# Editor and terminal
from pish.editor import EditorState, LineEditor, Session
from pish.keybindings import DEFAULT_EDITOR_KEYBINDINGS, EditorAction, EditorKeybindingsManager
from pish.keys import KeyEvent, parse_key
from pish.terminal import ProcessTerminal, Terminal

# Errors
from pish.errors import (
    CompileError,
    CursorQueryError,
    EvaluationTimeout,
    PishError,
    SessionExit,
    ShellCommandError,
)

# Configuration and persistence
from pish.settings import Settings, load_settings
from pish.storage import HistoryBackend, SQLiteHistory

__all__ = [
    "__version__",
    "CompileError",
    "CursorQueryError",
    "DEFAULT_CAPACITY",
    "DEFAULT_EDITOR_KEYBINDINGS",
    "EditorAction",
    "EditorKeybindingsManager",
    "EditorState",
    "EvaluationDispatcher",
    "EvaluationResult",
    "EvaluationTimeout",
    "Evaluator",
    "Failed",
    "HistoryBackend",
    "HistoryStore",
    "KeyEvent",
    "LineEditor",
    "Ok",
    "PishError",
    "Position",
    "ProcessTerminal",
    "PythonEvaluator",
    "SQLiteHistory",
    "ScreenMapper",
    "ScrollAdjustment",
    "Session",
    "SessionExit",
    "Settings",
    "ShellCommandError",
    "SyntaxRetry",
    "Terminal",
    "TextBuffer",
    "classify",
    "format_error",
    "format_result",
    "format_value",
    "is_syntax_failure",
    "load_settings",
    "parse_key",
    "position_for",
]
