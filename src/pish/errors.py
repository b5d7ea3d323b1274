"""Exception types shared across the shell."""

from __future__ import annotations


class PishError(Exception):
    """Base class for shell errors."""


class CursorQueryError(PishError):
    """The terminal did not answer a cursor position request."""


class EvaluationTimeout(PishError):
    """An evaluation did not finish before the configured timeout."""

    def __init__(self, timeout_ms: int) -> None:
        super().__init__(f"Timeout after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class ShellCommandError(PishError):
    """A shell command exited with a non-zero status."""

    def __init__(self, message: str, exit_code: int) -> None:
        super().__init__(message)
        self.exit_code = exit_code


class SessionExit(PishError):
    """Raised to end the interactive session."""

    def __init__(self, code: int = 0) -> None:
        super().__init__(f"Session exit ({code})")
        self.code = code


class CompileError(PishError):
    """The submitted source did not compile in the requested mode.

    Wraps the ``SyntaxError`` from :func:`compile` / :func:`ast.parse` so it
    cannot be confused with one raised while user code runs.
    """

    def __init__(self, error: SyntaxError) -> None:
        super().__init__(str(error))
        self.error = error
