"""Evaluation dispatcher: classify a submitted line, evaluate it, format the outcome.

A line that contains no statement indicators is first tried as an
expression. If that attempt fails in a syntax-shaped way the same text is
tried once more as statements. Everything else (runtime failures, timeouts)
is final and comes back as a formatted error. User code calling ``exit()``
surfaces as :class:`~pish.errors.SessionExit`; nothing else escapes.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Literal, Union

from pish.errors import CompileError, EvaluationTimeout, SessionExit
from pish.evaluator import EvalMode, Evaluator
from pish.highlight import inspect_value, red

logger = logging.getLogger(__name__)

Classification = Literal["expression", "statement"]

STATEMENT_PATTERN = re.compile(
    r";|\n|\b(?:import|from|def|class|for|while|if|try|with|del|global|nonlocal"
    r"|return|raise|assert|pass|break|continue|async)\b"
)

# Exception types that mean "this text is not valid in this mode"
SYNTAX_ERRORS: tuple[type[BaseException], ...] = (CompileError,)

SCALAR_TYPES: tuple[type, ...] = (str, int, float, complex, bool, bytes)


def classify(line: str) -> Classification:
    """Guess whether *line* is a bare expression or statements."""
    return "statement" if STATEMENT_PATTERN.search(line) else "expression"


def is_syntax_failure(error: BaseException) -> bool:
    """Whether *error* means the submitted text itself failed to compile.

    Only the evaluator's compile step raises these. A ``SyntaxError`` raised
    while user code runs (``eval("{")``, an XML ``ParseError``) is a runtime
    failure and is never retried, since the code has already had effects.
    """
    return isinstance(error, SYNTAX_ERRORS)


# ---------------------------------------------------------------------------
# Attempt outcomes
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Ok:
    value: Any


@dataclass(frozen=True)
class SyntaxRetry:
    error: BaseException


@dataclass(frozen=True)
class Failed:
    error: BaseException


AttemptOutcome = Union[Ok, SyntaxRetry, Failed]


@dataclass
class EvaluationResult:
    """What one submission produced."""

    classification: Classification
    value: Any = None
    error: BaseException | None = None
    retried: bool = False
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_value(value: Any, *, width: int = 80, colors: bool = True) -> str | None:
    """Render a result for display; ``None`` means print nothing."""
    if value is None:
        return None
    if isinstance(value, SCALAR_TYPES):
        return str(value)
    return inspect_value(value, width=width, colors=colors)


def format_error(error: BaseException, *, colors: bool = True) -> str:
    """Render an error as ``Type: message``, newline-terminated."""
    detail = str(error)
    message = f"{type(error).__name__}: {detail}" if detail else type(error).__name__
    return (red(message) if colors else message) + "\n"


def format_result(result: EvaluationResult, *, width: int = 80, colors: bool = True) -> str | None:
    if result.error is not None:
        return format_error(result.error, colors=colors)
    return format_value(result.value, width=width, colors=colors)


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


def _exit_code(exc: SystemExit) -> int:
    if exc.code is None:
        return 0
    if isinstance(exc.code, int):
        return exc.code
    return 1


def _discard(task: asyncio.Future[Any]) -> None:
    """Done callback for an abandoned evaluation."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        logger.debug("abandoned evaluation failed: %r", error)


class EvaluationDispatcher:
    """Runs submitted lines through an :class:`Evaluator`.

    ``timeout_ms`` of zero (the default) waits as long as evaluation takes.
    """

    def __init__(self, evaluator: Evaluator, timeout_ms: int = 0) -> None:
        self.evaluator = evaluator
        self.timeout_ms = timeout_ms

    async def dispatch(self, line: str, timeout_ms: int | None = None) -> EvaluationResult:
        """Evaluate *line* and report the outcome. Raises only :class:`SessionExit`."""
        timeout_ms = self.timeout_ms if timeout_ms is None else timeout_ms
        classification = classify(line)
        started = time.monotonic()

        task = asyncio.ensure_future(self._evaluate(line, classification))
        if timeout_ms and timeout_ms > 0:
            done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
            if not done:
                # Stop waiting; the evaluation itself keeps running
                task.add_done_callback(_discard)
                logger.debug("evaluation timed out after %dms: %r", timeout_ms, line)
                return EvaluationResult(
                    classification=classification,
                    error=EvaluationTimeout(timeout_ms),
                    elapsed_ms=(time.monotonic() - started) * 1000,
                )

        result = await task
        result.elapsed_ms = (time.monotonic() - started) * 1000
        return result

    async def _evaluate(self, line: str, classification: Classification) -> EvaluationResult:
        if classification == "statement":
            outcome = await self._attempt(line, "exec", allow_retry=False)
            return self._result(classification, outcome)

        outcome = await self._attempt(line, "eval", allow_retry=True)
        if not isinstance(outcome, SyntaxRetry):
            return self._result(classification, outcome)

        logger.debug("retrying as statements: %r", line)
        outcome = await self._attempt(line, "exec", allow_retry=False)
        result = self._result(classification, outcome)
        result.retried = True
        return result

    async def _attempt(self, source: str, mode: EvalMode, *, allow_retry: bool) -> AttemptOutcome:
        try:
            value = await self.evaluator.evaluate(source, mode)
        except SystemExit as exc:
            raise SessionExit(_exit_code(exc)) from exc
        except Exception as exc:
            if not is_syntax_failure(exc):
                return Failed(exc)
            error = exc.error if isinstance(exc, CompileError) else exc
            return SyntaxRetry(error) if allow_retry else Failed(error)
        return Ok(value)

    @staticmethod
    def _result(classification: Classification, outcome: AttemptOutcome) -> EvaluationResult:
        if isinstance(outcome, Ok):
            return EvaluationResult(classification=classification, value=outcome.value)
        return EvaluationResult(classification=classification, error=outcome.error)
