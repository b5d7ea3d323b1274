"""Python code evaluation against one long-lived namespace.

``PythonEvaluator`` compiles source in ``"eval"`` or ``"exec"`` mode with
top-level ``await`` allowed. In ``"exec"`` mode a trailing expression
statement is evaluated separately so its value becomes the result, the way
the interactive interpreter echoes the last expression.

Synchronous code runs on a daemon worker thread; coroutine code runs on the
event loop. Either way the caller just awaits :meth:`PythonEvaluator.evaluate`,
and a caller that stops waiting (a timeout) leaves the work running in the
background without blocking process exit.
"""

from __future__ import annotations

import ast
import asyncio
import builtins
import inspect
import logging
import threading
from types import CodeType
from typing import Any, Callable, Literal, Protocol

from pish.errors import CompileError

logger = logging.getLogger(__name__)

EvalMode = Literal["eval", "exec"]

_COMPILE_FLAGS = ast.PyCF_ALLOW_TOP_LEVEL_AWAIT
SOURCE_FILENAME = "<shell>"


class Evaluator(Protocol):
    """Runs source text against a persistent namespace."""

    async def evaluate(self, source: str, mode: EvalMode = "exec") -> Any: ...


def _settle(future: asyncio.Future[Any], result: Any, error: BaseException | None) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


def run_in_daemon_thread(func: Callable[..., Any], *args: Any) -> asyncio.Future[Any]:
    """Run ``func(*args)`` on a daemon thread and return a loop future.

    The thread is never joined, so an abandoned call cannot hold up
    interpreter shutdown.
    """
    loop = asyncio.get_running_loop()
    future: asyncio.Future[Any] = loop.create_future()

    def worker() -> None:
        result: Any = None
        error: BaseException | None = None
        try:
            result = func(*args)
        except BaseException as exc:  # noqa: BLE001 -- handed to the awaiting task
            error = exc
        try:
            loop.call_soon_threadsafe(_settle, future, result, error)
        except RuntimeError:
            logger.debug("evaluation finished after the event loop closed")

    threading.Thread(target=worker, name="pish-eval", daemon=True).start()
    return future


class PythonEvaluator:
    """Evaluates Python source in a namespace shared across calls."""

    def __init__(self, namespace: dict[str, Any] | None = None) -> None:
        self.namespace: dict[str, Any] = namespace if namespace is not None else {}
        self.namespace.setdefault("__name__", "__main__")
        self.namespace.setdefault("__builtins__", builtins)

    async def evaluate(self, source: str, mode: EvalMode = "exec") -> Any:
        """Run *source* and return its value.

        Compilation happens before anything runs; a failure there raises
        :class:`CompileError`. Awaitable results are awaited, and a non-``None``
        result is bound to ``_`` in the namespace.
        """
        body, last = self.compile_source(source, mode)
        result = None
        if body is not None:
            await self._run(body)
        if last is not None:
            result = await self._run(last)

        if inspect.isawaitable(result):
            result = await result
        if result is not None:
            self.namespace["_"] = result
        return result

    def compile_source(self, source: str, mode: EvalMode = "exec") -> tuple[CodeType | None, CodeType | None]:
        """Compile *source* into ``(statements, trailing_expression)`` code objects."""
        try:
            if mode == "eval":
                return None, compile(source, SOURCE_FILENAME, "eval", _COMPILE_FLAGS)
            return self._split_trailing_expression(source)
        except SyntaxError as exc:
            raise CompileError(exc) from exc

    def _split_trailing_expression(self, source: str) -> tuple[CodeType | None, CodeType | None]:
        """Compile *source* as statements plus an optional trailing expression."""
        tree = ast.parse(source, filename=SOURCE_FILENAME, mode="exec")
        last: CodeType | None = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            expr = ast.Expression(tree.body.pop().value)
            last = compile(expr, SOURCE_FILENAME, "eval", _COMPILE_FLAGS)
        body = compile(tree, SOURCE_FILENAME, "exec", _COMPILE_FLAGS) if tree.body else None
        return body, last

    async def _run(self, code: CodeType) -> Any:
        if code.co_flags & inspect.CO_COROUTINE:
            # Top-level await: evaluating the code object yields a coroutine
            return await eval(code, self.namespace)
        return await run_in_daemon_thread(eval, code, self.namespace)
