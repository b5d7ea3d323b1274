"""Tests for pish.evaluator -- Python evaluation against a shared namespace."""

from __future__ import annotations

import asyncio
import threading

import pytest

from pish.errors import CompileError
from pish.evaluator import SOURCE_FILENAME, PythonEvaluator, run_in_daemon_thread


@pytest.fixture
def evaluator() -> PythonEvaluator:
    return PythonEvaluator()


class TestEvalMode:
    async def test_expression(self, evaluator: PythonEvaluator):
        assert await evaluator.evaluate("1 + 1", "eval") == 2

    async def test_statement_is_a_syntax_error(self, evaluator: PythonEvaluator):
        with pytest.raises(CompileError) as info:
            await evaluator.evaluate("x = 1", "eval")
        assert isinstance(info.value.error, SyntaxError)
        assert info.value.error.filename == SOURCE_FILENAME

    async def test_runtime_error_propagates(self, evaluator: PythonEvaluator):
        with pytest.raises(ZeroDivisionError):
            await evaluator.evaluate("1 / 0", "eval")


class TestExecMode:
    async def test_trailing_expression_is_the_result(self, evaluator: PythonEvaluator):
        assert await evaluator.evaluate("x = 1; x + 1", "exec") == 2

    async def test_statements_only_return_none(self, evaluator: PythonEvaluator):
        assert await evaluator.evaluate("y = 5", "exec") is None

    async def test_multiline(self, evaluator: PythonEvaluator):
        source = "def double(n):\n    return n * 2\ndouble(21)"
        assert await evaluator.evaluate(source, "exec") == 42

    async def test_unbalanced_brace(self, evaluator: PythonEvaluator):
        with pytest.raises(CompileError):
            await evaluator.evaluate("{", "exec")

    async def test_syntax_error_raised_while_running_is_not_wrapped(self, evaluator: PythonEvaluator):
        with pytest.raises(SyntaxError) as info:
            await evaluator.evaluate("raise SyntaxError('bad input')", "exec")
        assert not isinstance(info.value, CompileError)


class TestNamespace:
    async def test_persists_between_calls(self, evaluator: PythonEvaluator):
        await evaluator.evaluate("counter = 10", "exec")
        await evaluator.evaluate("counter += 1", "exec")
        assert await evaluator.evaluate("counter", "eval") == 11

    async def test_uses_given_namespace(self):
        namespace = {"greeting": "hi"}
        evaluator = PythonEvaluator(namespace)
        await evaluator.evaluate("shout = greeting.upper()", "exec")
        assert namespace["shout"] == "HI"
        assert namespace["__name__"] == "__main__"

    async def test_last_result_is_bound_to_underscore(self):
        namespace: dict = {}
        evaluator = PythonEvaluator(namespace)
        await evaluator.evaluate("6 * 7", "eval")
        assert namespace["_"] == 42
        assert await evaluator.evaluate("_ + 1", "eval") == 43
        await evaluator.evaluate("unused = 1", "exec")
        assert namespace["_"] == 43

    async def test_last_result_stays_out_of_builtins(self):
        import builtins

        before = getattr(builtins, "_", None)
        await PythonEvaluator().evaluate("'only here'", "eval")
        assert getattr(builtins, "_", None) is before


class TestAwait:
    async def test_top_level_await(self, evaluator: PythonEvaluator):
        await evaluator.evaluate("import asyncio", "exec")
        assert await evaluator.evaluate("await asyncio.sleep(0, result=5)", "eval") == 5

    async def test_top_level_await_in_statements(self, evaluator: PythonEvaluator):
        await evaluator.evaluate("import asyncio", "exec")
        source = "value = await asyncio.sleep(0, result=3); value * 2"
        assert await evaluator.evaluate(source, "exec") == 6

    async def test_awaitable_result_is_awaited(self, evaluator: PythonEvaluator):
        await evaluator.evaluate("import asyncio", "exec")
        assert await evaluator.evaluate("asyncio.sleep(0, result='done')", "eval") == "done"


class TestDaemonThread:
    async def test_runs_off_the_loop_thread(self):
        loop_thread = threading.get_ident()
        worker_thread = await run_in_daemon_thread(threading.get_ident)
        assert worker_thread != loop_thread

    async def test_exception_is_delivered(self):
        def boom() -> None:
            raise ValueError("bad")

        with pytest.raises(ValueError, match="bad"):
            await run_in_daemon_thread(boom)

    async def test_abandoned_call_does_not_block(self):
        release = threading.Event()
        future = run_in_daemon_thread(release.wait)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(asyncio.shield(future), 0.05)
        release.set()
        assert await future is True
