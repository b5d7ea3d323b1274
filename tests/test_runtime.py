"""Tests for pish.runtime -- namespace helpers and the shell escape."""

from __future__ import annotations

import os
import signal

import pytest

from pish.errors import ShellCommandError
from pish.evaluator import PythonEvaluator
from pish.runtime import (
    HOME,
    build_namespace,
    cd,
    exit_session,
    expand_path,
    glob_dir,
    rewrite_shell_escape,
    run_startup_file,
    sh,
    sh_see,
    spawn,
)
from pish.utils import strip_ansi


class TestSh:
    async def test_returns_stripped_stdout(self):
        assert await sh("echo hello") == "hello"

    async def test_multiline_output(self):
        assert await sh("printf 'a\\nb\\n'") == "a\nb"

    async def test_nonzero_exit_with_stderr(self):
        with pytest.raises(ShellCommandError) as info:
            await sh("echo oops 1>&2; exit 3")
        assert str(info.value) == "oops"
        assert info.value.exit_code == 3

    async def test_nonzero_exit_without_stderr(self):
        with pytest.raises(ShellCommandError) as info:
            await sh("exit 4")
        assert str(info.value) == "Exit code 4"

    async def test_runs_in_current_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert await sh("pwd -P") == os.path.realpath(os.getcwd())

    async def test_cd_changes_this_process(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "sub").mkdir()
        assert await sh("cd sub") is None
        assert os.getcwd() == os.path.realpath(tmp_path / "sub")


class TestShSee:
    async def test_output_is_shown_and_returned(self, capsys):
        assert await sh_see("echo one; echo two") == "one\ntwo"
        assert capsys.readouterr().out == "one\ntwo\n"

    async def test_stderr_is_shown(self, capsys):
        assert await sh_see("echo warn 1>&2") == ""
        assert capsys.readouterr().err == "warn\n"

    async def test_failure_is_returned_not_raised(self, capsys):
        result = await sh_see("echo oops 1>&2; exit 2")
        assert isinstance(result, ShellCommandError)
        assert str(result) == "oops"
        assert result.exit_code == 2

    async def test_failure_without_stderr(self):
        result = await sh_see("exit 5")
        assert str(result) == "Exit code 5"

    async def test_runs_in_current_directory(self, tmp_path, monkeypatch, capsys):
        monkeypatch.chdir(tmp_path)
        assert await sh_see("pwd -P") == os.path.realpath(os.getcwd())


class TestSpawn:
    def test_child_runs_in_its_own_session(self):
        pid = spawn("sleep", "5")
        try:
            assert pid != os.getpid()
            assert os.getsid(pid) == pid
        finally:
            os.kill(pid, signal.SIGTERM)
            os.waitpid(pid, 0)

    def test_child_uses_current_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        pid = spawn("touch", "marker")
        os.waitpid(pid, 0)
        assert (tmp_path / "marker").exists()

    def test_missing_command(self):
        with pytest.raises(FileNotFoundError):
            spawn("pish-no-such-command")


class TestGlobDir:
    def test_only_directories(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "src").mkdir()
        (tmp_path / "docs").mkdir()
        (tmp_path / "setup.cfg").write_text("")
        assert glob_dir("*") == ["docs", "src"]

    def test_recursive(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "a" / "b").mkdir(parents=True)
        (tmp_path / "a" / "bee.txt").write_text("")
        (tmp_path / "b2").mkdir()
        assert glob_dir("**/b*") == ["a/b", "b2"]

    def test_no_match(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert glob_dir("nothing*") == []


class TestCd:
    def test_relative(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        (tmp_path / "a").mkdir()
        cd("a")
        assert os.getcwd() == os.path.realpath(tmp_path / "a")
        cd("..")
        assert os.getcwd() == os.path.realpath(tmp_path)

    def test_home(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        cd()
        assert os.getcwd() == os.path.realpath(HOME)

    def test_missing_directory(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        with pytest.raises(FileNotFoundError):
            cd("nope")


class TestExpandPath:
    def test_tilde(self):
        assert expand_path("~") == HOME
        assert expand_path("~/x") == os.path.join(HOME, "x")

    def test_absolute_is_kept(self):
        assert expand_path("/tmp") == "/tmp"

    def test_relative_is_resolved(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert expand_path(" a/../b ") == os.path.join(os.getcwd(), "b")


class TestRewriteShellEscape:
    def test_dollar_prefix(self):
        assert rewrite_shell_escape("$ ls -la") == "sh('ls -la')"

    def test_quotes_are_escaped(self):
        assert rewrite_shell_escape("$ echo 'hi'") == "sh(\"echo 'hi'\")"

    @pytest.mark.parametrize("line", ["$ls", "x = '$ y'", " $ ls", "1 + 1"])
    def test_other_lines_unchanged(self, line):
        assert rewrite_shell_escape(line) == line


class TestNamespace:
    def test_helpers_present(self):
        namespace = build_namespace()
        for name in ("sh", "sh_see", "spawn", "glob_dir", "cd", "exit", "quit", "home", "inspect", "log"):
            assert name in namespace
        assert namespace["home"] == HOME

    def test_extra_entries(self):
        assert build_namespace(answer=42)["answer"] == 42

    def test_exit_raises_system_exit(self):
        with pytest.raises(SystemExit) as info:
            exit_session(5)
        assert info.value.code == 5

    async def test_shell_helper_from_evaluated_code(self):
        evaluator = PythonEvaluator(build_namespace())
        assert await evaluator.evaluate("await sh('echo hi')", "eval") == "hi"

    async def test_shell_helper_without_await(self):
        # The evaluator awaits a returned coroutine
        evaluator = PythonEvaluator(build_namespace())
        assert await evaluator.evaluate("sh('echo hi')", "eval") == "hi"

    async def test_inspect_prints(self, capsys):
        evaluator = PythonEvaluator(build_namespace())
        await evaluator.evaluate("inspect([1, 2])", "exec")
        assert "[1, 2]" in strip_ansi(capsys.readouterr().out)


class TestStartupFile:
    async def test_missing_file(self, tmp_path):
        evaluator = PythonEvaluator(build_namespace())
        assert await run_startup_file(evaluator, str(tmp_path / "startup.py")) is None

    async def test_definitions_land_in_namespace(self, tmp_path):
        path = tmp_path / "startup.py"
        path.write_text("import math\nanswer = 6 * 7\n")
        evaluator = PythonEvaluator(build_namespace())
        assert await run_startup_file(evaluator, str(path)) is None
        assert evaluator.namespace["answer"] == 42
        assert await evaluator.evaluate("math.pi > 3", "eval") is True

    async def test_error_is_returned(self, tmp_path):
        path = tmp_path / "startup.py"
        path.write_text("ok = 1\nraise RuntimeError('broken')\n")
        evaluator = PythonEvaluator(build_namespace())
        error = await run_startup_file(evaluator, str(path))
        assert isinstance(error, RuntimeError)
        assert evaluator.namespace["ok"] == 1

    async def test_syntax_error_is_returned(self, tmp_path):
        path = tmp_path / "startup.py"
        path.write_text("def (\n")
        error = await run_startup_file(PythonEvaluator(), str(path))
        assert isinstance(error, SyntaxError)
