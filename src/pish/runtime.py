"""Helpers preloaded into the shell namespace.

``sh`` runs a shell command and returns its output, ``cd`` changes the
working directory for both Python and later ``sh`` calls, and ``exit`` ends
the session. ``sh_see`` shows a command's output as it runs, ``spawn``
starts a process that outlives the shell, and ``glob_dir`` lists matching
directories. A submitted line ``$ ls -la`` is rewritten to ``sh('ls -la')``
before evaluation.
"""

from __future__ import annotations

import asyncio
import codecs
import glob
import logging
import os
import subprocess
import sys
from pathlib import Path
from typing import IO, Any

from pish.errors import CompileError, ShellCommandError
from pish.evaluator import Evaluator
from pish.highlight import inspect_value

logger = logging.getLogger(__name__)

HOME = str(Path.home())

# Detached children, kept so they are not reported as leaked when collected
_detached: list[subprocess.Popen] = []


def expand_path(path: str) -> str:
    """Resolve ``~`` and relative paths against the current directory."""
    path = path.strip()
    if path == "~":
        return HOME
    if path.startswith("~/"):
        return os.path.join(HOME, path[2:])
    if os.path.isabs(path):
        return path
    return os.path.normpath(os.path.join(os.getcwd(), path))


def cd(path: str = "~") -> None:
    """Change the working directory."""
    os.chdir(expand_path(path))


async def sh(command: str) -> str | None:
    """Run *command* through the shell and return its stripped stdout.

    A non-zero exit raises :class:`ShellCommandError` carrying stderr (or the
    exit code when stderr is empty). ``cd <dir>`` changes this process's
    directory instead of a subshell's.
    """
    stripped = command.strip()
    if stripped == "cd" or stripped.startswith("cd "):
        cd(stripped[3:] or "~")
        return None

    process = await asyncio.create_subprocess_shell(
        command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=os.getcwd(),
    )
    stdout, stderr = await process.communicate()
    exit_code = process.returncode or 0

    if exit_code != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        raise ShellCommandError(message or f"Exit code {exit_code}", exit_code)

    return stdout.decode("utf-8", errors="replace").strip()


async def sh_see(command: str) -> str | ShellCommandError:
    """Run *command* with its output shown live, and return the stripped stdout.

    A non-zero exit is returned as a :class:`ShellCommandError` rather than
    raised, so a failing command leaves the rest of the line running.
    """
    process = await asyncio.create_subprocess_shell(
        command,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        cwd=os.getcwd(),
    )
    assert process.stdout is not None and process.stderr is not None
    stdout, stderr = await asyncio.gather(
        _relay(process.stdout, sys.stdout),
        _relay(process.stderr, sys.stderr),
    )
    exit_code = await process.wait()

    if exit_code != 0:
        return ShellCommandError(stderr.strip() or f"Exit code {exit_code}", exit_code)
    return stdout.strip()


async def _relay(stream: asyncio.StreamReader, sink: IO[str]) -> str:
    """Copy *stream* to *sink* as it arrives and return everything read."""
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    parts: list[str] = []
    while True:
        chunk = await stream.read(4096)
        text = decoder.decode(chunk, final=not chunk)
        if text:
            parts.append(text)
            sink.write(text)
            sink.flush()
        if not chunk:
            return "".join(parts)


def spawn(command: str, *args: str) -> int:
    """Start *command* detached from the shell and return its pid.

    The child gets its own session, so it keeps running after the shell
    exits. It shares stdout/stderr but never reads the shell's stdin.
    """
    child = subprocess.Popen(
        [command, *args],
        stdin=subprocess.DEVNULL,
        cwd=os.getcwd(),
        start_new_session=True,
    )
    _detached[:] = [p for p in _detached if p.poll() is None]
    _detached.append(child)
    logger.debug("spawned %s as pid %d", command, child.pid)
    return child.pid


def glob_dir(pattern: str) -> list[str]:
    """Return the directories matching *pattern*, sorted. ``**`` recurses."""
    matches = glob.glob(os.path.expanduser(pattern), recursive=True)
    return sorted(path for path in matches if os.path.isdir(path))


def exit_session(code: int = 0) -> None:
    """End the shell session. Unlike the builtin, leaves stdin open."""
    raise SystemExit(code)


def rewrite_shell_escape(line: str) -> str:
    """Turn ``$ command`` into ``sh('command')``; leave anything else alone."""
    if line.startswith("$ "):
        return f"sh({line[2:]!r})"
    return line


def build_namespace(**extra: Any) -> dict[str, Any]:
    """Create the initial evaluation namespace."""
    namespace: dict[str, Any] = {
        "__name__": "__main__",
        "sh": sh,
        "sh_see": sh_see,
        "spawn": spawn,
        "glob_dir": glob_dir,
        "cd": cd,
        "exit": exit_session,
        "quit": exit_session,
        "home": HOME,
        "inspect": lambda value: print(inspect_value(value)),
        "log": print,
    }
    namespace.update(extra)
    return namespace


async def run_startup_file(evaluator: Evaluator, path: str) -> BaseException | None:
    """Execute *path* into the evaluator's namespace, if the file exists.

    Returns the error that stopped it, if any; the shell starts regardless.
    """
    if not os.path.isfile(path):
        return None
    try:
        source = Path(path).read_text(encoding="utf-8")
        await evaluator.evaluate(source, "exec")
    except CompileError as exc:
        return exc.error
    except Exception as exc:
        return exc
    return None
