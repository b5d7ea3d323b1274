"""Entry point for the pish shell.

``pish`` with no code starts the interactive shell. ``pish CODE...`` or
``pish -e CODE`` evaluates once, prints the result and exits.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys

import aiosqlite

from pish import __version__
from pish.dispatcher import EvaluationDispatcher, format_error, format_result
from pish.editor import LineEditor, Session
from pish.errors import SessionExit
from pish.evaluator import PythonEvaluator
from pish.highlight import highlight_python, plain
from pish.history import HistoryStore
from pish.keybindings import EditorKeybindingsManager
from pish.runtime import build_namespace, rewrite_shell_escape, run_startup_file
from pish.settings import (
    HISTORY_FILE,
    LOG_FILE,
    STARTUP_FILE,
    Settings,
    config_dir,
    config_path,
    load_settings,
)
from pish.storage import SQLiteHistory
from pish.terminal import ProcessTerminal
from pish.utils import strip_ansi

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="pish", description="Interactive Python shell")
    parser.add_argument("code", nargs="*", help="Code to evaluate once, then exit")
    parser.add_argument("-e", "--eval", dest="eval_code", help="Code to evaluate once, then exit")
    parser.add_argument("--timeout", type=int, default=None, help="Evaluation timeout in ms (0 for none)")
    parser.add_argument("--no-history", action="store_true", help="Do not read or save history")
    parser.add_argument("--no-color", action="store_true", help="Disable colours and highlighting")
    parser.add_argument("--log-level", default="warning", choices=["debug", "info", "warning", "error"])
    parser.add_argument("--debug", action="store_true", help="Shorthand for --log-level debug")
    parser.add_argument("--version", action="version", version=f"pish {__version__}")
    return parser.parse_args(argv)


def configure_logging(level: str) -> None:
    """Log to a file; the terminal is in raw mode and belongs to the editor."""
    log_path = config_path(LOG_FILE)
    try:
        os.makedirs(os.path.dirname(log_path), exist_ok=True)
    except OSError:
        logging.disable(logging.CRITICAL)
        return
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=LOG_FORMAT,
        filename=log_path,
    )


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides = {
        "timeoutMs": args.timeout,
        "historyEnabled": False if args.no_history else None,
        "colors": False if args.no_color else None,
        "highlight": False if args.no_color else None,
    }
    return load_settings(overrides=overrides)


def banner(colors: bool) -> str:
    text = (
        f"\x1b[1;32mpish\x1b[1;37m {__version__} - Interactive Python shell\n"
        'Enter code to run, or "help" to see commands\x1b[0m'
    )
    return text if colors else strip_ansi(text)


async def open_history(settings: Settings) -> SQLiteHistory | None:
    """Connect the history database, or return ``None`` if it is unavailable."""
    if not settings.history_enabled:
        return None
    store = SQLiteHistory(config_path(HISTORY_FILE))
    try:
        os.makedirs(config_dir(), exist_ok=True)
        await store.connect()
        await store.prune(settings.history_size)
    except (OSError, aiosqlite.Error) as exc:
        logger.warning("History disabled: %s", exc)
        await store.close()
        return None
    return store


async def create_evaluator(settings: Settings) -> PythonEvaluator:
    """Build the namespace and run the startup file into it."""
    evaluator = PythonEvaluator(build_namespace())
    error = await run_startup_file(evaluator, config_path(STARTUP_FILE))
    if error is not None:
        logger.warning("Startup file failed: %r", error)
        sys.stdout.write(format_error(error, colors=settings.colors))
    return evaluator


async def run_once(source: str, settings: Settings) -> int:
    """Evaluate *source* once and print the outcome. Returns the exit code."""
    try:
        evaluator = await create_evaluator(settings)
        dispatcher = EvaluationDispatcher(evaluator, timeout_ms=settings.timeout_ms)
        result = await dispatcher.dispatch(rewrite_shell_escape(source))
    except SessionExit as exc:
        return exc.code

    text = format_result(result, colors=settings.colors)
    if text is not None:
        sys.stdout.write(text if text.endswith("\n") else text + "\n")
    return 0 if result.ok else 1


async def run_interactive(settings: Settings) -> int:
    print(banner(settings.colors))

    history = HistoryStore(settings.history_size)
    backend = await open_history(settings)
    if backend is not None:
        try:
            history.seed(await backend.load_all(limit=settings.history_size))
        except aiosqlite.Error as exc:
            logger.warning("Could not load history: %s", exc)

    try:
        evaluator = await create_evaluator(settings)
    except SessionExit as exc:
        if backend is not None:
            await backend.close()
        return exc.code

    prompt = settings.prompt if settings.colors else strip_ansi(settings.prompt)
    terminal = ProcessTerminal(cursor_query_timeout=settings.cursor_query_timeout_ms / 1000)
    editor = LineEditor(
        terminal,
        EvaluationDispatcher(evaluator, timeout_ms=settings.timeout_ms),
        Session(prompt=prompt, history=history),
        keybindings=EditorKeybindingsManager(settings.keybindings),
        highlighter=highlight_python if settings.highlight else plain,
        history_backend=backend,
        colors=settings.colors,
        version=__version__,
    )

    terminal.start()
    try:
        return await editor.run()
    finally:
        terminal.stop()
        sys.stdout.write("\n")
        if backend is not None:
            await backend.close()


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    configure_logging("debug" if args.debug else args.log_level)
    settings = settings_from_args(args)

    source = args.eval_code if args.eval_code is not None else " ".join(args.code)
    if source:
        sys.exit(asyncio.run(run_once(source, settings)))

    if not sys.stdin.isatty():
        print("pish: the interactive shell needs a terminal; pass code with -e instead", file=sys.stderr)
        sys.exit(2)

    sys.exit(asyncio.run(run_interactive(settings)))


if __name__ == "__main__":
    main()
