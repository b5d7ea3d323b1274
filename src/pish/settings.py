"""Shell settings loaded from JSON.

Settings live in ``~/.pish/settings.json`` (the directory can be moved with
``PISH_HOME``). JSON keys are camelCase; command-line overrides are merged on
top, and ``None`` never overrides a value.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".pish"
HOME_ENV_VAR = "PISH_HOME"

SETTINGS_FILE = "settings.json"
HISTORY_FILE = "history.db"
LOG_FILE = "pish.log"
STARTUP_FILE = "startup.py"

DEFAULT_PROMPT = "\x1b[34mpish\x1b[39m> "


@dataclass
class Settings:
    """Resolved shell settings."""

    prompt: str = DEFAULT_PROMPT
    timeout_ms: int = 0
    history_size: int = 100
    history_enabled: bool = True
    highlight: bool = True
    colors: bool = True
    cursor_query_timeout_ms: int = 500
    keybindings: dict[str, str | list[str]] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build settings from camelCase JSON data, ignoring unknown keys."""
        settings = cls()
        for json_key, attr in _FIELDS.items():
            value = data.get(json_key)
            if value is None:
                continue
            expected = type(getattr(settings, attr))
            if expected is int and isinstance(value, bool):
                logger.warning("Ignoring setting %s: expected a number", json_key)
                continue
            if not isinstance(value, expected):
                logger.warning("Ignoring setting %s: expected %s", json_key, expected.__name__)
                continue
            setattr(settings, attr, value)
        return settings


_FIELDS: dict[str, str] = {
    "prompt": "prompt",
    "timeoutMs": "timeout_ms",
    "historySize": "history_size",
    "historyEnabled": "history_enabled",
    "highlight": "highlight",
    "colors": "colors",
    "cursorQueryTimeoutMs": "cursor_query_timeout_ms",
    "keybindings": "keybindings",
}


# --- Deep merge ---


def deep_merge_settings(base: dict[str, Any], overrides: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge overrides into base settings.

    Nested dicts merge key by key; any other value replaces the base value.
    """
    result = dict(base)
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(result.get(key), dict) and isinstance(value, dict):
            result[key] = deep_merge_settings(result[key], value)
        else:
            result[key] = value
    return result


# --- Paths ---


def config_dir() -> str:
    """Data directory (``$PISH_HOME`` or ``~/.pish``)."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return os.path.expanduser(override)
    return os.path.join(os.path.expanduser("~"), CONFIG_DIR_NAME)


def config_path(name: str) -> str:
    return os.path.join(config_dir(), name)


# --- Loading ---


def _load_from_file(path: str) -> tuple[dict[str, Any], Exception | None]:
    """Load settings from a JSON file. Returns (settings, error)."""
    if not os.path.exists(path):
        return {}, None
    try:
        content = Path(path).read_text(encoding="utf-8")
        settings = json.loads(content)
    except (OSError, json.JSONDecodeError) as e:
        return {}, e
    if not isinstance(settings, dict):
        return {}, ValueError(f"{path}: expected a JSON object")
    return settings, None


def load_settings(path: str | None = None, overrides: dict[str, Any] | None = None) -> Settings:
    """Read the settings file and apply *overrides* (camelCase keys).

    A missing file gives defaults; a malformed one logs a warning and gives
    defaults too.
    """
    path = path or config_path(SETTINGS_FILE)
    data, error = _load_from_file(path)
    if error is not None:
        logger.warning("Could not read settings from %s: %s", path, error)
    if overrides:
        data = deep_merge_settings(data, overrides)
    return Settings.from_dict(data)

