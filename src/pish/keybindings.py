"""Line editor keybindings manager."""

from __future__ import annotations

from typing import Literal

from pish.keys import KeyEvent, KeyId

EditorAction = Literal[
    # Cursor movement
    "cursorLeft",
    "cursorRight",
    "cursorWordLeft",
    "cursorWordRight",
    "cursorLineStart",
    "cursorLineEnd",
    # Deletion
    "deleteCharBackward",
    "deleteCharForward",
    # History
    "historyPrevious",
    "historyNext",
    # Line
    "submit",
    "cancel",
    "clearScreen",
]

EditorKeybindingsConfig = dict[EditorAction, KeyId | list[KeyId]]

DEFAULT_EDITOR_KEYBINDINGS: dict[EditorAction, KeyId | list[KeyId]] = {
    # Cursor movement
    "cursorLeft": "left",
    "cursorRight": "right",
    "cursorWordLeft": ["ctrl+left", "ctrl+b", "alt+left", "alt+b"],
    "cursorWordRight": ["ctrl+right", "ctrl+f", "alt+right", "alt+f"],
    "cursorLineStart": ["home", "ctrl+a"],
    "cursorLineEnd": ["end", "ctrl+e"],
    # Deletion
    "deleteCharBackward": "backspace",
    "deleteCharForward": "delete",
    # History
    "historyPrevious": "up",
    "historyNext": "down",
    # Line
    "submit": "enter",
    "cancel": "ctrl+c",
    # ctrl+r kept for older muscle memory
    "clearScreen": ["ctrl+l", "ctrl+r"],
}


class EditorKeybindingsManager:
    """Resolves key events to editor actions."""

    def __init__(self, config: EditorKeybindingsConfig | None = None) -> None:
        self._action_to_keys: dict[EditorAction, list[KeyId]] = {}
        self._key_to_action: dict[KeyId, EditorAction] = {}
        self._build_maps(config or {})

    def _build_maps(self, config: EditorKeybindingsConfig) -> None:
        self._action_to_keys.clear()
        self._key_to_action.clear()

        # Start with defaults
        for action, keys in DEFAULT_EDITOR_KEYBINDINGS.items():
            key_array = keys if isinstance(keys, list) else [keys]
            self._action_to_keys[action] = list(key_array)

        # Override with user config
        for action, keys in config.items():
            if action not in DEFAULT_EDITOR_KEYBINDINGS:
                continue
            key_array = keys if isinstance(keys, list) else [keys]
            self._action_to_keys[action] = list(key_array)

        for action, key_array in self._action_to_keys.items():
            for key in key_array:
                self._key_to_action[key] = action

    def action_for(self, event: KeyEvent) -> EditorAction | None:
        """Return the action bound to *event*, if any."""
        if event.is_character or not event.name:
            return None
        return self._key_to_action.get(event.name)
