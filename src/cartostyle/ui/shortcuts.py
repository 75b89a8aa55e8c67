"""Keyboard shortcut dispatch.

Two independent tables: history shortcuts (undo/redo) resolved on key-down
through a platform-specific :class:`ModifierPolicy`, and bare-key toggles
resolved on key-up only while no input widget has focus. Key codes follow
Qt's ``Qt.Key`` numbering so host key events can be passed straight through.
"""

from __future__ import annotations

import enum
import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Mapping

__all__ = [
    "Action",
    "CommandDispatcher",
    "DEFAULT_KEY_BINDINGS",
    "DefaultModifierPolicy",
    "Key",
    "KeyEvent",
    "MacModifierPolicy",
    "ModifierPolicy",
    "select_modifier_policy",
]

LOGGER = logging.getLogger(__name__)


class Key(enum.IntEnum):
    ESCAPE = 0x01000000
    QUESTION = 0x3F
    D = 0x44
    E = 0x45
    I = 0x49  # noqa: E741
    M = 0x4D
    O = 0x4F  # noqa: E741
    S = 0x53
    Y = 0x59
    Z = 0x5A


class Action(str, enum.Enum):
    UNDO = "undo"
    REDO = "redo"
    TOGGLE_SHORTCUTS = "toggle-shortcuts"
    TOGGLE_OPEN = "toggle-open"
    TOGGLE_EXPORT = "toggle-export"
    TOGGLE_SOURCES = "toggle-sources"
    TOGGLE_SETTINGS = "toggle-settings"
    TOGGLE_INSPECT = "toggle-inspect"
    FOCUS_MAP = "focus-map"
    RELEASE_FOCUS = "release-focus"


@dataclass(frozen=True, slots=True)
class KeyEvent:
    """Physical key state for one key press or release."""

    key: int
    ctrl: bool = False
    meta: bool = False
    shift: bool = False
    alt: bool = False


DEFAULT_KEY_BINDINGS: Mapping[int, Action] = {
    Key.QUESTION: Action.TOGGLE_SHORTCUTS,
    Key.O: Action.TOGGLE_OPEN,
    Key.E: Action.TOGGLE_EXPORT,
    Key.D: Action.TOGGLE_SOURCES,
    Key.S: Action.TOGGLE_SETTINGS,
    Key.I: Action.TOGGLE_INSPECT,
    Key.M: Action.FOCUS_MAP,
}


class ModifierPolicy(ABC):
    """Maps modifier + key combinations to history actions."""

    name: str = "unknown"

    @abstractmethod
    def history_action(self, event: KeyEvent) -> Action | None:
        """Return the history action for ``event`` or ``None``."""


class MacModifierPolicy(ModifierPolicy):
    """Command+Shift+Z redoes, Command+Z undoes."""

    name = "mac"

    def history_action(self, event: KeyEvent) -> Action | None:
        if event.meta and event.key == Key.Z:
            return Action.REDO if event.shift else Action.UNDO
        return None


class DefaultModifierPolicy(ModifierPolicy):
    """Ctrl+Z undoes, Ctrl+Y redoes."""

    name = "default"

    def history_action(self, event: KeyEvent) -> Action | None:
        if not event.ctrl:
            return None
        if event.key == Key.Z:
            return Action.UNDO
        if event.key == Key.Y:
            return Action.REDO
        return None


def select_modifier_policy(platform: str | None = None) -> ModifierPolicy:
    """Pick the policy for the host platform (``sys.platform`` by default)."""

    platform = sys.platform if platform is None else platform
    if platform.lower().startswith("darwin") or "mac" in platform.lower():
        return MacModifierPolicy()
    return DefaultModifierPolicy()


class CommandDispatcher:
    """Resolves key events to actions and invokes the registered handlers.

    Dispatch is synchronous and fires at most one action per event. Escape
    only ever releases focus; every other bare key is ignored while
    ``input_has_focus()`` reports that a text input owns the keyboard.
    """

    def __init__(
        self,
        handlers: Mapping[Action, Callable[[], object]],
        *,
        input_has_focus: Callable[[], bool],
        policy: ModifierPolicy | None = None,
        bindings: Mapping[int, Action] | None = None,
    ) -> None:
        self._handlers = dict(handlers)
        self._input_has_focus = input_has_focus
        self._policy = policy or select_modifier_policy()
        self._bindings = dict(DEFAULT_KEY_BINDINGS if bindings is None else bindings)

    @property
    def policy(self) -> ModifierPolicy:
        return self._policy

    def register(self, action: Action, handler: Callable[[], object]) -> None:
        self._handlers[action] = handler

    def key_down(self, event: KeyEvent) -> Action | None:
        return self._fire(self._policy.history_action(event))

    def key_up(self, event: KeyEvent) -> Action | None:
        if event.key == Key.ESCAPE:
            return self._fire(Action.RELEASE_FOCUS)
        if self._input_has_focus():
            return None
        return self._fire(self._bindings.get(event.key))

    def _fire(self, action: Action | None) -> Action | None:
        if action is None:
            return None
        handler = self._handlers.get(action)
        if handler is None:
            LOGGER.debug("No handler registered for %s", action.value)
            return None
        LOGGER.debug("Dispatching shortcut %s", action.value)
        handler()
        return action
