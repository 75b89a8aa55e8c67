"""Bridge Qt key events onto the :class:`CommandDispatcher`.

PySide6 is imported lazily so the editor core stays importable (and
testable) without a desktop stack.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

from .shortcuts import CommandDispatcher, KeyEvent

__all__ = [
    "MAP_OBJECT_NAME",
    "create_shortcut_filter",
    "key_event_from_qt",
    "qt_focus_map",
    "qt_input_has_focus",
    "qt_release_focus",
]

LOGGER = logging.getLogger(__name__)

MAP_OBJECT_NAME = "map"


def _require_qt() -> Any:
    try:
        from PySide6 import QtCore, QtWidgets
    except ImportError as exc:  # pragma: no cover - depends on desktop stack
        raise RuntimeError("PySide6 must be installed to capture Qt key events.") from exc
    return QtCore, QtWidgets


def key_event_from_qt(event: Any, *, swap_control_meta: bool | None = None) -> KeyEvent:
    """Translate a ``QKeyEvent`` into a :class:`KeyEvent`.

    On macOS Qt reports the Command key as ``ControlModifier`` and Control as
    ``MetaModifier``; they are swapped back so ``meta`` means Command.
    """

    QtCore, _ = _require_qt()
    modifiers = event.modifiers()
    flags = QtCore.Qt.KeyboardModifier
    ctrl = bool(modifiers & flags.ControlModifier)
    meta = bool(modifiers & flags.MetaModifier)
    if swap_control_meta is None:
        swap_control_meta = sys.platform == "darwin"
    if swap_control_meta:
        ctrl, meta = meta, ctrl
    return KeyEvent(
        key=int(event.key()),
        ctrl=ctrl,
        meta=meta,
        shift=bool(modifiers & flags.ShiftModifier),
        alt=bool(modifiers & flags.AltModifier),
    )


def qt_input_has_focus() -> bool:
    """Return True when the focused widget accepts text input."""

    _, QtWidgets = _require_qt()
    widget = QtWidgets.QApplication.focusWidget()
    if widget is None:
        return False
    text_inputs = (QtWidgets.QLineEdit, QtWidgets.QTextEdit, QtWidgets.QPlainTextEdit, QtWidgets.QAbstractSpinBox)
    if isinstance(widget, text_inputs):
        return True
    return isinstance(widget, QtWidgets.QComboBox) and widget.isEditable()


def qt_release_focus() -> None:
    """Clear keyboard focus from whichever widget holds it."""

    _, QtWidgets = _require_qt()
    widget = QtWidgets.QApplication.focusWidget()
    if widget is not None:
        widget.clearFocus()


def qt_focus_map(object_name: str = MAP_OBJECT_NAME) -> bool:
    """Give keyboard focus to the map canvas, found by its ``objectName``."""

    _, QtWidgets = _require_qt()
    for widget in QtWidgets.QApplication.allWidgets():
        if widget.objectName() == object_name:
            widget.setFocus()
            return True
    LOGGER.debug("No widget named %r to focus", object_name)
    return False


def create_shortcut_filter(dispatcher: CommandDispatcher, *, swap_control_meta: bool | None = None) -> Any:
    """Return a ``QObject`` event filter feeding key events to ``dispatcher``.

    Install it with ``app.installEventFilter(filter)``; events that fired an
    action are consumed.
    """

    QtCore, _ = _require_qt()

    class ShortcutEventFilter(QtCore.QObject):
        def eventFilter(self, watched: Any, event: Any) -> bool:  # noqa: N802 - Qt override
            event_type = event.type()
            if event_type == QtCore.QEvent.Type.KeyPress:
                fired = dispatcher.key_down(key_event_from_qt(event, swap_control_meta=swap_control_meta))
            elif event_type == QtCore.QEvent.Type.KeyRelease:
                fired = dispatcher.key_up(key_event_from_qt(event, swap_control_meta=swap_control_meta))
            else:
                return False
            return fired is not None

    LOGGER.debug("Created Qt shortcut filter (policy=%s)", dispatcher.policy.name)
    return ShortcutEventFilter()
