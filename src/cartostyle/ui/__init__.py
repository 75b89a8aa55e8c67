"""UI-facing state, controller and keyboard dispatch for the editor."""

from .controller import EditorController
from .events import EventBus
from .pipeline import Committed, MutationPipeline, Rejected
from .shortcuts import Action, CommandDispatcher, KeyEvent
from .state import EditorState, StateHolder

__all__ = [
    # Controller
    "EditorController",
    "MutationPipeline",
    "Committed",
    "Rejected",
    # State
    "EditorState",
    "StateHolder",
    # Event Bus
    "EventBus",
    # Shortcuts
    "Action",
    "CommandDispatcher",
    "KeyEvent",
]
