"""Event bus infrastructure for decoupled editor component communication.

Views subscribe to these events instead of polling the controller; the
controller publishes them after every state replacement.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Generic,
    Mapping,
    TypeVar,
)
from weakref import WeakMethod, ref

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from typing import DefaultDict

    from .state import EditorState

logger = logging.getLogger(__name__)

# Type variable for event types
E = TypeVar("E", bound="Event")

# Handler type: a callable that takes an event and returns None
Handler = Callable[[E], None]


@dataclass(slots=True)
class Event:
    """Base class for all events in the system.

    Example::

        @dataclass(slots=True)
        class StyleCommitted(Event):
            document: Mapping[str, Any]
    """

    pass


# High-frequency event types that should not log each publish
_QUIET_EVENT_TYPES: set[type] = set()


# =============================================================================
# Document Events
# =============================================================================


@dataclass(slots=True)
class StyleCommitted(Event):
    """Emitted when a candidate document passed validation and became current.

    Attributes:
        document: The newly committed document.
        revision_count: Number of revisions held after the commit.
    """

    document: Mapping[str, Any]
    revision_count: int


@dataclass(slots=True)
class StyleRejected(Event):
    """Emitted when a candidate document failed validation.

    Attributes:
        errors: The validation messages, in validator order.
    """

    errors: tuple[str, ...]


@dataclass(slots=True)
class StyleRestored(Event):
    """Emitted after undo or redo moved the history cursor.

    Attributes:
        document: The document the cursor now points at.
        direction: Either ``"undo"`` or ``"redo"``.
        messages: Human-readable summary of what changed.
    """

    document: Mapping[str, Any]
    direction: str
    messages: tuple[str, ...]


# =============================================================================
# Derived State Events
# =============================================================================


@dataclass(slots=True)
class SourcesUpdated(Event):
    """Emitted when the derived source descriptors change."""

    sources: Mapping[str, Any]


@dataclass(slots=True)
class SchemaUpdated(Event):
    """Emitted when a metadata download enriched the schema's default values.

    Attributes:
        field_name: The root field whose values were replaced (``glyphs`` or ``sprite``).
        values: The downloaded values.
    """

    field_name: str
    values: tuple[Any, ...]


@dataclass(slots=True)
class StateChanged(Event):
    """Emitted after every replacement of the editor state."""

    state: EditorState


_QUIET_EVENT_TYPES.add(StateChanged)


class EventBus(Generic[E]):
    """A typed publish-subscribe event bus.

    Handlers are stored as weak references where possible (bound methods) so
    subscribers do not outlive their owners.

    Thread Safety:
        This implementation is NOT thread-safe. All operations should be
        performed from the event loop thread.
    """

    __slots__ = ("_handlers",)

    def __init__(self) -> None:
        self._handlers: DefaultDict[type[Event], list[_HandlerRef]] = defaultdict(list)

    def subscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Register a handler to receive events of the specified type.

        Subscribing the same handler multiple times results in multiple
        invocations when an event is published.
        """
        handler_ref = _HandlerRef.create(handler)
        self._handlers[event_type].append(handler_ref)
        logger.debug(
            "Subscribed handler %s to event type %s",
            _handler_name(handler),
            event_type.__name__,
        )

    def unsubscribe(self, event_type: type[E], handler: Handler[E]) -> None:
        """Remove the first registration of ``handler``; unknown handlers are ignored."""
        handlers = self._handlers.get(event_type)
        if handlers is None:
            return

        for i, handler_ref in enumerate(handlers):
            if handler_ref.matches(handler):
                handlers.pop(i)
                logger.debug(
                    "Unsubscribed handler %s from event type %s",
                    _handler_name(handler),
                    event_type.__name__,
                )
                return

    def publish(self, event: E) -> None:
        """Broadcast an event to all registered handlers.

        Handlers are invoked synchronously in registration order. A handler
        that raises is logged and the remaining handlers still run.
        """
        event_type = type(event)
        handlers = self._handlers.get(event_type)
        is_quiet = event_type in _QUIET_EVENT_TYPES

        if handlers is None:
            if not is_quiet:
                logger.debug("No handlers for event type %s", event_type.__name__)
            return

        if not is_quiet:
            logger.debug(
                "Publishing %s to %d handler(s)",
                event_type.__name__,
                len(handlers),
            )

        dead_indices: list[int] = []

        for i, handler_ref in enumerate(handlers):
            handler = handler_ref.resolve()
            if handler is None:
                dead_indices.append(i)
                continue

            try:
                handler(event)
            except Exception:
                logger.exception(
                    "Handler %s raised exception for event %s",
                    _handler_name(handler),
                    event_type.__name__,
                )

        # Reverse order keeps the remaining indices valid
        for i in reversed(dead_indices):
            handlers.pop(i)

    def clear(self) -> None:
        """Remove all registered handlers."""
        self._handlers.clear()
        logger.debug("Cleared all event handlers")

    def handler_count(self, event_type: type[E] | None = None) -> int:
        if event_type is not None:
            return len(self._handlers.get(event_type, []))
        return sum(len(handlers) for handlers in self._handlers.values())


class _HandlerRef:
    """Handler reference: weak for bound methods, strong for plain callables."""

    __slots__ = ("_ref", "_is_weak")

    def __init__(self, handler_ref: WeakMethod | ref | Handler, is_weak: bool) -> None:
        self._ref = handler_ref
        self._is_weak = is_weak

    @classmethod
    def create(cls, handler: Handler) -> _HandlerRef:
        if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
            try:
                return cls(WeakMethod(handler), is_weak=True)
            except TypeError:
                # Some callables can't be weakly referenced
                pass
        return cls(handler, is_weak=False)

    def resolve(self) -> Handler | None:
        if not self._is_weak:
            return self._ref  # type: ignore[return-value]
        return self._ref()  # type: ignore[operator]

    def matches(self, handler: Handler) -> bool:
        resolved = self.resolve()
        if resolved is None:
            return False
        return resolved == handler


def _handler_name(handler: Handler) -> str:
    """Get a human-readable name for a handler for logging purposes."""
    if hasattr(handler, "__self__") and hasattr(handler, "__func__"):
        cls_name = type(handler.__self__).__name__
        return f"{cls_name}.{handler.__func__.__name__}"
    if hasattr(handler, "__name__"):
        return handler.__name__
    return repr(handler)


__all__ = [
    "Event",
    "EventBus",
    "Handler",
    "StyleCommitted",
    "StyleRejected",
    "StyleRestored",
    "SourcesUpdated",
    "SchemaUpdated",
    "StateChanged",
]
