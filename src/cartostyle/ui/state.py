"""Immutable editor state replaced wholesale on every change."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any, Callable, Mapping

from ..services.sources import SourceDescriptor
from ..style.schema import StyleSchema, load_latest_schema
from ..style.style import empty_style
from .events import EventBus, StateChanged

__all__ = ["EditorState", "MODAL_NAMES", "StateHolder", "clamp_selection"]

MODAL_NAMES: tuple[str, ...] = ("settings", "sources", "open", "shortcuts", "export", "survey")


def clamp_selection(index: int, layer_count: int) -> int:
    """Clamp ``index`` into ``[0, layer_count - 1]`` (0 when there are no layers)."""

    if layer_count <= 0:
        return 0
    return max(0, min(index, layer_count - 1))


def _closed_modals() -> Mapping[str, bool]:
    return MappingProxyType({name: False for name in MODAL_NAMES})


@dataclass(frozen=True, slots=True)
class EditorState:
    """Snapshot of everything the editor views render from.

    Never mutated: the controller derives a new value with
    :func:`dataclasses.replace` and publishes it.
    """

    document: Mapping[str, Any] = field(default_factory=empty_style)
    selected_layer_index: int = 0
    errors: tuple[str, ...] = ()
    infos: tuple[str, ...] = ()
    sources: Mapping[str, SourceDescriptor] = field(default_factory=lambda: MappingProxyType({}))
    schema: StyleSchema = field(default_factory=load_latest_schema)
    inspect_mode_enabled: bool = False
    modals: Mapping[str, bool] = field(default_factory=_closed_modals)

    @property
    def layers(self) -> list[Mapping[str, Any]]:
        return list(self.document.get("layers") or [])

    @property
    def selected_layer(self) -> Mapping[str, Any] | None:
        layers = self.layers
        if not layers:
            return None
        return layers[clamp_selection(self.selected_layer_index, len(layers))]

    def with_document(self, document: Mapping[str, Any], **changes: Any) -> EditorState:
        """Replace the document and re-derive a valid selection index."""

        selected = changes.pop("selected_layer_index", self.selected_layer_index)
        count = len(document.get("layers") or [])
        return replace(
            self,
            document=document,
            selected_layer_index=clamp_selection(selected, count),
            **changes,
        )

    def with_modal_toggled(self, name: str) -> EditorState:
        modals = dict(self.modals)
        modals[name] = not modals.get(name, False)
        return replace(self, modals=MappingProxyType(modals))


class StateHolder:
    """Owns the current :class:`EditorState` and announces every replacement.

    All writers, including background task completions, go through
    :meth:`update`, which applies a function to the freshly read state so no
    writer works from a stale snapshot.
    """

    def __init__(self, initial: EditorState, bus: EventBus) -> None:
        self._state = initial
        self._bus = bus

    @property
    def state(self) -> EditorState:
        return self._state

    def set(self, state: EditorState) -> EditorState:
        if state is self._state:
            return state
        self._state = state
        self._bus.publish(StateChanged(state=state))
        return state

    def update(self, change: Callable[[EditorState], EditorState]) -> EditorState:
        return self.set(change(self._state))
