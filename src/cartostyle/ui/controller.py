"""Editor controller: owns the state and routes user intents through the pipeline."""

from __future__ import annotations

import logging
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Callable, Mapping

import httpx

from ..editor import layer_ops
from ..editor.revisions import RevisionStore
from ..services.settings import Settings, SettingsStore
from ..services.sources import SourceDescriptor, SourceReconciler
from ..services.style_store import StyleStore
from ..style.style import index_of_layer, with_layers
from ..style.validation import validate_style
from .events import EventBus, SourcesUpdated
from .pipeline import MutationPipeline, Outcome, Validator
from .shortcuts import Action
from .state import MODAL_NAMES, EditorState, StateHolder

__all__ = ["EditorController"]

LOGGER = logging.getLogger(__name__)


class EditorController:
    """Single owner of :class:`EditorState`.

    Layer operations compute a candidate layer list with
    :mod:`cartostyle.editor.layer_ops` and submit the resulting document to
    the :class:`MutationPipeline`; a rejected candidate leaves the document
    and selection as they were.
    """

    def __init__(
        self,
        *,
        settings: Settings,
        store: StyleStore,
        client: httpx.AsyncClient,
        bus: EventBus | None = None,
        settings_store: SettingsStore | None = None,
        initial_state: EditorState | None = None,
        validator: Validator = validate_style,
    ) -> None:
        self._settings = settings
        self._settings_store = settings_store
        self._bus = bus or EventBus()
        state = initial_state or EditorState()
        if not settings.survey_dismissed and not state.modals.get("survey"):
            state = state.with_modal_toggled("survey")
        self._holder = StateHolder(state, self._bus)
        self._revisions = RevisionStore()
        self._reconciler = SourceReconciler(
            client=client,
            read_sources=lambda: self._holder.state.sources,
            write_sources=self._write_sources,
            access_token=lambda: self._settings.mapbox_access_token or None,
            dedupe_inflight=settings.dedupe_source_fetches,
        )
        self._pipeline = MutationPipeline(
            holder=self._holder,
            revisions=self._revisions,
            store=store,
            reconciler=self._reconciler,
            client=client,
            bus=self._bus,
            default_access_token=lambda: self._settings.openmaptiles_access_token or None,
            validator=validator,
        )

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def state(self) -> EditorState:
        return self._holder.state

    @property
    def bus(self) -> EventBus:
        return self._bus

    @property
    def settings(self) -> Settings:
        return self._settings

    @property
    def pipeline(self) -> MutationPipeline:
        return self._pipeline

    @property
    def revisions(self) -> RevisionStore:
        return self._revisions

    @property
    def reconciler(self) -> SourceReconciler:
        return self._reconciler

    @property
    def store(self) -> StyleStore:
        return self._pipeline.store

    @store.setter
    def store(self, store: StyleStore) -> None:
        self._pipeline.store = store

    # ------------------------------------------------------------------
    # Document changes
    # ------------------------------------------------------------------

    def on_style_changed(self, document: Mapping[str, Any], *, save: bool = True) -> Outcome:
        return self._pipeline.submit(document, save=save)

    def on_external_change(self, document: Mapping[str, Any]) -> Outcome:
        """Accept a document edited elsewhere without writing it back to the store."""

        LOGGER.debug("Applying externally changed style")
        return self._pipeline.submit(document, save=False)

    def undo(self) -> tuple[str, ...]:
        return self._pipeline.undo()

    def redo(self) -> tuple[str, ...]:
        return self._pipeline.redo()

    # ------------------------------------------------------------------
    # Layer operations
    # ------------------------------------------------------------------

    def move_layer(self, old_index: int, new_index: int) -> Outcome | None:
        state = self.state
        return self._apply(layer_ops.move_layer(state.layers, old_index, new_index, state.selected_layer_index))

    def destroy_layer(self, layer_id: str) -> Outcome | None:
        state = self.state
        return self._apply(layer_ops.destroy_layer(state.layers, layer_id, state.selected_layer_index))

    def copy_layer(self, layer_id: str) -> Outcome | None:
        state = self.state
        return self._apply(layer_ops.copy_layer(state.layers, layer_id, state.selected_layer_index))

    def toggle_layer_visibility(self, layer_id: str) -> Outcome | None:
        state = self.state
        return self._apply(layer_ops.toggle_visibility(state.layers, layer_id, state.selected_layer_index))

    def rename_layer(self, old_id: str, new_id: str) -> Outcome | None:
        state = self.state
        return self._apply(layer_ops.rename_layer(state.layers, old_id, new_id, state.selected_layer_index))

    def change_layer(self, layer: Mapping[str, Any]) -> Outcome | None:
        state = self.state
        return self._apply(layer_ops.replace_layer(state.layers, layer, state.selected_layer_index))

    def change_layers(self, layers: list[Mapping[str, Any]]) -> Outcome:
        return self._pipeline.submit(with_layers(self.state.document, layers))

    def select_layer(self, layer_id: str) -> int:
        index = index_of_layer(self.state.layers, layer_id)
        if index < 0:
            raise layer_ops.LayerNotFoundError(layer_id)
        self._holder.update(lambda current: replace(current, selected_layer_index=index))
        return index

    # ------------------------------------------------------------------
    # UI toggles
    # ------------------------------------------------------------------

    def change_inspect_mode(self) -> bool:
        state = self._holder.update(lambda current: replace(current, inspect_mode_enabled=not current.inspect_mode_enabled))
        return state.inspect_mode_enabled

    def toggle_modal(self, name: str) -> bool:
        if name not in MODAL_NAMES:
            raise ValueError(f"Unknown modal {name!r}")
        state = self._holder.update(lambda current: current.with_modal_toggled(name))
        if name == "survey" and not self._settings.survey_dismissed:
            self._settings = replace(self._settings, survey_dismissed=True)
            if self._settings_store is not None:
                self._settings_store.save(self._settings)
        return state.modals[name]

    def command_handlers(self) -> dict[Action, Callable[[], object]]:
        """Handlers for every shortcut action the controller can serve itself."""

        return {
            Action.UNDO: self.undo,
            Action.REDO: self.redo,
            Action.TOGGLE_SHORTCUTS: lambda: self.toggle_modal("shortcuts"),
            Action.TOGGLE_OPEN: lambda: self.toggle_modal("open"),
            Action.TOGGLE_EXPORT: lambda: self.toggle_modal("export"),
            Action.TOGGLE_SOURCES: lambda: self.toggle_modal("sources"),
            Action.TOGGLE_SETTINGS: lambda: self.toggle_modal("settings"),
            Action.TOGGLE_INSPECT: self.change_inspect_mode,
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def join(self) -> None:
        """Wait for in-flight metadata downloads and source fetches."""

        await self._pipeline.join()
        await self._reconciler.join()

    async def aclose(self) -> None:
        await self._pipeline.aclose()
        await self._reconciler.aclose()

    def _apply(self, edit: layer_ops.LayerEdit) -> Outcome | None:
        if not edit.changed:
            return None
        candidate = with_layers(self.state.document, edit.layers)
        return self._pipeline.submit(candidate, selected_layer_index=edit.selected_index)

    def _write_sources(self, sources: Mapping[str, SourceDescriptor]) -> None:
        frozen = MappingProxyType(dict(sources))
        self._holder.update(lambda current: replace(current, sources=frozen))
        self._bus.publish(SourcesUpdated(sources=frozen))
