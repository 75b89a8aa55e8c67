"""Validate → commit pipeline for candidate style documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Sequence, Union

import httpx

from ..editor.diff_messages import redo_messages, undo_messages
from ..editor.revisions import RevisionStore
from ..services.metadata import apply_access_token, download_glyphs_metadata, download_sprite_metadata
from ..services.sources import SourceReconciler
from ..services.style_store import StyleStore, StyleStoreError
from ..style.schema import StyleSchema
from ..style.style import METADATA_ACCESS_TOKEN_KEY
from ..style.validation import ValidationError, validate_style
from ..utils.tasks import BackgroundTasks
from .events import EventBus, SchemaUpdated, StyleCommitted, StyleRejected, StyleRestored
from .state import StateHolder

__all__ = ["Committed", "MutationPipeline", "Outcome", "Rejected"]

LOGGER = logging.getLogger(__name__)

Validator = Callable[[Mapping[str, Any], StyleSchema], Sequence[ValidationError]]


@dataclass(frozen=True, slots=True)
class Committed:
    document: Mapping[str, Any]


@dataclass(frozen=True, slots=True)
class Rejected:
    errors: tuple[ValidationError, ...]

    @property
    def messages(self) -> tuple[str, ...]:
        return tuple(error.message for error in self.errors)


Outcome = Union[Committed, Rejected]


class MutationPipeline:
    """Runs every candidate document through validation before it becomes current.

    A valid candidate is appended to the revision history, persisted, made
    current (errors cleared, selection re-clamped) and handed to the source
    reconciler. Glyph or sprite URL changes additionally spawn a metadata
    download that enriches the schema later. An invalid candidate only
    replaces the error list; the committed document, history and store are
    untouched, although source reconciliation still runs on the committed
    document.

    Undo and redo skip validation: history only holds documents that already
    passed it.
    """

    def __init__(
        self,
        *,
        holder: StateHolder,
        revisions: RevisionStore,
        store: StyleStore,
        reconciler: SourceReconciler,
        client: httpx.AsyncClient,
        bus: EventBus,
        default_access_token: Callable[[], str | None] | None = None,
        validator: Validator = validate_style,
        tasks: BackgroundTasks | None = None,
    ) -> None:
        self._holder = holder
        self._revisions = revisions
        self._store = store
        self._reconciler = reconciler
        self._client = client
        self._bus = bus
        self._default_access_token = default_access_token or (lambda: None)
        self._validator = validator
        self._tasks = tasks or BackgroundTasks("metadata")

    @property
    def store(self) -> StyleStore:
        return self._store

    @store.setter
    def store(self, store: StyleStore) -> None:
        LOGGER.debug("Switching style store to %s", type(store).__name__)
        self._store = store

    @property
    def revisions(self) -> RevisionStore:
        return self._revisions

    def submit(
        self,
        candidate: Mapping[str, Any],
        *,
        save: bool = True,
        selected_layer_index: int | None = None,
    ) -> Outcome:
        state = self._holder.state
        errors = tuple(self._validator(candidate, state.schema))

        if errors:
            rejected = Rejected(errors)
            messages = rejected.messages
            self._reconciler.reconcile(state.document)
            self._holder.update(lambda current: replace(current, errors=messages))
            LOGGER.debug("Rejected candidate style with %d error(s)", len(errors))
            self._bus.publish(StyleRejected(errors=messages))
            return rejected

        self._refresh_metadata(candidate, state.document)
        self._revisions.add_revision(candidate)
        if save:
            self._persist(candidate)
        selected = state.selected_layer_index if selected_layer_index is None else selected_layer_index
        self._holder.update(
            lambda current: current.with_document(candidate, errors=(), selected_layer_index=selected)
        )
        self._reconciler.reconcile(candidate)
        self._bus.publish(StyleCommitted(document=candidate, revision_count=len(self._revisions)))
        return Committed(candidate)

    def undo(self) -> tuple[str, ...]:
        return self._restore("undo", self._revisions.undo, undo_messages)

    def redo(self) -> tuple[str, ...]:
        return self._restore("redo", self._revisions.redo, redo_messages)

    async def join(self) -> None:
        await self._tasks.join()

    async def aclose(self) -> None:
        await self._tasks.aclose()

    def _restore(
        self,
        direction: str,
        move: Callable[[], Mapping[str, Any] | None],
        describe: Callable[[Mapping[str, Any], Mapping[str, Any]], list[str]],
    ) -> tuple[str, ...]:
        before = self._holder.state.document
        cursor = self._revisions.cursor
        active = move()
        if active is None or self._revisions.cursor == cursor:
            return ()
        messages = tuple(describe(before, active))
        self._persist(active)
        self._holder.update(lambda current: current.with_document(active, infos=messages))
        self._bus.publish(StyleRestored(document=active, direction=direction, messages=messages))
        return messages

    def _persist(self, document: Mapping[str, Any]) -> None:
        try:
            self._store.save(document)
        except (OSError, StyleStoreError) as exc:
            LOGGER.error("Failed to persist style: %s", exc)

    def _refresh_metadata(self, candidate: Mapping[str, Any], current: Mapping[str, Any]) -> None:
        if candidate.get("glyphs") != current.get("glyphs"):
            template = apply_access_token(candidate.get("glyphs"), self._access_token(candidate))
            self._tasks.spawn(self._update_root_values("glyphs", download_glyphs_metadata, template), name="glyphs")
        if candidate.get("sprite") != current.get("sprite"):
            self._tasks.spawn(
                self._update_root_values("sprite", download_sprite_metadata, candidate.get("sprite")),
                name="sprite",
            )

    def _access_token(self, document: Mapping[str, Any]) -> str | None:
        metadata = document.get("metadata") or {}
        return metadata.get(METADATA_ACCESS_TOKEN_KEY) or self._default_access_token()

    async def _update_root_values(self, field_name: str, download: Any, url: Any) -> None:
        values = await download(self._client, url)
        self._holder.update(
            lambda current: replace(current, schema=current.schema.with_root_values(field_name, values))
        )
        LOGGER.debug("Updated %s metadata with %d value(s)", field_name, len(values))
        self._bus.publish(SchemaUpdated(field_name=field_name, values=tuple(values)))
