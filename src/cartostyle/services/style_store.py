"""Persistence backends for the edited style document."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol

import httpx

from ..style.style import empty_style, ensure_style_validity
from ..utils.tasks import BackgroundTasks

__all__ = [
    "ApiStyleStore",
    "LocalStyleStore",
    "PersistenceInitError",
    "StyleStore",
    "StyleStoreError",
]

LOGGER = logging.getLogger(__name__)

_LATEST_POINTER = "latest.json"
_PATH_SEPARATORS = ("/", "\\", "\0")

ExternalChangeCallback = Callable[[dict[str, Any]], None]


class StyleStoreError(RuntimeError):
    """Raised when a style cannot be read from a backend."""


class PersistenceInitError(StyleStoreError):
    """Raised when a remote backend cannot be initialised."""


class StyleStore(Protocol):
    """Contract shared by the interchangeable persistence backends."""

    async def init(self) -> None:
        """Prepare the backend; may raise :class:`PersistenceInitError`."""
        ...

    async def load(self) -> dict[str, Any] | None:
        """Return the most recently saved style, or ``None`` when there is none."""
        ...

    def save(self, document: Mapping[str, Any]) -> None:
        """Persist ``document``; failures are logged, never raised to the editor."""
        ...


class LocalStyleStore:
    """Durable store keeping one JSON file per style id plus a latest-style pointer."""

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        return self._directory

    async def init(self) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)

    async def load(self) -> dict[str, Any] | None:
        pointer = self._read_json(self._directory / _LATEST_POINTER)
        style_id = pointer.get("id") if isinstance(pointer, Mapping) else None
        if not isinstance(style_id, str):
            return None
        try:
            path = self._style_path(style_id)
        except StyleStoreError as exc:
            LOGGER.warning("Ignoring latest style pointer: %s", exc)
            return None
        document = self._read_json(path)
        if not isinstance(document, dict):
            LOGGER.warning("Latest style %s is missing or unreadable", style_id)
            return None
        return document

    def save(self, document: Mapping[str, Any]) -> None:
        document = ensure_style_validity(document)
        try:
            self._write_json(self._style_path(document["id"]), document)
            self._write_json(self._directory / _LATEST_POINTER, {"id": document["id"]})
        except (OSError, StyleStoreError) as exc:
            LOGGER.error("Failed to save style %s to %s: %s", document["id"], self._directory, exc)
            return
        LOGGER.debug("Saved style %s to %s", document["id"], self._directory)

    def _style_path(self, style_id: str) -> Path:
        style_id = str(style_id)
        if not style_id or style_id in {".", ".."} or any(sep in style_id for sep in _PATH_SEPARATORS):
            raise StyleStoreError(f"Style id {style_id!r} cannot be used as a file name")
        return self._directory / f"{style_id}.json"

    def _write_json(self, path: Path, payload: Mapping[str, Any]) -> None:
        body = json.dumps(payload, indent=2, sort_keys=True)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(body, encoding="utf-8")
        tmp_path.replace(path)

    def _read_json(self, path: Path) -> Any:
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return None
        except json.JSONDecodeError as exc:
            LOGGER.warning("Style file %s is not valid JSON: %s", path, exc)
            return None


class ApiStyleStore:
    """Store backed by a local style server exposing ``/styles`` endpoints.

    ``init`` lists the available styles and picks the first one as active.
    Saves are issued as background ``PUT`` requests. ``poll_external_changes``
    re-reads the active style and reports edits made elsewhere (another
    session or an external editor) through ``on_external_change``.
    """

    def __init__(
        self,
        base_url: str,
        *,
        client: httpx.AsyncClient,
        on_external_change: ExternalChangeCallback | None = None,
        tasks: BackgroundTasks | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = client
        self._on_external_change = on_external_change
        self._tasks = tasks or BackgroundTasks("api-style-store")
        self._style_ids: list[str] = []
        self._last_seen: dict[str, Any] | None = None
        self._pending_saves = 0
        self._save_generation = 0

    @property
    def style_id(self) -> str | None:
        return self._style_ids[0] if self._style_ids else None

    def set_external_change_callback(self, callback: ExternalChangeCallback | None) -> None:
        self._on_external_change = callback

    async def init(self) -> None:
        try:
            response = await self._client.get(f"{self._base_url}/styles")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise PersistenceInitError(f"Style API at {self._base_url} is unavailable: {exc}") from exc
        if not isinstance(payload, list):
            raise PersistenceInitError(f"Style API at {self._base_url} returned an unexpected style list")
        self._style_ids = [str(style_id) for style_id in payload]
        LOGGER.debug("ApiStyleStore: %d style(s) available", len(self._style_ids))

    async def load(self) -> dict[str, Any] | None:
        if self.style_id is None:
            return empty_style()
        document = await self._fetch_style(self.style_id)
        self._last_seen = document
        return document

    def save(self, document: Mapping[str, Any]) -> None:
        document = ensure_style_validity(document)
        if self.style_id is None:
            self._style_ids.append(document["id"])
        self._last_seen = document
        self._save_generation += 1
        self._pending_saves += 1
        if self._tasks.spawn(self._put_style(self.style_id, document), name=f"save-style:{self.style_id}") is None:
            self._pending_saves -= 1

    @property
    def saving(self) -> bool:
        return self._pending_saves > 0

    async def poll_external_changes(self) -> bool:
        """Fetch the active style and notify when it differs from what was last seen.

        Nothing is reported while a save is in flight or when a save started
        during the fetch: the server may still hold the previous document.
        """

        if self.style_id is None:
            return False
        if self.saving:
            LOGGER.debug("ApiStyleStore: skipping poll while %d save(s) pending", self._pending_saves)
            return False
        generation = self._save_generation
        try:
            document = await self._fetch_style(self.style_id)
        except StyleStoreError as exc:
            LOGGER.warning("Polling style %s failed: %s", self.style_id, exc)
            return False
        if self.saving or generation != self._save_generation:
            return False
        if document == self._last_seen:
            return False
        self._last_seen = document
        LOGGER.debug("ApiStyleStore: style %s changed externally", self.style_id)
        if self._on_external_change is not None:
            self._on_external_change(document)
        return True

    def start_watching(self, interval: float) -> None:
        """Poll for external changes every ``interval`` seconds until :meth:`aclose`."""

        self._tasks.spawn(self._watch(interval), name="watch-styles")

    async def join(self) -> None:
        await self._tasks.join()

    async def aclose(self) -> None:
        await self._tasks.aclose()
        self._pending_saves = 0

    async def _watch(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            await self.poll_external_changes()

    async def _fetch_style(self, style_id: str) -> dict[str, Any]:
        try:
            response = await self._client.get(f"{self._base_url}/styles/{style_id}")
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise StyleStoreError(f"Unable to load style {style_id}: {exc}") from exc
        if not isinstance(payload, dict):
            raise StyleStoreError(f"Style {style_id} is not a JSON object")
        return payload

    async def _put_style(self, style_id: str | None, document: Mapping[str, Any]) -> None:
        try:
            response = await self._client.put(f"{self._base_url}/styles/{style_id}", json=dict(document))
            response.raise_for_status()
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to save style %s: %s", style_id, exc)
        finally:
            self._pending_saves -= 1
