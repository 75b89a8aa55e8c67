"""Asynchronous discovery of the sub-layers offered by each style source."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping

import httpx

from ..utils.tasks import BackgroundTasks

__all__ = [
    "SourceDescriptor",
    "SourceReconciler",
    "normalize_source_url",
    "vector_layer_names",
]

LOGGER = logging.getLogger(__name__)

_MAPBOX_SCHEME = "mapbox://"
_MAPBOX_API_URL = "https://api.mapbox.com"

SourceMap = Mapping[str, "SourceDescriptor"]


@dataclass(frozen=True, slots=True)
class SourceDescriptor:
    """Derived metadata about a declared source; never persisted."""

    type: str | None
    layers: tuple[str, ...] = ()


def normalize_source_url(url: str, access_token: str | None = None) -> str:
    """Expand ``mapbox://`` source URLs into their TileJSON endpoint.

    Raises:
        ValueError: A ``mapbox://`` URL was given without an access token.
    """

    if not url.startswith(_MAPBOX_SCHEME):
        return url
    if not access_token:
        raise ValueError("An access token is required to resolve mapbox:// source URLs")
    tileset = url[len(_MAPBOX_SCHEME):]
    return f"{_MAPBOX_API_URL}/v4/{tileset}.json?secure&access_token={access_token}"


def vector_layer_names(payload: Any) -> tuple[str, ...] | None:
    """Extract ``vector_layers[*].id`` from a TileJSON body, or ``None`` for other shapes."""

    if not isinstance(payload, Mapping):
        return None
    entries = payload.get("vector_layers")
    if not isinstance(entries, list):
        return None
    return tuple(str(entry["id"]) for entry in entries if isinstance(entry, Mapping) and "id" in entry)


class SourceReconciler:
    """Keeps the derived source descriptors eventually consistent with the document.

    ``reconcile`` returns at once with placeholder descriptors for unseen
    sources and spawns one TileJSON fetch per unseen remote vector source.
    Presence is checked against a single snapshot per call, so two calls made
    before a fetch lands both fetch (at-least-once). Pass
    ``dedupe_inflight=True`` to skip keys whose fetch is still pending.

    Each completion re-reads the current descriptors and writes a whole new
    mapping; the last completion for a key wins. Nothing is cancelled when a
    source disappears from the document, so a stale fetch still merges.
    """

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        read_sources: Callable[[], SourceMap],
        write_sources: Callable[[SourceMap], None],
        access_token: Callable[[], str | None] | None = None,
        tasks: BackgroundTasks | None = None,
        dedupe_inflight: bool = False,
    ) -> None:
        self._client = client
        self._read_sources = read_sources
        self._write_sources = write_sources
        self._access_token = access_token or (lambda: None)
        self._tasks = tasks or BackgroundTasks("source-reconciler")
        self._dedupe_inflight = dedupe_inflight
        self._inflight: set[str] = set()

    @property
    def pending(self) -> frozenset[str]:
        return frozenset(self._inflight)

    def reconcile(self, document: Mapping[str, Any], known: SourceMap | None = None) -> dict[str, SourceDescriptor]:
        snapshot = dict(self._read_sources() if known is None else known)
        updated = dict(snapshot)
        declared = document.get("sources") or {}

        for key, declaration in declared.items():
            if key in updated:
                continue
            source_type = declaration.get("type") if isinstance(declaration, Mapping) else None
            updated[key] = SourceDescriptor(type=source_type)
            if source_type != "vector" or not isinstance(declaration.get("url"), str):
                continue
            if self._dedupe_inflight and key in self._inflight:
                LOGGER.debug("Fetch for source %s already in flight", key)
                continue
            self._inflight.add(key)
            if self._tasks.spawn(self._fetch_source(key, declaration["url"]), name=f"source:{key}") is None:
                self._inflight.discard(key)

        if updated != snapshot:
            LOGGER.debug("Setting sources: %s", sorted(updated))
            self._write_sources(updated)
        return updated

    async def join(self) -> None:
        await self._tasks.join()

    async def aclose(self) -> None:
        await self._tasks.aclose()
        self._inflight.clear()

    async def _fetch_source(self, key: str, url: str) -> None:
        try:
            url = normalize_source_url(url, self._access_token())
        except ValueError as exc:
            LOGGER.warning("Failed to normalize source URL %s: %s", url, exc)

        try:
            response = await self._client.get(url)
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPError as exc:
            LOGGER.error("Failed to process sources for '%s': %s", url, exc)
            return
        except ValueError as exc:
            LOGGER.debug("Source descriptor at %s is not JSON: %s", url, exc)
            return
        finally:
            self._inflight.discard(key)

        names = vector_layer_names(payload)
        if names is None:
            LOGGER.debug("Source descriptor at %s has no vector_layers", url)
            return

        current = dict(self._read_sources())
        descriptor = current.get(key) or SourceDescriptor(type="vector")
        current[key] = replace(descriptor, layers=names)
        LOGGER.debug("Updating source: %s", key)
        self._write_sources(current)
