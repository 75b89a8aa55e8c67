"""Shared test helpers: style builders and an HTTP stub.

Import from here instead of duplicating fixtures in individual test files.
"""

from __future__ import annotations

from typing import Any, Callable, Mapping

import httpx


def make_layer(layer_id: str, *, layer_type: str = "fill", source: str | None = "osm", **extra: Any) -> dict[str, Any]:
    layer: dict[str, Any] = {"id": layer_id, "type": layer_type}
    if source is not None and layer_type != "background":
        layer["source"] = source
    layer.update(extra)
    return layer


def make_style(layers: list[dict[str, Any]] | None = None, *, sources: Mapping[str, Any] | None = None, **extra: Any) -> dict[str, Any]:
    """Build a valid style with a single ``osm`` vector source by default."""

    style: dict[str, Any] = {
        "version": 8,
        "id": "style-1",
        "name": "Test Style",
        "metadata": {},
        "sources": dict(sources) if sources is not None else {"osm": {"type": "vector", "url": "https://tiles.example.com/osm.json"}},
        "sprite": "",
        "glyphs": "",
        "layers": list(layers or []),
    }
    style.update(extra)
    return style


Route = Any


class StubHttp:
    """Serve canned responses keyed by URL without query and record every request.

    A route value may be a JSON-able payload (served with status 200), an
    ``httpx.Response``, or a callable receiving the request.
    """

    def __init__(self, routes: Mapping[str, Route] | None = None) -> None:
        self.routes: dict[str, Route] = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handle))

    def urls(self) -> list[str]:
        return [str(request.url) for request in self.requests]

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        key = str(request.url).split("?", 1)[0]
        route = self.routes.get(key)
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        if isinstance(route, httpx.Response):
            return route
        if callable(route):
            result = route(request)
            if hasattr(result, "__await__"):
                result = await result
            return result
        return httpx.Response(200, json=route)


Responder = Callable[[httpx.Request], Any]
