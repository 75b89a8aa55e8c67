"""Helpers for working with style documents as immutable values."""

from __future__ import annotations

import uuid
from typing import Any, Mapping, Sequence

__all__ = [
    "Document",
    "Layer",
    "METADATA_ACCESS_TOKEN_KEY",
    "empty_style",
    "ensure_style_validity",
    "index_of_layer",
    "with_layers",
]

Document = Mapping[str, Any]
Layer = Mapping[str, Any]

METADATA_ACCESS_TOKEN_KEY = "cartostyle:openmaptiles_access_token"


def generate_style_id() -> str:
    return uuid.uuid4().hex[:8]


def empty_style() -> dict[str, Any]:
    """Return a new, valid style with no sources and no layers."""

    return {
        "version": 8,
        "id": generate_style_id(),
        "name": "Empty Style",
        "metadata": {},
        "sources": {},
        "sprite": "",
        "glyphs": "",
        "layers": [],
    }


def ensure_style_validity(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``document`` guaranteed to carry an ``id``."""

    if document.get("id"):
        return dict(document)
    return {**document, "id": generate_style_id()}


def index_of_layer(layers: Sequence[Layer], layer_id: str) -> int:
    """Return the position of ``layer_id`` in ``layers`` or ``-1``."""

    for index, layer in enumerate(layers):
        if layer.get("id") == layer_id:
            return index
    return -1


def with_layers(document: Mapping[str, Any], layers: Sequence[Layer]) -> dict[str, Any]:
    """Return a shallow copy of ``document`` with ``layers`` replaced."""

    return {**document, "layers": list(layers)}
