"""Structural operations over the ordered layer list.

Each operation takes the current layers (and the selected layer index) and
returns a :class:`LayerEdit` holding a new list; inputs are never mutated.
Nothing here validates or persists: the controller submits the result to the
mutation pipeline as a fresh candidate document.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from ..style.style import Layer, index_of_layer

__all__ = [
    "LayerEdit",
    "LayerNotFoundError",
    "VISIBLE",
    "VISIBILITY_MARKER_KEY",
    "HIDDEN",
    "copy_layer",
    "destroy_layer",
    "move_layer",
    "rename_layer",
    "replace_layer",
    "toggle_visibility",
]

VISIBLE = "visible"
HIDDEN = "none"
VISIBILITY_MARKER_KEY = "cartostyle:visibility"
COPY_SUFFIX = "-copy"


class LayerNotFoundError(KeyError):
    """Raised when an operation references a layer id that is not in the list."""


@dataclass(frozen=True, slots=True)
class LayerEdit:
    layers: Sequence[Layer]
    selected_index: int
    changed: bool = True


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(value, upper))


def _require_index(layers: Sequence[Layer], layer_id: str) -> int:
    index = index_of_layer(layers, layer_id)
    if index < 0:
        raise LayerNotFoundError(layer_id)
    return index


def move_layer(layers: Sequence[Layer], old_index: int, new_index: int, selected_index: int) -> LayerEdit:
    """Move the layer at ``old_index`` to ``new_index``.

    Both indices are clamped into range. The selection follows the moved layer
    only when it was the selected one; otherwise the selection stays
    positional and may end up on a different layer.
    """

    if not layers:
        return LayerEdit(layers, selected_index, changed=False)
    last = len(layers) - 1
    old_index = _clamp(old_index, 0, last)
    new_index = _clamp(new_index, 0, last)
    if old_index == new_index:
        return LayerEdit(layers, selected_index, changed=False)

    reordered = list(layers)
    reordered.insert(new_index, reordered.pop(old_index))
    if old_index == selected_index:
        selected_index = new_index
    return LayerEdit(reordered, selected_index)


def destroy_layer(layers: Sequence[Layer], layer_id: str, selected_index: int) -> LayerEdit:
    """Remove ``layer_id``; the selection is clamped later, at commit time."""

    index = _require_index(layers, layer_id)
    remaining = list(layers)
    del remaining[index]
    return LayerEdit(remaining, selected_index)


def copy_layer(layers: Sequence[Layer], layer_id: str, selected_index: int) -> LayerEdit:
    """Insert a deep copy of ``layer_id`` right after it, with ``-copy`` appended to the id.

    No collision check is made against an existing copy.
    """

    index = _require_index(layers, layer_id)
    clone = copy.deepcopy(dict(layers[index]))
    clone["id"] = f"{clone['id']}{COPY_SUFFIX}"
    changed = list(layers)
    changed.insert(index + 1, clone)
    return LayerEdit(changed, selected_index)


def toggle_visibility(layers: Sequence[Layer], layer_id: str, selected_index: int) -> LayerEdit:
    """Flip ``layout.visibility`` between visible (the default) and hidden.

    Hiding a layer whose layout said ``"visible"`` explicitly records that in
    the layer ``metadata`` under :data:`VISIBILITY_MARKER_KEY`. Showing writes
    ``"visible"`` back only when that marker is present and otherwise removes
    the key, dropping emptied ``layout`` and ``metadata`` objects. Hiding then
    showing therefore restores an equal layer.
    """

    index = _require_index(layers, layer_id)
    layer: dict[str, Any] = dict(layers[index])
    layout = dict(layer.get("layout") or {})
    metadata = dict(layer.get("metadata") or {})
    if layout.get("visibility") == HIDDEN:
        if metadata.pop(VISIBILITY_MARKER_KEY, None) == VISIBLE:
            layout["visibility"] = VISIBLE
        else:
            del layout["visibility"]
    else:
        if layout.get("visibility") == VISIBLE:
            metadata[VISIBILITY_MARKER_KEY] = VISIBLE
        layout["visibility"] = HIDDEN
    _set_or_drop(layer, "layout", layout)
    _set_or_drop(layer, "metadata", metadata)
    changed = list(layers)
    changed[index] = layer
    return LayerEdit(changed, selected_index)


def _set_or_drop(layer: dict[str, Any], key: str, value: dict[str, Any]) -> None:
    if value:
        layer[key] = value
    else:
        layer.pop(key, None)


def rename_layer(layers: Sequence[Layer], old_id: str, new_id: str, selected_index: int) -> LayerEdit:
    """Replace the ``id`` of ``old_id``; collisions are left to validation."""

    index = _require_index(layers, old_id)
    changed = list(layers)
    changed[index] = {**layers[index], "id": new_id}
    return LayerEdit(changed, selected_index)


def replace_layer(layers: Sequence[Layer], layer: Mapping[str, Any], selected_index: int) -> LayerEdit:
    """Replace the layer sharing ``layer['id']`` wholesale."""

    index = _require_index(layers, layer["id"])
    changed = list(layers)
    changed[index] = layer
    return LayerEdit(changed, selected_index)
