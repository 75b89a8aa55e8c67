"""Human-readable summaries of the difference between two style snapshots.

Used only for user feedback after undo/redo; nothing in the editor makes a
control-flow decision based on these messages.
"""

from __future__ import annotations

import difflib
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

__all__ = ["StyleDiff", "diff_styles", "diff_messages", "undo_messages", "redo_messages"]

_STRUCTURAL_KEYS = frozenset({"layers", "sources"})


@dataclass(slots=True)
class StyleDiff:
    """Change categories between two documents, each an ordered list of names."""

    added_layers: list[str] = field(default_factory=list)
    removed_layers: list[str] = field(default_factory=list)
    renamed_layers: list[tuple[str, str]] = field(default_factory=list)
    reordered_layers: list[str] = field(default_factory=list)
    changed_layers: list[str] = field(default_factory=list)
    added_sources: list[str] = field(default_factory=list)
    removed_sources: list[str] = field(default_factory=list)
    changed_sources: list[str] = field(default_factory=list)
    changed_properties: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not any(
            (
                self.added_layers,
                self.removed_layers,
                self.renamed_layers,
                self.reordered_layers,
                self.changed_layers,
                self.added_sources,
                self.removed_sources,
                self.changed_sources,
                self.changed_properties,
            )
        )


def diff_styles(before: Mapping[str, Any] | None, after: Mapping[str, Any] | None) -> StyleDiff:
    before = before or {}
    after = after or {}
    diff = StyleDiff()
    _diff_layers(list(before.get("layers") or []), list(after.get("layers") or []), diff)
    _diff_sources(dict(before.get("sources") or {}), dict(after.get("sources") or {}), diff)

    keys = [key for key in (*before.keys(), *after.keys()) if key not in _STRUCTURAL_KEYS]
    for key in dict.fromkeys(keys):
        if before.get(key) != after.get(key):
            diff.changed_properties.append(key)
    return diff


def diff_messages(before: Mapping[str, Any] | None, after: Mapping[str, Any] | None) -> list[str]:
    """Return one message per change category, in a fixed category order."""

    diff = diff_styles(before, after)
    messages: list[str] = []
    if diff.added_layers:
        messages.append(_describe("added", "layer", diff.added_layers))
    if diff.removed_layers:
        messages.append(_describe("removed", "layer", diff.removed_layers))
    if diff.renamed_layers:
        renames = [f"{old} to {new}" for old, new in diff.renamed_layers]
        messages.append(_describe("renamed", "layer", renames))
    if diff.reordered_layers:
        messages.append(_describe("reordered", "layer", diff.reordered_layers))
    if diff.changed_layers:
        messages.append(_describe("changed", "layer", diff.changed_layers))
    if diff.added_sources:
        messages.append(_describe("added", "source", diff.added_sources))
    if diff.removed_sources:
        messages.append(_describe("removed", "source", diff.removed_sources))
    if diff.changed_sources:
        messages.append(_describe("changed", "source", diff.changed_sources))
    if diff.changed_properties:
        messages.append(_describe("changed", "style property", diff.changed_properties, plural="style properties"))
    return messages


def undo_messages(before: Mapping[str, Any] | None, after: Mapping[str, Any] | None) -> list[str]:
    return [f"Undo: {message}" for message in diff_messages(before, after)]


def redo_messages(before: Mapping[str, Any] | None, after: Mapping[str, Any] | None) -> list[str]:
    return [f"Redo: {message}" for message in diff_messages(before, after)]


def _describe(verb: str, noun: str, names: Sequence[str], *, plural: str | None = None) -> str:
    label = noun if len(names) == 1 else (plural or f"{noun}s")
    return f"{verb} {label} {', '.join(names)}"


def _without_id(layer: Mapping[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in layer.items() if key != "id"}


def _diff_layers(before: list[Mapping[str, Any]], after: list[Mapping[str, Any]], diff: StyleDiff) -> None:
    before_by_id = {layer.get("id"): layer for layer in before}
    after_by_id = {layer.get("id"): layer for layer in after}
    removed = [layer_id for layer_id in before_by_id if layer_id not in after_by_id]
    added = [layer_id for layer_id in after_by_id if layer_id not in before_by_id]

    # A removed and an added layer with identical bodies are a rename.
    renames: dict[str, str] = {}
    for old_id in list(removed):
        body = _without_id(before_by_id[old_id])
        for new_id in added:
            if new_id not in renames.values() and _without_id(after_by_id[new_id]) == body:
                renames[old_id] = new_id
                break
    diff.renamed_layers.extend(renames.items())
    diff.removed_layers.extend(str(layer_id) for layer_id in removed if layer_id not in renames)
    diff.added_layers.extend(str(layer_id) for layer_id in added if layer_id not in renames.values())

    surviving_before = [renames.get(layer.get("id"), layer.get("id")) for layer in before]
    surviving_before = [layer_id for layer_id in surviving_before if layer_id in after_by_id]
    surviving = set(surviving_before)
    surviving_after = [layer.get("id") for layer in after if layer.get("id") in surviving]
    # Layers outside the longest common subsequence are the ones that moved.
    matcher = difflib.SequenceMatcher(a=surviving_before, b=surviving_after, autojunk=False)
    in_place = {
        layer_id
        for block in matcher.get_matching_blocks()
        for layer_id in surviving_before[block.a : block.a + block.size]
    }
    diff.reordered_layers.extend(str(layer_id) for layer_id in surviving_after if layer_id not in in_place)

    for layer_id, layer in before_by_id.items():
        target_id = renames.get(layer_id, layer_id)
        if target_id not in after_by_id or layer_id in renames:
            continue
        if layer != after_by_id[target_id]:
            diff.changed_layers.append(str(target_id))


def _diff_sources(before: dict[str, Any], after: dict[str, Any], diff: StyleDiff) -> None:
    for name in after:
        if name not in before:
            diff.added_sources.append(name)
        elif before[name] != after[name]:
            diff.changed_sources.append(name)
    diff.removed_sources.extend(name for name in before if name not in after)
