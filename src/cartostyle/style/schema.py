"""Versioned style schema consumed by the validator and metadata downloaders."""

from __future__ import annotations

import json
from dataclasses import dataclass
from functools import lru_cache
from importlib import resources
from types import MappingProxyType
from typing import Any, Mapping, Sequence

__all__ = ["StyleSchema", "load_latest_schema"]

_SCHEMA_RESOURCE = "style-schema.json"


@dataclass(frozen=True, slots=True)
class StyleSchema:
    """Opaque schema value: a JSON Schema for documents plus the root default table.

    ``root`` maps top-level style fields (``glyphs``, ``sprite``...) to their
    reference entries. Metadata downloaders enrich the ``values`` of an entry
    by producing a new schema through :meth:`with_root_values`.
    """

    version: int
    json_schema: Mapping[str, Any]
    root: Mapping[str, Mapping[str, Any]]

    def root_values(self, field_name: str) -> tuple[Any, ...]:
        entry = self.root.get(field_name) or {}
        return tuple(entry.get("values") or ())

    def with_root_values(self, field_name: str, values: Sequence[Any]) -> StyleSchema:
        """Return a copy of the schema with ``root[field_name].values`` replaced."""

        root = dict(self.root)
        entry = dict(root.get(field_name) or {})
        entry["values"] = list(values)
        root[field_name] = MappingProxyType(entry)
        return StyleSchema(version=self.version, json_schema=self.json_schema, root=MappingProxyType(root))


@lru_cache(maxsize=1)
def load_latest_schema() -> StyleSchema:
    """Load the bundled "latest" style schema."""

    text = resources.files("cartostyle.resources").joinpath(_SCHEMA_RESOURCE).read_text(encoding="utf-8")
    payload = json.loads(text)
    root = {name: MappingProxyType(dict(entry)) for name, entry in payload["root"].items()}
    return StyleSchema(
        version=int(payload["version"]),
        json_schema=payload["json_schema"],
        root=MappingProxyType(root),
    )
