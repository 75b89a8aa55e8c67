"""Style document validation against a :class:`StyleSchema`."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Sequence

from jsonschema import Draft7Validator
from jsonschema.exceptions import SchemaError

from .schema import StyleSchema

__all__ = ["ValidationError", "validate_style", "MAX_VALIDATION_ERRORS"]

MAX_VALIDATION_ERRORS = 25


@dataclass(frozen=True, slots=True)
class ValidationError:
    """A single schema violation surfaced to the user."""

    message: str


def validate_style(document: Mapping[str, Any], schema: StyleSchema) -> list[ValidationError]:
    """Return the validation errors for ``document`` (empty when valid)."""

    try:
        validator = Draft7Validator(schema.json_schema)
    except SchemaError as exc:
        return [ValidationError(message=f"Invalid style schema: {exc.message}")]

    errors: list[ValidationError] = []
    for issue in validator.iter_errors(document):
        path = _format_schema_path(issue.absolute_path)
        message = f"{path}: {issue.message}" if path else issue.message
        errors.append(ValidationError(message=message))
        if len(errors) >= MAX_VALIDATION_ERRORS:
            errors.append(ValidationError(message="Too many validation errors; stopping early."))
            return errors

    errors.extend(_reference_errors(document))
    return errors


def _reference_errors(document: Mapping[str, Any]) -> list[ValidationError]:
    layers = document.get("layers")
    sources = document.get("sources")
    if not isinstance(layers, list):
        return []
    source_names = set(sources) if isinstance(sources, Mapping) else set()

    errors: list[ValidationError] = []
    seen: set[str] = set()
    for index, layer in enumerate(layers):
        if not isinstance(layer, Mapping):
            continue
        layer_id = layer.get("id")
        if isinstance(layer_id, str):
            if layer_id in seen:
                errors.append(ValidationError(message=f'layers[{index}]: duplicate layer id "{layer_id}" found'))
            seen.add(layer_id)
        source = layer.get("source")
        if isinstance(source, str) and source not in source_names:
            errors.append(ValidationError(message=f'layers[{index}]: source "{source}" not found'))
    return errors


def _format_schema_path(path: Sequence[Any]) -> str:
    if not path:
        return ""
    components: list[str] = []
    for segment in path:
        if isinstance(segment, int):
            if components:
                components[-1] = f"{components[-1]}[{segment}]"
            else:
                components.append(f"[{segment}]")
        else:
            components.append(str(segment))
    return ".".join(filter(None, components))
