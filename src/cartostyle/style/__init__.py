"""Style document helpers, schema and validation."""

from .schema import StyleSchema, load_latest_schema
from .style import empty_style, ensure_style_validity, index_of_layer, with_layers
from .validation import ValidationError, validate_style

__all__ = [
    "StyleSchema",
    "ValidationError",
    "empty_style",
    "ensure_style_validity",
    "index_of_layer",
    "load_latest_schema",
    "validate_style",
    "with_layers",
]
