"""Editor history, diff summaries and layer-list operations."""

from . import diff_messages, layer_ops, revisions

__all__ = ["diff_messages", "layer_ops", "revisions"]
