"""Bundled data files (style schema)."""
