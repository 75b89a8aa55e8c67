"""Utility helpers shared across the editor core."""
