"""Service layer: persistence backends, settings and network enrichment."""

from .settings import Settings, SettingsStore
from .sources import SourceDescriptor, SourceReconciler
from .style_store import ApiStyleStore, LocalStyleStore, PersistenceInitError, StyleStore, StyleStoreError

__all__ = [
    "ApiStyleStore",
    "LocalStyleStore",
    "PersistenceInitError",
    "Settings",
    "SettingsStore",
    "SourceDescriptor",
    "SourceReconciler",
    "StyleStore",
    "StyleStoreError",
]
