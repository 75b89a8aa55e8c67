"""Undo/redo history of accepted style snapshots."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping

__all__ = ["RevisionStore"]

LOGGER = logging.getLogger(__name__)

Revision = Mapping[str, Any]


class RevisionStore:
    """Ordered history of accepted documents with a movable cursor.

    Revisions are appended only when the mutation pipeline accepts a
    document. ``undo``/``redo`` move the cursor and return the revision it
    lands on; they never append. Adding a revision while the cursor is behind
    the head discards the abandoned redo history.
    """

    __slots__ = ("_revisions", "_cursor")

    def __init__(self, initial: Iterable[Revision] = ()) -> None:
        self._revisions: list[Revision] = list(initial)
        self._cursor = len(self._revisions) - 1

    def __len__(self) -> int:
        return len(self._revisions)

    @property
    def current(self) -> Revision | None:
        if self._cursor < 0:
            return None
        return self._revisions[self._cursor]

    @property
    def latest(self) -> Revision | None:
        return self._revisions[-1] if self._revisions else None

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._cursor < len(self._revisions) - 1

    def add_revision(self, revision: Revision) -> None:
        pruned = len(self._revisions) - (self._cursor + 1)
        if pruned:
            del self._revisions[self._cursor + 1 :]
            LOGGER.debug("RevisionStore: discarded %d redo revision(s)", pruned)
        self._revisions.append(revision)
        self._cursor = len(self._revisions) - 1

    def undo(self) -> Revision | None:
        if self.can_undo:
            self._cursor -= 1
        return self.current

    def redo(self) -> Revision | None:
        if self.can_redo:
            self._cursor += 1
        return self.current
