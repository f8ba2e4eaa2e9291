"""
History Manager - Linear undo/redo over engine transactions
"""

from __future__ import annotations

import logging

from suggestion_backend.models.history import HistoryEntry
from suggestion_backend.services.diff_engine import DiffApplicationEngine

logger = logging.getLogger(__name__)


class HistoryManager:
    """Single linear undo/redo stack for one document-editing session.

    Every accept/reject/accept_all/reject_all goes through here and pushes
    exactly one entry; a new action after an undo truncates the redo stack.
    The engine owns the document; this class only hands entries back to it.
    """

    def __init__(self, engine: DiffApplicationEngine, limit: int | None = None):
        self.engine = engine
        self.limit = limit
        self._undo: list[HistoryEntry] = []
        self._redo: list[HistoryEntry] = []

    @property
    def can_undo(self) -> bool:
        return bool(self._undo)

    @property
    def can_redo(self) -> bool:
        return bool(self._redo)

    def accept(self, hunk_id: str) -> HistoryEntry:
        return self.record(self.engine.accept(hunk_id))

    def reject(self, hunk_id: str) -> HistoryEntry:
        return self.record(self.engine.reject(hunk_id))

    def accept_all(self) -> HistoryEntry:
        return self.record(self.engine.accept_all())

    def reject_all(self) -> HistoryEntry:
        return self.record(self.engine.reject_all())

    def record(self, entry: HistoryEntry) -> HistoryEntry:
        self._undo.append(entry)
        self._redo.clear()
        if self.limit is not None and len(self._undo) > self.limit:
            del self._undo[: len(self._undo) - self.limit]
        logger.debug(f"[History] Recorded {entry.action.value} ({len(self._undo)} undoable)")
        return entry

    def undo(self) -> HistoryEntry | None:
        """Revert the most recent entry; None when there is nothing to undo"""
        if not self._undo:
            return None
        entry = self._undo[-1]
        self.engine.revert(entry)
        self._undo.pop()
        self._redo.append(entry)
        logger.info(f"[History] Undo {entry.action.value}: {entry.hunk_ids}")
        return entry

    def redo(self) -> HistoryEntry | None:
        """Re-apply the most recently undone entry; None when there is nothing to redo"""
        if not self._redo:
            return None
        entry = self._redo[-1]
        self.engine.reapply(entry)
        self._redo.pop()
        self._undo.append(entry)
        logger.info(f"[History] Redo {entry.action.value}: {entry.hunk_ids}")
        return entry

    def clear(self):
        self._undo.clear()
        self._redo.clear()

    def __len__(self) -> int:
        return len(self._undo)
