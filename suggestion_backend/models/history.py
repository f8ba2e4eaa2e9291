"""Undo/redo history models"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel

from .diff import HunkStatus


class HistoryAction(str, Enum):
    """Transaction types recorded on the history stack"""

    ACCEPT = "accept"
    REJECT = "reject"
    ACCEPT_ALL = "accept_all"
    REJECT_ALL = "reject_all"


class HunkChange(BaseModel):
    """Effect of one hunk transition on the document"""

    hunk_id: str
    previous_status: HunkStatus
    new_status: HunkStatus
    position: int
    removed_text: str = ""
    inserted_text: str = ""


class HistoryEntry(BaseModel):
    """One reversible transaction"""

    entry_id: str
    action: HistoryAction
    changes: list[HunkChange]  # in application order

    @property
    def hunk_ids(self) -> list[str]:
        return [change.hunk_id for change in self.changes]
