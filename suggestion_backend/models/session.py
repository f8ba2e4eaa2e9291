"""Suggestion session and API data models"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, Field

from .diff import DiffCounts, DiffHunk, HunkView, ParseWarning

SAVE_BLOCKED_REASON = "Accept or reject AI suggestions before saving"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SessionState(str, Enum):
    """States of one suggestion round"""

    IDLE = "idle"
    COMPOSING = "composing"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class SuggestionSession(BaseModel):
    """One LLM round trip and the hunks it produced"""

    session_id: str
    request_prompt: str = ""
    document_snapshot_before_request: str | None = None
    hunks: list[DiffHunk] = []
    state: SessionState = SessionState.COMPOSING
    error: str | None = None
    warnings: list[ParseWarning] = []
    created_at: datetime = Field(default_factory=_utcnow)


class SaveGate(BaseModel):
    """Whether the document may be saved or published"""

    can_save: bool
    pending_count: int
    reason: str | None = None


# ========== API payloads ==========


class CreateDocumentRequest(BaseModel):
    """Request to open an editing workspace"""

    content: str


class ManualEditRequest(BaseModel):
    """Replace the document content outside the suggestion flow"""

    content: str


class SuggestionRequest(BaseModel):
    """Request for one round of AI suggestions"""

    prompt: str


class DocumentState(BaseModel):
    """Full editor state for a rendering surface"""

    document_id: str
    content: str  # clean, committed text
    marked_content: str  # with pending markers
    hunks: list[HunkView] = []
    counts: DiffCounts
    save_gate: SaveGate
    session: SuggestionSession | None = None
    can_undo: bool = False
    can_redo: bool = False


class SuggestionResponse(BaseModel):
    """Result of a suggestion round"""

    success: bool
    error: str | None = None
    session: SuggestionSession | None = None
    state: DocumentState


class ProgressEvent(BaseModel):
    """SSE event emitted while a round is loading"""

    type: str  # "progress", "result", "error"
    step: str | None = None
    progress: int | None = None
    result: SuggestionResponse | None = None
    error: str | None = None


class SaveResponse(BaseModel):
    """Result of saving through the gate"""

    status: str
    content: str
