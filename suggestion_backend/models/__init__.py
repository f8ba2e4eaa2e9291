"""Models module - Pydantic data models"""

from .diff import (
    Anchor,
    BlockKind,
    DiffCounts,
    DiffHunk,
    HunkKind,
    HunkNotation,
    HunkStatus,
    HunkView,
    ParseResult,
    ParseWarning,
    RawDiffHunk,
    UnresolvedReason,
)
from .history import HistoryAction, HistoryEntry, HunkChange
from .session import (
    SAVE_BLOCKED_REASON,
    CreateDocumentRequest,
    DocumentState,
    ManualEditRequest,
    ProgressEvent,
    SaveGate,
    SaveResponse,
    SessionState,
    SuggestionRequest,
    SuggestionResponse,
    SuggestionSession,
)
from .suggestion import EXISTING_TEXT_MARKER, AISuggestionOutput, RewriteCheck

__all__ = [
    # Diff models
    "Anchor",
    "BlockKind",
    "DiffCounts",
    "DiffHunk",
    "HunkKind",
    "HunkNotation",
    "HunkStatus",
    "HunkView",
    "ParseResult",
    "ParseWarning",
    "RawDiffHunk",
    "UnresolvedReason",
    # History models
    "HistoryAction",
    "HistoryEntry",
    "HunkChange",
    # Session models
    "SAVE_BLOCKED_REASON",
    "CreateDocumentRequest",
    "DocumentState",
    "ManualEditRequest",
    "ProgressEvent",
    "SaveGate",
    "SaveResponse",
    "SessionState",
    "SuggestionRequest",
    "SuggestionResponse",
    "SuggestionSession",
    # Suggestion models
    "EXISTING_TEXT_MARKER",
    "AISuggestionOutput",
    "RewriteCheck",
]
