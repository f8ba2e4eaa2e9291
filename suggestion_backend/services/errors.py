"""Exception taxonomy for the suggestion services"""

from __future__ import annotations


class SuggestionError(Exception):
    """Base class for suggestion workflow errors"""


class InvalidHunkOperation(SuggestionError):
    """Accept/reject on an unknown or non-pending hunk. The document is not modified."""

    def __init__(self, hunk_id: str, reason: str, unknown: bool = False):
        super().__init__(f"Cannot operate on hunk {hunk_id}: {reason}")
        self.hunk_id = hunk_id
        self.reason = reason
        self.unknown = unknown


class ExternalCallFailure(SuggestionError):
    """The LLM call failed or returned nothing usable"""


class SessionStateError(SuggestionError):
    """Operation not allowed in the current session state"""


class SubmissionInProgress(SessionStateError):
    """A round is already loading"""


class InvalidSubmission(SuggestionError):
    """Prompt or document content missing"""


class SaveBlockedError(SuggestionError):
    """Save attempted while suggestions are pending"""

    def __init__(self, reason: str, pending_count: int):
        super().__init__(reason)
        self.reason = reason
        self.pending_count = pending_count


class HistoryConflict(SuggestionError):
    """Recorded fragment no longer matches the document"""
