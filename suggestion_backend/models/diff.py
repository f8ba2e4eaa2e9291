"""Diff-related data models"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class HunkKind(str, Enum):
    """Kind of change a hunk proposes"""

    INSERTION = "insertion"
    DELETION = "deletion"
    REPLACEMENT = "replacement"


class HunkStatus(str, Enum):
    """Lifecycle status of a hunk"""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    UNRESOLVED = "unresolved"


class HunkNotation(str, Enum):
    """How the hunk was written in CriticMarkup"""

    INLINE = "inline"  # {++..++} or {--..--}
    PAIR = "pair"  # {--old--}{++new++}
    SUBSTITUTION = "substitution"  # {~~old~>new~~}


class UnresolvedReason(str, Enum):
    """Why a hunk could not be anchored in the live document"""

    NOT_FOUND = "not_found"
    STRUCTURAL_CONFLICT = "structural_conflict"
    OVERLAPS_PENDING = "overlaps_pending"


class BlockKind(str, Enum):
    """Leaf block kinds of a Markdown document"""

    ROOT = "root"
    PARAGRAPH = "paragraph"
    HEADING = "heading"
    LIST_ITEM = "list_item"
    CODE = "code"
    TABLE_CELL = "table_cell"
    THEMATIC_BREAK = "thematic_break"
    HTML = "html"


class ParseWarning(BaseModel):
    """Malformed marker recovered as literal text"""

    offset: int  # in the annotated text
    message: str
    snippet: str


class Anchor(BaseModel):
    """Structural position of a hunk in the live document"""

    path: tuple[int, ...]
    block_kind: BlockKind
    offset: int  # intra-block
    length: int  # length of the original text covered
    context_before: str
    context_after: str


class RawDiffHunk(BaseModel):
    """A hunk as read from annotated text, before anchoring"""

    id: str
    kind: HunkKind
    notation: HunkNotation = HunkNotation.INLINE
    original_text: str = ""
    proposed_text: str = ""
    markup_start: int
    markup_end: int
    base_offset: int
    context_before: str = ""
    context_after: str = ""


class DiffHunk(BaseModel):
    """A single proposed change anchored against the live document"""

    id: str
    kind: HunkKind
    notation: HunkNotation = HunkNotation.INLINE
    original_text: str = ""
    proposed_text: str = ""
    anchor: Anchor | None = None
    status: HunkStatus = HunkStatus.PENDING
    session_id: str | None = None
    sequence: int = 0
    unresolved_reason: UnresolvedReason | None = None


class ParseResult(BaseModel):
    """Output of the CriticMarkup parser"""

    hunks: list[RawDiffHunk] = []
    warnings: list[ParseWarning] = []
    base_text: str = ""  # every marker rejected
    proposed_text: str = ""  # every marker accepted


class DiffCounts(BaseModel):
    """Aggregate pending counts for UI badges"""

    insertions: int = 0
    deletions: int = 0
    replacements: int = 0
    total: int = 0


class HunkView(BaseModel):
    """Pending hunk as exposed to a rendering surface"""

    id: str
    kind: HunkKind
    position: int
    original_text: str
    proposed_text: str
