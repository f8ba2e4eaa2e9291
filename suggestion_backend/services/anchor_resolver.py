"""
Anchor Resolver - Map parsed hunks onto structural anchors in the live document
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from suggestion_backend.models.diff import (
    Anchor,
    BlockKind,
    DiffHunk,
    HunkStatus,
    RawDiffHunk,
    UnresolvedReason,
)
from suggestion_backend.services.fingerprint import (
    DEFAULT_CONTEXT_CHARS,
    DEFAULT_MAX_CONTEXT_CHARS,
    context_after,
    context_before,
    fingerprint_score,
)
from suggestion_backend.services.markdown_blocks import Document

logger = logging.getLogger(__name__)

DEFAULT_MIN_SCORE = 0.6
_SEED_CHARS = 12
_EPSILON = 1e-9

Span = tuple[int, int]


def _occurrences(text: str, needle: str) -> list[int]:
    found = []
    index = text.find(needle)
    while index != -1:
        found.append(index)
        index = text.find(needle, index + 1)
    return found


def spans_overlap(start: int, end: int, other_start: int, other_end: int) -> bool:
    """Whether two spans share interior text. Touching spans do not overlap."""
    if start == end:
        return other_start < start < other_end
    if other_start == other_end:
        return start < other_start < end
    return start < other_end and other_start < end


class AnchorResolver:
    """Resolve raw hunks against a document using context fingerprints"""

    def __init__(
        self,
        context_chars: int = DEFAULT_CONTEXT_CHARS,
        max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
        min_score: float = DEFAULT_MIN_SCORE,
    ):
        self.context_chars = context_chars
        self.max_context_chars = max_context_chars
        self.min_score = min_score

    def resolve(
        self,
        raw_hunks: Iterable[RawDiffHunk],
        document: Document,
        occupied: Sequence[Span] = (),
        session_id: str | None = None,
    ) -> list[DiffHunk]:
        """Anchor each raw hunk independently; failures are flagged, never dropped"""
        resolved: list[DiffHunk] = []
        previous_end = 0
        previous_base_end = 0

        for sequence, raw in enumerate(raw_hunks):
            hunk = DiffHunk(
                id=raw.id,
                kind=raw.kind,
                notation=raw.notation,
                original_text=raw.original_text,
                proposed_text=raw.proposed_text,
                session_id=session_id,
                sequence=sequence,
            )
            # Hunks arrive in document order; project where this one should sit
            expected = previous_end + (raw.base_offset - previous_base_end)
            position, reason = self._place(
                document,
                raw.original_text,
                raw.context_before,
                raw.context_after,
                expected=expected,
                floor=previous_end,
                occupied=occupied,
            )
            if position is not None and self.crosses_structure(
                document, position, position + len(raw.original_text), raw.proposed_text
            ):
                position, reason = None, UnresolvedReason.STRUCTURAL_CONFLICT

            if position is None:
                hunk.status = HunkStatus.UNRESOLVED
                hunk.unresolved_reason = reason
                logger.warning(
                    f"[Resolver] Hunk {raw.id} ({raw.kind.value}) unresolved: {reason.value}"
                )
            else:
                hunk.anchor = self.anchor_at(document, position, len(raw.original_text))
                previous_end = position + len(raw.original_text)
                previous_base_end = raw.base_offset + len(raw.original_text)
            resolved.append(hunk)

        return resolved

    def anchor_at(self, document: Document, start: int, length: int) -> Anchor:
        """Anchor for a known position in the document"""
        block = document.block_at(start)
        text = document.text
        return Anchor(
            path=block.path,
            block_kind=block.kind,
            offset=start - block.start,
            length=length,
            context_before=context_before(text, start, self.context_chars, self.max_context_chars),
            context_after=context_after(
                text, start + length, self.context_chars, self.max_context_chars
            ),
        )

    def locate(self, anchor: Anchor, document: Document, original_text: str) -> int | None:
        """Absolute position of an anchor, or None when it no longer resolves"""
        text = document.text
        block = document.block_by_path(anchor.path)
        expected = anchor.offset
        if block is not None and block.kind == anchor.block_kind:
            expected = block.start + anchor.offset
            end = expected + len(original_text)
            if end <= len(text) and text[expected:end] == original_text:
                score = fingerprint_score(
                    text, expected, end, anchor.context_before, anchor.context_after
                )
                if score >= self.min_score:
                    return expected

        # The document drifted; fall back to the fingerprint
        position, _ = self._place(
            document,
            original_text,
            anchor.context_before,
            anchor.context_after,
            expected=expected,
        )
        return position

    def crosses_structure(self, document: Document, start: int, end: int, inserted: str) -> bool:
        """Whether a change would break a table row"""
        rows: dict[tuple[int, ...], list] = {}
        for block in document.blocks:
            if block.kind == BlockKind.TABLE_CELL:
                rows.setdefault(block.path[:-1], []).append(block)
        if not rows:
            return False

        text = document.text
        for cells in rows.values():
            row_start = text.rfind("\n", 0, cells[0].start) + 1
            row_end = text.find("\n", cells[-1].end)
            if row_end == -1:
                row_end = len(text)

            if start == end:
                if end < row_start or start > row_end:
                    continue
                if start == row_start and inserted.endswith("\n"):
                    continue
                if start == row_end and inserted.startswith("\n"):
                    continue
            else:
                if end <= row_start or start >= row_end:
                    continue
                if start <= row_start and end >= row_end:
                    continue

            inside_cell = any(cell.start <= start and end <= cell.end for cell in cells)
            if not inside_cell or "\n" in inserted or "|" in inserted:
                return True
        return False

    def _place(
        self,
        document: Document,
        original: str,
        before: str,
        after: str,
        expected: int,
        floor: int = 0,
        occupied: Sequence[Span] = (),
    ) -> tuple[int | None, UnresolvedReason | None]:
        text = document.text
        candidates = self._candidates(text, original, before, after)
        scored = [
            (fingerprint_score(text, position, position + len(original), before, after), position)
            for position in candidates
            if position >= floor
        ]
        matching = [(score, position) for score, position in scored if score >= self.min_score]
        if not matching:
            return None, UnresolvedReason.NOT_FOUND

        free = [
            (score, position)
            for score, position in matching
            if not any(
                spans_overlap(position, position + len(original), start, end)
                for start, end in occupied
            )
        ]
        if not free:
            return None, UnresolvedReason.OVERLAPS_PENDING

        best = max(score for score, _ in free)
        tied = [position for score, position in free if best - score <= _EPSILON]
        # Locality: closest to where the previous hunk projects this one
        position = min(tied, key=lambda candidate: (abs(candidate - expected), candidate))
        return position, None

    def _candidates(self, text: str, original: str, before: str, after: str) -> set[int]:
        if original:
            return set(_occurrences(text, original))

        if not before and not after:
            return {0} if not text else set()

        candidates: set[int] = set()
        seeds = [
            (before + after, len(before)),
            (after, 0),
            (before, len(before)),
            (after[:_SEED_CHARS], 0),
            (before[-_SEED_CHARS:], len(before[-_SEED_CHARS:])),
        ]
        for seed, shift in seeds:
            if seed:
                candidates.update(index + shift for index in _occurrences(text, seed))
        return candidates
