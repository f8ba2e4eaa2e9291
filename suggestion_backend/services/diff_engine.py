"""
Diff Application Engine - Render pending hunks as markers and commit or revert them
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable

from suggestion_backend.models.diff import (
    DiffCounts,
    DiffHunk,
    HunkKind,
    HunkNotation,
    HunkStatus,
    HunkView,
    UnresolvedReason,
)
from suggestion_backend.models.history import HistoryAction, HistoryEntry, HunkChange
from suggestion_backend.services.anchor_resolver import AnchorResolver, spans_overlap
from suggestion_backend.services.critic_parser import (
    DELETE_CLOSE,
    DELETE_OPEN,
    INSERT_CLOSE,
    INSERT_OPEN,
    SUBSTITUTE_CLOSE,
    SUBSTITUTE_OPEN,
    SUBSTITUTE_SEPARATOR,
    escape_markup,
    strip_markers,
)
from suggestion_backend.services.errors import HistoryConflict, InvalidHunkOperation
from suggestion_backend.services.markdown_blocks import Document

logger = logging.getLogger(__name__)

__all__ = ["DiffApplicationEngine", "markup_for", "render_markers", "strip_markers"]


def markup_for(hunk: DiffHunk) -> str:
    """CriticMarkup for one hunk, in the notation it arrived in"""
    original, proposed = escape_markup(hunk.original_text), escape_markup(hunk.proposed_text)
    if hunk.notation == HunkNotation.SUBSTITUTION:
        return f"{SUBSTITUTE_OPEN}{original}{SUBSTITUTE_SEPARATOR}{proposed}{SUBSTITUTE_CLOSE}"
    markup = ""
    if original:
        markup += f"{DELETE_OPEN}{original}{DELETE_CLOSE}"
    if proposed:
        markup += f"{INSERT_OPEN}{proposed}{INSERT_CLOSE}"
    return markup


def _render(text: str, placements: list[tuple[int, DiffHunk]]) -> str:
    parts = []
    cursor = 0
    for position, hunk in placements:
        parts.append(escape_markup(text[cursor:position]))
        parts.append(markup_for(hunk))
        cursor = position + len(hunk.original_text)
    parts.append(escape_markup(text[cursor:]))
    return "".join(parts)


def _order_key(position: int, hunk: DiffHunk) -> tuple[int, int, int]:
    # Zero-width insertions render before a span starting at the same position
    return position, 1 if hunk.original_text else 0, hunk.sequence


def render_markers(
    document: Document,
    hunks: Iterable[DiffHunk],
    resolver: AnchorResolver | None = None,
) -> str:
    """Document text with every locatable pending hunk shown as a marker"""
    resolver = resolver or AnchorResolver()
    placements = []
    for hunk in hunks:
        if hunk.status != HunkStatus.PENDING or hunk.anchor is None:
            continue
        position = resolver.locate(hunk.anchor, document, hunk.original_text)
        if position is not None:
            placements.append((position, hunk))
    placements.sort(key=lambda item: _order_key(*item))
    return _render(document.text, placements)


class DiffApplicationEngine:
    """Own the live document and every hunk rendered over it"""

    def __init__(self, document: Document, resolver: AnchorResolver | None = None):
        self.document = document
        self.resolver = resolver or AnchorResolver()
        # Every registered hunk, settled ones included, so history can revisit earlier rounds
        self._hunks: dict[str, DiffHunk] = {}
        self._rank: dict[str, int] = {}

    # ========== Queries ==========

    def get(self, hunk_id: str) -> DiffHunk:
        try:
            return self._hunks[hunk_id]
        except KeyError:
            raise InvalidHunkOperation(hunk_id, "unknown hunk id", unknown=True) from None

    def hunks(self) -> list[DiffHunk]:
        return list(self._hunks.values())

    def pending_hunks(self) -> list[DiffHunk]:
        return [hunk for hunk in self.hunks() if hunk.status == HunkStatus.PENDING]

    def pending_count(self) -> int:
        return len(self.pending_hunks())

    def counts(self) -> DiffCounts:
        pending = self.pending_hunks()
        insertions = sum(1 for hunk in pending if hunk.kind == HunkKind.INSERTION)
        deletions = sum(1 for hunk in pending if hunk.kind == HunkKind.DELETION)
        replacements = sum(1 for hunk in pending if hunk.kind == HunkKind.REPLACEMENT)
        return DiffCounts(
            insertions=insertions,
            deletions=deletions,
            replacements=replacements,
            total=insertions + deletions + replacements,
        )

    def positions(self) -> dict[str, int]:
        """Absolute position of every pending hunk, marking those that no longer resolve"""
        positions = {}
        for hunk in self.pending_hunks():
            position = self.resolver.locate(hunk.anchor, self.document, hunk.original_text)
            if position is None:
                self._unresolve(hunk, UnresolvedReason.NOT_FOUND)
            else:
                positions[hunk.id] = position
        return positions

    def occupied_spans(self) -> list[tuple[int, int]]:
        positions = self.positions()
        return [
            (positions[hunk_id], positions[hunk_id] + len(self._hunks[hunk_id].original_text))
            for hunk_id in self._placed(positions)
        ]

    def hunk_views(self) -> list[HunkView]:
        positions = self.positions()
        return [
            HunkView(
                id=hunk.id,
                kind=hunk.kind,
                position=positions[hunk.id],
                original_text=hunk.original_text,
                proposed_text=hunk.proposed_text,
            )
            for hunk in (self._hunks[hunk_id] for hunk_id in self._placed(positions))
        ]

    def render_markers(self) -> str:
        positions = self.positions()
        placements = [(positions[hunk_id], self._hunks[hunk_id]) for hunk_id in self._placed(positions)]
        return _render(self.document.text, placements)

    # ========== Registration ==========

    def add_hunks(self, hunks: Iterable[DiffHunk]) -> list[DiffHunk]:
        """Register the resolvable hunks of a new round; returns those registered"""
        added = []
        for hunk in hunks:
            if hunk.status != HunkStatus.PENDING or hunk.anchor is None:
                continue
            if hunk.id in self._hunks:
                raise InvalidHunkOperation(hunk.id, "hunk id already registered")
            position = self.resolver.locate(hunk.anchor, self.document, hunk.original_text)
            if position is None:
                self._unresolve(hunk, UnresolvedReason.NOT_FOUND)
                continue
            self._rank[hunk.id] = len(self._rank)
            self._hunks[hunk.id] = hunk
            added.append(hunk)

        logger.info(f"[Engine] Registered {len(added)} hunks ({self.pending_count()} pending)")
        return added

    def clear(self):
        """Forget every hunk. Pending markers disappear; the text is untouched."""
        self._hunks.clear()
        self._rank.clear()

    # ========== Actions ==========

    def accept(self, hunk_id: str) -> HistoryEntry:
        return self._apply_one(hunk_id, HunkStatus.ACCEPTED, HistoryAction.ACCEPT)

    def reject(self, hunk_id: str) -> HistoryEntry:
        return self._apply_one(hunk_id, HunkStatus.REJECTED, HistoryAction.REJECT)

    def accept_all(self) -> HistoryEntry:
        return self._apply_all(HunkStatus.ACCEPTED, HistoryAction.ACCEPT_ALL)

    def reject_all(self) -> HistoryEntry:
        return self._apply_all(HunkStatus.REJECTED, HistoryAction.REJECT_ALL)

    def revert(self, entry: HistoryEntry):
        """Undo an entry: restore text, pending status and anchors"""
        self._check(entry, expected="new_status")
        positions = self.positions()
        for change in reversed(entry.changes):
            hunk = self._hunks[change.hunk_id]
            self._splice(hunk, change.position, change.inserted_text, change.removed_text, positions)
            hunk.status = change.previous_status
            positions[hunk.id] = change.position
        self._reanchor(positions)
        logger.debug(f"[Engine] Reverted {entry.action.value} ({len(entry.changes)} hunks)")

    def reapply(self, entry: HistoryEntry):
        """Redo an entry previously reverted"""
        self._check(entry, expected="previous_status")
        positions = self.positions()
        for change in entry.changes:
            hunk = self._hunks[change.hunk_id]
            positions.pop(hunk.id, None)
            self._splice(hunk, change.position, change.removed_text, change.inserted_text, positions)
            hunk.status = change.new_status
        self._reanchor(positions)
        logger.debug(f"[Engine] Reapplied {entry.action.value} ({len(entry.changes)} hunks)")

    def replace_content(self, text: str):
        """Manual edit: swap the text and re-locate pending hunks by fingerprint"""
        self.document.text = text
        located = []
        for hunk in self.pending_hunks():
            position = self.resolver.locate(hunk.anchor, self.document, hunk.original_text)
            if position is None:
                self._unresolve(hunk, UnresolvedReason.NOT_FOUND)
            else:
                located.append((position, hunk))
        located.sort(key=lambda item: self._key(*item))

        positions = {}
        previous_end = 0
        for position, hunk in located:
            if position < previous_end:
                self._unresolve(hunk, UnresolvedReason.OVERLAPS_PENDING)
            elif self.resolver.crosses_structure(
                self.document, position, position + len(hunk.original_text), hunk.proposed_text
            ):
                self._unresolve(hunk, UnresolvedReason.STRUCTURAL_CONFLICT)
            else:
                positions[hunk.id] = position
                previous_end = position + len(hunk.original_text)
        self._reanchor(positions)
        logger.info(f"[Engine] Content replaced; {len(positions)} hunks still pending")

    # ========== Internals ==========

    def _key(self, position: int, hunk: DiffHunk) -> tuple[int, int, int]:
        # Zero-width insertions sort before a span starting at the same position
        return position, 1 if hunk.original_text else 0, self._rank[hunk.id]

    def _placed(self, positions: dict[str, int]) -> list[str]:
        """Located hunk ids in document order"""
        return sorted(positions, key=lambda hunk_id: self._key(positions[hunk_id], self._hunks[hunk_id]))

    def _check(self, entry: HistoryEntry, expected: str):
        for change in entry.changes:
            hunk = self._hunks.get(change.hunk_id)
            if hunk is None:
                raise HistoryConflict(f"Hunk {change.hunk_id} is no longer tracked")
            status = getattr(change, expected)
            if hunk.status != status:
                raise HistoryConflict(f"Hunk {hunk.id} is {hunk.status.value}, expected {status.value}")

    def _require_pending(self, hunk_id: str) -> DiffHunk:
        hunk = self.get(hunk_id)
        if hunk.status != HunkStatus.PENDING:
            raise InvalidHunkOperation(hunk_id, f"hunk is {hunk.status.value}, not pending")
        return hunk

    def _apply_one(self, hunk_id: str, status: HunkStatus, action: HistoryAction) -> HistoryEntry:
        hunk = self._require_pending(hunk_id)
        positions = self.positions()
        if hunk.id not in positions:
            raise InvalidHunkOperation(hunk_id, "anchor no longer resolves")
        change = self._transition(hunk, status, positions)
        self._reanchor(positions)
        logger.info(f"[Engine] {status.value.capitalize()} {hunk.kind.value} {hunk.id}")
        return HistoryEntry(entry_id=uuid.uuid4().hex, action=action, changes=[change])

    def _apply_all(self, status: HunkStatus, action: HistoryAction) -> HistoryEntry:
        positions = self.positions()
        # Descending position keeps the anchors of the remaining hunks valid
        targets = list(reversed(self._placed(positions)))
        if not targets:
            raise InvalidHunkOperation("*", "no pending hunks")
        changes = [self._transition(self._hunks[hunk_id], status, positions) for hunk_id in targets]
        self._reanchor(positions)
        logger.info(f"[Engine] {action.value}: {len(changes)} hunks {status.value}")
        return HistoryEntry(entry_id=uuid.uuid4().hex, action=action, changes=changes)

    def _transition(self, hunk: DiffHunk, status: HunkStatus, positions: dict[str, int]) -> HunkChange:
        position = positions.pop(hunk.id)
        # Pending insertions were never committed, so rejecting leaves the text alone
        if status == HunkStatus.ACCEPTED:
            removed, inserted = hunk.original_text, hunk.proposed_text
        else:
            removed, inserted = "", ""
        self._splice(hunk, position, removed, inserted, positions)
        change = HunkChange(
            hunk_id=hunk.id,
            previous_status=hunk.status,
            new_status=status,
            position=position,
            removed_text=removed,
            inserted_text=inserted,
        )
        hunk.status = status
        return change

    def _splice(self, hunk: DiffHunk, position: int, old: str, new: str, positions: dict[str, int]):
        """Replace old with new at position and move the located hunks after it"""
        text = self.document.text
        if text[position : position + len(old)] != old:
            raise HistoryConflict(f"Document no longer holds the text of hunk {hunk.id} at {position}")
        if old == new:
            return
        self.document.splice(position, position + len(old), new)
        delta = len(new) - len(old)
        own_key = self._key(position, hunk)
        for other_id, other_position in list(positions.items()):
            other = self._hunks[other_id]
            other_end = other_position + len(other.original_text)
            # A later round may have proposed changes to the text being restored
            if spans_overlap(position, position + len(old), other_position, other_end):
                del positions[other_id]
                self._unresolve(other, UnresolvedReason.NOT_FOUND)
            elif other_position > position or (
                other_position == position and not old and self._key(other_position, other) > own_key
            ):
                positions[other_id] = other_position + delta

    def _reanchor(self, positions: dict[str, int]):
        for hunk_id, position in positions.items():
            hunk = self._hunks[hunk_id]
            hunk.anchor = self.resolver.anchor_at(self.document, position, len(hunk.original_text))

    def _unresolve(self, hunk: DiffHunk, reason: UnresolvedReason):
        hunk.status = HunkStatus.UNRESOLVED
        hunk.unresolved_reason = reason
        logger.warning(f"[Engine] Hunk {hunk.id} no longer resolves: {reason.value}")
