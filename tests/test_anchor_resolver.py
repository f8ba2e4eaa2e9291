"""Tests for anchoring parsed hunks in the live document."""

from suggestion_backend.models.diff import (
    BlockKind,
    HunkKind,
    HunkStatus,
    RawDiffHunk,
    UnresolvedReason,
)
from suggestion_backend.services.anchor_resolver import AnchorResolver, spans_overlap
from suggestion_backend.services.critic_parser import CriticMarkupParser
from suggestion_backend.services.markdown_blocks import Document


def _resolve(annotated: str, document_text: str | None = None, **kwargs):
    parsed = CriticMarkupParser().parse(annotated)
    document = Document(parsed.base_text if document_text is None else document_text)
    return AnchorResolver().resolve(parsed.hunks, document, **kwargs), document


def _bare_hunk(hunk_id: str, original: str, base_offset: int) -> RawDiffHunk:
    """Deletion without context, so every occurrence scores the same"""
    return RawDiffHunk(
        id=hunk_id,
        kind=HunkKind.DELETION,
        original_text=original,
        markup_start=0,
        markup_end=0,
        base_offset=base_offset,
    )


class TestResolve:
    def test_insertion_anchored_before_text(self):
        (hunk,), document = _resolve("This is {++new ++}content.")

        assert hunk.status == HunkStatus.PENDING
        assert hunk.anchor.path == (0,)
        assert hunk.anchor.block_kind == BlockKind.PARAGRAPH
        assert hunk.anchor.offset == len("This is ")
        assert AnchorResolver().locate(hunk.anchor, document, "") == 8

    def test_resolution_is_idempotent(self):
        parsed = CriticMarkupParser().parse("One {--two--} three {++four++}. Five {~~six~>6~~}.")
        document = Document(parsed.base_text)
        resolver = AnchorResolver()

        first = resolver.resolve(parsed.hunks, document, session_id="s")
        second = resolver.resolve(parsed.hunks, document, session_id="s")
        assert [hunk.model_dump() for hunk in first] == [hunk.model_dump() for hunk in second]

    def test_sequence_follows_document_order(self):
        hunks, _ = _resolve("{++a++} b {--c--} d")
        assert [hunk.sequence for hunk in hunks] == [0, 1]

    def test_missing_text_is_unresolved(self):
        (hunk,), _ = _resolve("Hello {--planet--}.", document_text="Hello world.")

        assert hunk.status == HunkStatus.UNRESOLVED
        assert hunk.unresolved_reason == UnresolvedReason.NOT_FOUND
        assert hunk.anchor is None

    def test_overlap_with_pending_span(self):
        (hunk,), _ = _resolve("{--Hello--} world.", occupied=[(0, 5)])

        assert hunk.unresolved_reason == UnresolvedReason.OVERLAPS_PENDING

    def test_one_failure_does_not_abort_the_round(self):
        parsed = CriticMarkupParser().parse("Keep {--this--}. Drop {--that--}.")
        document = Document("Keep this. Drop those.")
        hunks = AnchorResolver().resolve(parsed.hunks, document)

        assert [hunk.status for hunk in hunks] == [HunkStatus.PENDING, HunkStatus.UNRESOLVED]


class TestTieBreak:
    def test_prefers_projected_position(self):
        document = Document("cat dog cat dog cat")
        (hunk,) = AnchorResolver().resolve([_bare_hunk("h1", "cat", 8)], document)

        assert AnchorResolver().locate(hunk.anchor, document, "cat") == 8

    def test_equal_distance_prefers_earlier_position(self):
        document = Document("cat dog cat dog cat")
        resolver = AnchorResolver()
        (hunk,) = resolver.resolve([_bare_hunk("h1", "cat", 4)], document)

        assert hunk.anchor.offset == 0

    def test_later_hunks_stay_after_previous(self):
        document = Document("cat dog cat dog cat")
        resolver = AnchorResolver()
        first, second = resolver.resolve(
            [_bare_hunk("h1", "cat", 16), _bare_hunk("h2", "cat", 0)], document
        )

        assert first.anchor.offset == 16
        assert second.status == HunkStatus.UNRESOLVED

    def test_context_disambiguates_repeated_text(self):
        (hunk,), document = _resolve("The end. Another sentence follows here. The {--end--} again.")

        assert AnchorResolver().locate(hunk.anchor, document, "end") == document.text.rindex("end")


class TestStructure:
    TABLE = "| a | b |\n| --- | --- |\n| one | two |\n"

    def test_span_crossing_cell_boundary_is_conflict(self):
        (hunk,), _ = _resolve("| a | b |\n| --- | --- |\n| one {--| two--} |\n")

        assert hunk.status == HunkStatus.UNRESOLVED
        assert hunk.unresolved_reason == UnresolvedReason.STRUCTURAL_CONFLICT

    def test_change_inside_cell_is_allowed(self):
        (hunk,), _ = _resolve("| a | b |\n| --- | --- |\n| one | {--two--}{++three++} |\n")

        assert hunk.status == HunkStatus.PENDING
        assert hunk.anchor.block_kind == BlockKind.TABLE_CELL
        assert hunk.anchor.path == (0, 1, 1)

    def test_pipe_inserted_into_cell_is_conflict(self):
        (hunk,), _ = _resolve("| a | b |\n| --- | --- |\n| one {++| extra++}| two |\n")

        assert hunk.unresolved_reason == UnresolvedReason.STRUCTURAL_CONFLICT

    def test_whole_row_insertion_is_allowed(self):
        (hunk,), _ = _resolve(self.TABLE + "{++| three | four |\n++}")

        assert hunk.status == HunkStatus.PENDING


class TestLocate:
    def test_relocates_after_text_shift(self):
        (hunk,), document = _resolve("First sentence. This is {++new ++}content.")
        document.text = "Prefix added. " + document.text

        assert AnchorResolver().locate(hunk.anchor, document, "") == document.text.index("content.")

    def test_missing_context_does_not_resolve(self):
        (hunk,), document = _resolve("Alpha {--beta--} gamma.")
        document.text = "Something else entirely."

        assert AnchorResolver().locate(hunk.anchor, document, "beta") is None


def test_spans_overlap():
    assert spans_overlap(0, 5, 3, 8)
    assert not spans_overlap(0, 5, 5, 8)
    assert spans_overlap(4, 4, 0, 8)
    assert not spans_overlap(0, 0, 0, 8)
