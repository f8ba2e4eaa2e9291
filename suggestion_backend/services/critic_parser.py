"""
CriticMarkup Parser - Turn LLM-annotated text into an ordered list of raw diff hunks
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Iterator
from dataclasses import dataclass

from suggestion_backend.models.diff import (
    HunkKind,
    HunkNotation,
    ParseResult,
    ParseWarning,
    RawDiffHunk,
)
from suggestion_backend.services.fingerprint import (
    DEFAULT_CONTEXT_CHARS,
    DEFAULT_MAX_CONTEXT_CHARS,
    context_after,
    context_before,
)

logger = logging.getLogger(__name__)

INSERT_OPEN, INSERT_CLOSE = "{++", "++}"
DELETE_OPEN, DELETE_CLOSE = "{--", "--}"
SUBSTITUTE_OPEN, SUBSTITUTE_CLOSE = "{~~", "~~}"
SUBSTITUTE_SEPARATOR = "~>"

# A backslash before a delimiter makes it literal text
_OPEN = re.compile(r"(?<!\\)\{(\+\+|--|~~)")
_SEPARATOR = re.compile(r"(?<!\\)~>")
_CLOSERS = {
    INSERT_OPEN: INSERT_CLOSE,
    DELETE_OPEN: DELETE_CLOSE,
    SUBSTITUTE_OPEN: SUBSTITUTE_CLOSE,
}

_ESCAPE_OPEN = re.compile(r"\{(\+\+|--|~~)")
_ESCAPE_CLOSE = re.compile(r"(\+\+|--|~~)(\\*)\}")
_UNESCAPE_OPEN = re.compile(r"\\\{(\+\+|--|~~)")
_UNESCAPE_CLOSE = re.compile(r"(\+\+|--|~~)(\\*)\\\}")


def escape_markup(text: str) -> str:
    """Backslash-escape delimiters so text can sit inside or around markers"""
    text = _ESCAPE_OPEN.sub(r"\\{\1", text)
    text = _ESCAPE_CLOSE.sub(r"\1\2\\}", text)
    return text.replace(SUBSTITUTE_SEPARATOR, "\\" + SUBSTITUTE_SEPARATOR)


def unescape_markup(text: str) -> str:
    """Inverse of escape_markup"""
    # Separator first: "{~~>" escapes to "\{~\~>"
    text = text.replace("\\" + SUBSTITUTE_SEPARATOR, SUBSTITUTE_SEPARATOR)
    text = _UNESCAPE_CLOSE.sub(r"\1\2}", text)
    return _UNESCAPE_OPEN.sub(r"{\1", text)


def new_hunk_id() -> str:
    return f"hunk-{uuid.uuid4().hex[:12]}"


@dataclass
class _Marker:
    opener: str
    start: int  # offset of the opening delimiter
    body_start: int
    body_end: int
    end: int  # offset just past the closing delimiter


class CriticMarkupParser:
    """Parse {++ins++}, {--del--} and {~~old~>new~~} markers"""

    def __init__(
        self,
        context_chars: int = DEFAULT_CONTEXT_CHARS,
        max_context_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
    ):
        self.context_chars = context_chars
        self.max_context_chars = max_context_chars

    def parse(self, annotated: str) -> ParseResult:
        """Parse annotated text into hunks, warnings and the two clean views"""
        hunks: list[RawDiffHunk] = []
        warnings: list[ParseWarning] = []
        base: list[str] = []
        proposed: list[str] = []
        base_length = 0
        position = 0

        def literal(text: str):
            nonlocal base_length
            text = unescape_markup(text)
            base.append(text)
            proposed.append(text)
            base_length += len(text)

        while True:
            opening = _OPEN.search(annotated, position)
            if opening is None:
                literal(annotated[position:])
                break
            literal(annotated[position : opening.start()])

            marker = self._match_marker(annotated, opening.start())
            if marker is None:
                warnings.append(self._warning(annotated, opening.start(), "Unterminated marker"))
                literal(opening.group(0))
                position = opening.end()
                continue

            body = annotated[marker.body_start : marker.body_end]
            if not body:
                warnings.append(self._warning(annotated, marker.start, "Empty marker dropped"))
                position = marker.end
                continue

            if marker.opener == SUBSTITUTE_OPEN:
                if _SEPARATOR.search(body) is None:
                    warnings.append(
                        self._warning(annotated, marker.start, "Substitution without '~>' separator")
                    )
                    literal(annotated[marker.start : marker.end])
                    position = marker.end
                    continue
                original, replacement = _SEPARATOR.split(body, maxsplit=1)
                hunk = self._hunk(
                    marker.start,
                    marker.end,
                    base_length,
                    unescape_markup(original),
                    unescape_markup(replacement),
                )
                if hunk is not None:
                    hunk.notation = HunkNotation.SUBSTITUTION
                markup_end = marker.end
            elif marker.opener == INSERT_OPEN:
                hunk = self._hunk(marker.start, marker.end, base_length, "", unescape_markup(body))
                markup_end = marker.end
            else:
                hunk = self._hunk(marker.start, marker.end, base_length, unescape_markup(body), "")
                markup_end = marker.end
                # {--old--}{++new++} with nothing in between is one replacement
                follower = self._match_marker(annotated, marker.end)
                if follower is not None and follower.opener == INSERT_OPEN:
                    addition = annotated[follower.body_start : follower.body_end]
                    if addition:
                        hunk = self._hunk(
                            marker.start,
                            follower.end,
                            base_length,
                            unescape_markup(body),
                            unescape_markup(addition),
                        )
                        hunk.notation = HunkNotation.PAIR
                        markup_end = follower.end

            if hunk is None:
                # Both sides empty after splitting a substitution
                warnings.append(self._warning(annotated, marker.start, "Empty marker dropped"))
                position = markup_end
                continue

            hunks.append(hunk)
            base.append(hunk.original_text)
            proposed.append(hunk.proposed_text)
            base_length += len(hunk.original_text)
            position = markup_end

        base_text = "".join(base)
        for hunk in hunks:
            hunk.context_before = context_before(
                base_text, hunk.base_offset, self.context_chars, self.max_context_chars
            )
            hunk.context_after = context_after(
                base_text,
                hunk.base_offset + len(hunk.original_text),
                self.context_chars,
                self.max_context_chars,
            )

        for warning in warnings:
            logger.warning(f"[Parser] {warning.message} at offset {warning.offset}: {warning.snippet!r}")
        logger.debug(f"[Parser] Parsed {len(hunks)} hunks ({len(warnings)} warnings)")

        return ParseResult(
            hunks=hunks,
            warnings=warnings,
            base_text=base_text,
            proposed_text="".join(proposed),
        )

    def iter_hunks(self, annotated: str) -> Iterator[RawDiffHunk]:
        """Yield hunks in document order"""
        yield from self.parse(annotated).hunks

    def _match_marker(self, text: str, start: int) -> _Marker | None:
        """Well-formed marker opening exactly at start, or None"""
        opening = _OPEN.match(text, start)
        if opening is None:
            return None
        closer = _CLOSERS[opening.group(0)]
        close_at = text.find(closer, opening.end())
        if close_at == -1:
            return None
        # Markers do not nest: another opener before the closer leaves this one dangling
        next_open = _OPEN.search(text, opening.end(), close_at)
        if next_open is not None:
            return None
        return _Marker(opening.group(0), start, opening.end(), close_at, close_at + len(closer))

    def _hunk(
        self, start: int, end: int, base_offset: int, original: str, proposed: str
    ) -> RawDiffHunk | None:
        if original and proposed:
            kind = HunkKind.REPLACEMENT
        elif proposed:
            kind = HunkKind.INSERTION
        elif original:
            kind = HunkKind.DELETION
        else:
            return None
        return RawDiffHunk(
            id=new_hunk_id(),
            kind=kind,
            original_text=original,
            proposed_text=proposed,
            markup_start=start,
            markup_end=end,
            base_offset=base_offset,
        )

    def _warning(self, text: str, offset: int, message: str) -> ParseWarning:
        return ParseWarning(offset=offset, message=message, snippet=text[offset : offset + 40])


def strip_markers(annotated: str) -> str:
    """Clean text with every pending marker rejected"""
    return CriticMarkupParser().parse(annotated).base_text


def accept_markers(annotated: str) -> str:
    """Clean text with every marker accepted"""
    return CriticMarkupParser().parse(annotated).proposed_text
