"""
Context fingerprints - Text windows used to re-locate hunks despite offset drift
"""

from __future__ import annotations

import re
from difflib import SequenceMatcher

DEFAULT_CONTEXT_CHARS = 40
DEFAULT_MAX_CONTEXT_CHARS = 240

# End of a sentence or a line
_BOUNDARY = re.compile(r"[.!?](?=\s)|\n")


def context_before(
    text: str,
    offset: int,
    min_chars: int = DEFAULT_CONTEXT_CHARS,
    max_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
) -> str:
    """Window ending at offset: at least min_chars, extended back to a sentence start"""
    start = max(0, offset - min_chars)
    limit = max(0, offset - max_chars)
    if start > 0:
        boundary = limit
        for match in _BOUNDARY.finditer(text, limit, start):
            boundary = match.end()
        start = boundary
    return text[start:offset]


def context_after(
    text: str,
    offset: int,
    min_chars: int = DEFAULT_CONTEXT_CHARS,
    max_chars: int = DEFAULT_MAX_CONTEXT_CHARS,
) -> str:
    """Window starting at offset: at least min_chars, extended forward to a sentence end"""
    end = min(len(text), offset + min_chars)
    limit = min(len(text), offset + max_chars)
    if end < len(text):
        match = _BOUNDARY.search(text, end, limit)
        end = match.end() if match else limit
    return text[offset:end]


def similarity(live: str, expected: str) -> float:
    if live == expected:
        return 1.0
    if not live or not expected:
        return 0.0
    return SequenceMatcher(None, live, expected, autojunk=False).ratio()


def fingerprint_score(text: str, start: int, end: int, before: str, after: str) -> float:
    """Length-weighted similarity of the live context around [start, end) to a fingerprint"""
    weight = len(before) + len(after)
    if weight == 0:
        return 1.0
    live_before = text[max(0, start - len(before)) : start]
    live_after = text[end : end + len(after)]
    score = similarity(live_before, before) * len(before) + similarity(live_after, after) * len(after)
    return score / weight
