"""
CriticMarkup Diff Generator - Render before/after Markdown as CriticMarkup
"""

from __future__ import annotations

import re
from difflib import SequenceMatcher

from suggestion_backend.services.critic_parser import (
    DELETE_CLOSE,
    DELETE_OPEN,
    INSERT_CLOSE,
    INSERT_OPEN,
    escape_markup,
)

# Blocks replaced wholesale on any change
ATOMIC_KINDS = {"heading", "code", "table", "list", "thematic_break"}

_FENCE = re.compile(r"^\s{0,3}(```|~~~)")
_WORD_TOKENS = re.compile(r"\s+|\w+|[^\w\s]")


def _block_kind(segment: str) -> str:
    first = segment.lstrip("\n").split("\n", 1)[0]
    stripped = first.strip()
    if re.match(r"#{1,6}\s", stripped):
        return "heading"
    if _FENCE.match(first):
        return "code"
    if stripped.startswith("|"):
        return "table"
    if re.match(r"([-*+]|\d+[.)])\s", stripped):
        return "list"
    if re.fullmatch(r"([-*_])(\s*\1){2,}", stripped):
        return "thematic_break"
    if stripped.startswith(">"):
        return "blockquote"
    return "paragraph"


def split_segments(text: str) -> list[str]:
    """Split into blocks, each carrying its trailing blank lines; fences stay whole"""
    segments: list[str] = []
    current: list[str] = []
    in_fence = False
    lines = text.splitlines(keepends=True)

    for index, line in enumerate(lines):
        current.append(line)
        if _FENCE.match(line):
            in_fence = not in_fence
        if in_fence:
            continue
        following = lines[index + 1] if index + 1 < len(lines) else None
        # A segment ends after a blank line that is not followed by another blank line
        if not line.strip() and (following is None or following.strip()):
            segments.append("".join(current))
            current = []

    if current:
        segments.append("".join(current))
    return segments


def wrap_insert(text: str) -> str:
    return f"{INSERT_OPEN}{escape_markup(text)}{INSERT_CLOSE}" if text else ""


def wrap_delete(text: str) -> str:
    return f"{DELETE_OPEN}{escape_markup(text)}{DELETE_CLOSE}" if text else ""


class CriticDiffGenerator:
    """Generate CriticMarkup over the original text for a proposed rewrite"""

    def __init__(self, granularity: str = "word"):
        self.granularity = granularity

    def generate(self, original_content: str, new_content: str) -> str:
        """Annotated text whose rejected view is original and accepted view is new"""
        if original_content == new_content:
            return escape_markup(original_content)

        original = split_segments(original_content)
        modified = split_segments(new_content)
        matcher = SequenceMatcher(None, original, modified, autojunk=False)
        parts: list[str] = []

        for tag, i1, i2, j1, j2 in matcher.get_opcodes():
            if tag == "equal":
                parts.append(escape_markup("".join(original[i1:i2])))
            elif tag == "delete":
                parts.append(wrap_delete("".join(original[i1:i2])))
            elif tag == "insert":
                parts.append(wrap_insert("".join(modified[j1:j2])))
            else:
                parts.append(self._replace_segments(original[i1:i2], modified[j1:j2]))

        return "".join(parts)

    def diff_text(self, before: str, after: str) -> str:
        """Word (or character) level CriticMarkup for one block"""
        if self.granularity == "char":
            a_tokens, b_tokens = list(before), list(after)
        else:
            a_tokens, b_tokens = _WORD_TOKENS.findall(before), _WORD_TOKENS.findall(after)

        matcher = SequenceMatcher(None, a_tokens, b_tokens, autojunk=False)
        ops = [(tag, a_tokens[i1:i2], b_tokens[j1:j2]) for tag, i1, i2, j1, j2 in matcher.get_opcodes()]
        parts = []
        for index, (tag, removed, added) in enumerate(ops):
            if tag == "equal":
                parts.append(escape_markup("".join(removed)))
                continue
            following = ops[index + 1] if index + 1 < len(ops) else ("end", [], [])
            run = added if tag == "insert" else removed
            if (
                tag != "replace"
                and following[0] == "equal"
                and following[1]
                and run[0].isspace()
                and run[0] == following[1][0]
            ):
                # " brave" before " world" reads the same as "brave " before "world"
                parts.append(run[0])
                run = run[1:] + run[:1]
                ops[index + 1] = ("equal", following[1][1:], following[2][1:])
                if tag == "insert":
                    added = run
                else:
                    removed = run
            parts.append(wrap_delete("".join(removed)) + wrap_insert("".join(added)))
        return "".join(parts)

    def _replace_segments(self, before: list[str], after: list[str]) -> str:
        parts = []
        paired = min(len(before), len(after))
        for old, new in zip(before[:paired], after[:paired]):
            old_kind, new_kind = _block_kind(old), _block_kind(new)
            if old_kind != new_kind or old_kind in ATOMIC_KINDS:
                parts.append(wrap_delete(old) + wrap_insert(new))
            else:
                parts.append(self.diff_text(old, new))
        parts.append(wrap_delete("".join(before[paired:])))
        parts.append(wrap_insert("".join(after[paired:])))
        return "".join(parts)
