"""
Markdown Block Model - Segment a Markdown document into addressable leaf blocks
"""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass

from markdown_it import MarkdownIt

from suggestion_backend.models.diff import BlockKind

_md = MarkdownIt("commonmark").enable("table")

_CONTAINERS = {
    "bullet_list_open",
    "ordered_list_open",
    "list_item_open",
    "blockquote_open",
}

_LEAVES = {
    "fence": BlockKind.CODE,
    "code_block": BlockKind.CODE,
    "hr": BlockKind.THEMATIC_BREAK,
    "html_block": BlockKind.HTML,
}


@dataclass(frozen=True)
class Block:
    """A leaf block: text span plus its index path through container blocks"""

    kind: BlockKind
    path: tuple[int, ...]
    start: int
    end: int

    def contains(self, position: int) -> bool:
        return self.start <= position <= self.end


@dataclass
class _Frame:
    token_type: str
    path: tuple[int, ...]
    children: int = 0

    def next_path(self) -> tuple[int, ...]:
        path = self.path + (self.children,)
        self.children += 1
        return path


def _line_starts(text: str) -> list[int]:
    starts = [0]
    for index, char in enumerate(text):
        if char == "\n":
            starts.append(index + 1)
    return starts


def _unescaped_pipes(line: str) -> list[int]:
    pipes = []
    escaped = False
    for index, char in enumerate(line):
        if escaped:
            escaped = False
        elif char == "\\":
            escaped = True
        elif char == "|":
            pipes.append(index)
    return pipes


def table_cell_spans(line: str) -> list[tuple[int, int]]:
    """Cell spans (relative to the line) of one table row"""
    pipes = _unescaped_pipes(line)
    bounds = [-1] + pipes + [len(line)]
    spans = []
    for left, right in zip(bounds, bounds[1:]):
        start, end = left + 1, right
        # Outer segments are padding when the row has leading/trailing pipes
        if left == -1 and pipes and not line[:end].strip():
            continue
        if right == len(line) and pipes and not line[start:].strip():
            continue
        spans.append((start, end))
    return spans


def split_blocks(text: str) -> list[Block]:
    """Segment text into leaf blocks in document order"""
    tokens = _md.parse(text)
    line_starts = _line_starts(text)

    def span(line_map: list[int]) -> tuple[int, int]:
        begin, finish = line_map
        start = line_starts[begin] if begin < len(line_starts) else len(text)
        end = line_starts[finish] if finish < len(line_starts) else len(text)
        while end > start and text[end - 1] == "\n":
            end -= 1
        return start, end

    blocks: list[Block] = []
    stack = [_Frame("root", ())]
    skip_until: str | None = None
    table_path: tuple[int, ...] | None = None
    table_rows = 0

    for token in tokens:
        if skip_until:
            if token.type == skip_until:
                skip_until = None
            continue

        if table_path is not None:
            if token.type == "table_close":
                table_path = None
            elif token.type == "tr_open" and token.map:
                row_start, row_end = span(token.map)
                line = text[row_start:row_end]
                for column, (cell_start, cell_end) in enumerate(table_cell_spans(line)):
                    blocks.append(
                        Block(
                            BlockKind.TABLE_CELL,
                            table_path + (table_rows, column),
                            row_start + cell_start,
                            row_start + cell_end,
                        )
                    )
                table_rows += 1
            continue

        if token.type in _CONTAINERS:
            stack.append(_Frame(token.type, stack[-1].next_path()))
        elif token.type.endswith("_close") and token.type.replace("_close", "_open") in _CONTAINERS:
            stack.pop()
        elif token.type == "table_open":
            table_path = stack[-1].next_path()
            table_rows = 0
        elif token.type in ("paragraph_open", "heading_open") and token.map:
            if token.type == "heading_open":
                kind = BlockKind.HEADING
            elif stack[-1].token_type == "list_item_open":
                kind = BlockKind.LIST_ITEM
            else:
                kind = BlockKind.PARAGRAPH
            start, end = span(token.map)
            blocks.append(Block(kind, stack[-1].next_path(), start, end))
            skip_until = token.type.replace("_open", "_close")
        elif token.type in _LEAVES and token.map:
            start, end = span(token.map)
            blocks.append(Block(_LEAVES[token.type], stack[-1].next_path(), start, end))

    return blocks


class Document:
    """Live Markdown document with lazily computed block structure"""

    def __init__(self, text: str = ""):
        self._text = text
        self._blocks: list[Block] | None = None

    @property
    def text(self) -> str:
        return self._text

    @text.setter
    def text(self, value: str):
        self._text = value
        self._blocks = None

    @property
    def blocks(self) -> list[Block]:
        if self._blocks is None:
            self._blocks = split_blocks(self._text)
        return self._blocks

    def root(self) -> Block:
        return Block(BlockKind.ROOT, (), 0, len(self._text))

    def splice(self, start: int, end: int, replacement: str):
        """Replace text[start:end] with replacement"""
        self.text = self._text[:start] + replacement + self._text[end:]

    def block_at(self, position: int) -> Block:
        """Leaf block containing position, else the nearest preceding block, else the root"""
        blocks = self.blocks
        starts = [block.start for block in blocks]
        index = bisect_right(starts, position) - 1
        if index < 0:
            return self.root()
        # A position on a shared boundary belongs to the earlier block
        for candidate in blocks[max(0, index - 1) : index + 1]:
            if candidate.contains(position):
                return candidate
        return blocks[index]

    def block_by_path(self, path: tuple[int, ...]) -> Block | None:
        if not path:
            return self.root()
        for block in self.blocks:
            if block.path == path:
                return block
        return None
