"""Heading-based parent/child grouping for one document.

A single top-to-bottom pass keeps a stack of open header items. Any heading
closes the open headers of the same or a deeper level; a taggable heading
is then pushed. A taggable non-heading line becomes a child of the header
on top of the stack.
"""

from collections.abc import Iterable
from dataclasses import dataclass, field

from space_command.indexer.parser import LineInfo


@dataclass
class HeaderFrame:
    """An open header on the stack."""

    line_number: int
    level: int
    children: list[int] = field(default_factory=list)


@dataclass
class Outline:
    """Parent/child relations for one scan of one document."""

    parents: dict[int, int] = field(default_factory=dict)
    children: dict[int, list[int]] = field(default_factory=dict)

    def parent_of(self, line_number: int) -> int | None:
        return self.parents.get(line_number)

    def children_of(self, line_number: int) -> list[int]:
        return self.children.get(line_number, [])


def build_outline(entries: Iterable[tuple[int, LineInfo]]) -> Outline:
    """Build the outline from parsed lines in document order.

    Args:
        entries: (line_number, info) pairs for headings and taggable lines,
            ascending by line number.
    """
    outline = Outline()
    stack: list[HeaderFrame] = []

    for line_number, info in entries:
        if info.is_header:
            while stack and stack[-1].level >= info.header_level:
                stack.pop()
            if info.is_taggable:
                frame = HeaderFrame(line_number=line_number, level=info.header_level)
                outline.children[line_number] = frame.children
                stack.append(frame)
            continue

        if info.is_taggable and stack:
            top = stack[-1]
            top.children.append(line_number)
            outline.parents[line_number] = top.line_number

    return outline
