"""Line parser: decides whether a line is an item and what it carries."""

import re
from collections.abc import Iterator
from dataclasses import dataclass, field

from space_command.indexer.models import Category
from space_command.indexer.tags import (
    DATE_TOKEN_PATTERN,
    TAG_PATTERN,
    extract_tags,
    has_checkbox,
    is_checkbox_checked,
)

HEADING_PATTERN = re.compile(r"^(#{1,6})\s+")
LIST_ITEM_PATTERN = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s")
FENCE_PATTERN = re.compile(r"^\s*(```|~~~)")

# Category markers, singular and plural spellings
OPEN_MARKERS = ("#todo", "#todos", "#task", "#tasks")
DONE_MARKERS = ("#todone", "#todones", "#done")
IDEA_MARKERS = ("#idea", "#ideas", "#ideation")
PRINCIPLE_MARKERS = ("#principle", "#principles")

# Open form -> done form, used when completing and reopening tasks
DONE_TAG_PAIRS = {
    "#todo": "#todone",
    "#task": "#done",
}

CATEGORY_MARKERS: dict[Category, tuple[str, ...]] = {
    Category.TASK_DONE: DONE_MARKERS,
    Category.IDEA: IDEA_MARKERS,
    Category.TASK_OPEN: OPEN_MARKERS,
    Category.PRINCIPLE: PRINCIPLE_MARKERS,
}

SYSTEM_TAGS = frozenset(
    OPEN_MARKERS + DONE_MARKERS + IDEA_MARKERS + PRINCIPLE_MARKERS
)


@dataclass
class LineInfo:
    """Result of parsing one line."""

    is_header: bool = False
    header_level: int = 0
    category: Category | None = None
    tags: list[str] = field(default_factory=list)
    has_checkbox: bool = False
    is_checked: bool = False

    @property
    def is_taggable(self) -> bool:
        return self.category is not None


def is_system_tag(tag: str) -> bool:
    return tag.lower() in SYSTEM_TAGS


def detect_heading(line: str) -> int:
    """Return the ATX heading level of a line, or 0 if it is not a heading."""
    match = HEADING_PATTERN.match(line)
    return len(match.group(1)) if match else 0


def is_list_item(line: str) -> bool:
    return LIST_ITEM_PATTERN.match(line) is not None


def classify(tags: list[str]) -> Category | None:
    """Pick the category for a set of tags.

    Precedence: task-done, idea, task-open, principle.
    """
    lowered = {t.lower() for t in tags}
    for category, markers in CATEGORY_MARKERS.items():
        if lowered.intersection(markers):
            return category
    return None


def has_content(line: str) -> bool:
    """Check if a line has meaningful content beyond markers and tags.

    "- [ ] #todo" or "## #ideas" are empty; "- [ ] call bob #todo" is not.
    """
    content = line.strip()
    content = re.sub(r"^#{1,6}\s+", "", content)
    content = re.sub(r"^(?:[-*+]|\d+[.)])\s*", "", content)
    content = re.sub(r"^\[[ xX]?\]\s*", "", content)
    content = TAG_PATTERN.sub("", content)
    content = DATE_TOKEN_PATTERN.sub("", content)
    content = re.sub(r"\^[\w-]+", "", content)
    return bool(content.strip())


def parse_line(text: str) -> LineInfo:
    """Parse a single line.

    Category markers inside inline code spans are ignored, so
    "use `#todo` to mark tasks" is not an item.
    """
    level = detect_heading(text)
    tags = extract_tags(text)
    category = classify(tags)
    if category is not None and not has_content(text):
        category = None

    return LineInfo(
        is_header=level > 0,
        header_level=level,
        category=category,
        tags=tags,
        has_checkbox=has_checkbox(text),
        is_checked=is_checkbox_checked(text),
    )


def frontmatter_end(lines: list[str]) -> int:
    """Return the index of the first line after a YAML front-matter block.

    Returns 0 when the document has no front matter.
    """
    if not lines or lines[0].strip() != "---":
        return 0
    for i in range(1, len(lines)):
        if lines[i].strip() in ("---", "..."):
            return i + 1
    return 0


def iter_parsed_lines(text: str) -> Iterator[tuple[int, str, LineInfo]]:
    """Yield (line_number, line, info) for every heading and taggable line.

    Untagged headings are yielded as well because they close header scopes.
    Front matter and fenced code blocks are skipped but still counted.
    """
    lines = text.split("\n")
    in_fence = False
    for i in range(frontmatter_end(lines), len(lines)):
        line = lines[i].rstrip("\r")
        if FENCE_PATTERN.match(line):
            in_fence = not in_fence
            continue
        if in_fence:
            continue

        info = parse_line(line)
        if info.is_header or info.is_taggable:
            yield i, line, info
