"""Data models for the item index."""

from dataclasses import dataclass, field
from enum import Enum


class Category(str, Enum):
    """Recognized item categories."""

    TASK_OPEN = "task-open"
    TASK_DONE = "task-done"
    IDEA = "idea"
    PRINCIPLE = "principle"


@dataclass(frozen=True)
class Item:
    """One recognized line (or heading) in one document.

    Items are snapshots of the most recent scan of their document. They are
    never edited in place; a mutation rewrites the document and the next scan
    produces a fresh generation of items.
    """

    document_path: str  # Relative to the store root, posix separators
    line_number: int  # 0-based
    raw_text: str
    category: Category
    tags: tuple[str, ...] = ()
    is_header: bool = False
    header_level: int = 0
    parent_line_number: int | None = None
    child_line_numbers: tuple[int, ...] = ()
    has_checkbox: bool = False
    is_checked: bool = False
    inferred_file_tag: str | None = None

    @property
    def text(self) -> str:
        return self.raw_text.strip()

    @property
    def folder(self) -> str:
        head, sep, _ = self.document_path.rpartition("/")
        return head if sep else ""

    def has_tag(self, tag: str) -> bool:
        wanted = tag.lower()
        return any(t.lower() == wanted for t in self.tags)


@dataclass
class ItemCounts:
    """Per-category counts over the current index."""

    total: int = 0
    open: int = 0
    done: int = 0
    ideas: int = 0
    principles: int = 0
    focused: int = 0
    snoozed: int = 0


@dataclass
class ProjectInfo:
    """Derived view of all items sharing one non-system tag."""

    tag: str
    item_count: int = 0
    highest_priority_rank: int = 0
    colour_index: int = 0
    document_paths: list[str] = field(default_factory=list)
