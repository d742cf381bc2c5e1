"""
Indexer module for space-command.

Builds an in-memory index of tagged items (tasks, ideas, principles,
completed tasks) from markdown documents and keeps it current as the
documents change. The documents are always the source of truth.
"""

from space_command.indexer.index import ItemIndex
from space_command.indexer.models import Category, Item, ItemCounts, ProjectInfo
from space_command.indexer.parser import LineInfo, parse_line
from space_command.indexer.scanner import Scanner, build_items
from space_command.indexer.sorting import priority_rank, sort_items
from space_command.indexer.store import (
    DocumentEvent,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
    FileSystemStore,
    MemoryStore,
)
from space_command.indexer.tags import extract_tags

__all__ = [
    "Category",
    "DocumentEvent",
    "DocumentNotFoundError",
    "DocumentStore",
    "DocumentStoreError",
    "FileSystemStore",
    "Item",
    "ItemCounts",
    "ItemIndex",
    "LineInfo",
    "MemoryStore",
    "ProjectInfo",
    "Scanner",
    "build_items",
    "extract_tags",
    "parse_line",
    "priority_rank",
    "sort_items",
]
