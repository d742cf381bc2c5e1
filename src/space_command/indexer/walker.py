"""File walker for discovering markdown documents under a root."""

from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path


@dataclass
class FileInfo:
    """Information about a discovered file."""

    path: Path  # Absolute path
    relative_path: str  # Relative to the root, posix separators
    folder: str  # Parent folder relative to the root, "" for root files
    filename: str
    mtime: float


def is_hidden(relative_parts: tuple[str, ...]) -> bool:
    return any(part.startswith(".") for part in relative_parts)


def walk_markdown(root: Path, scope: str = "") -> Iterator[FileInfo]:
    """
    Walk a root directory and yield FileInfo for each .md file.

    Hidden files and directories (".obsidian/", ".trash/", ...) are skipped.
    Results are sorted by relative path.

    Args:
        root: Root directory of the document collection
        scope: Optional sub-folder (relative to root) to restrict the walk
    """
    base = root / scope if scope else root
    if not base.exists():
        return

    for file_path in sorted(base.rglob("*.md")):
        if not file_path.is_file():
            continue

        relative_parts = file_path.relative_to(root).parts
        if is_hidden(relative_parts):
            continue

        relative_path = "/".join(relative_parts)
        folder = "/".join(relative_parts[:-1])

        yield FileInfo(
            path=file_path,
            relative_path=relative_path,
            folder=folder,
            filename=file_path.name,
            mtime=file_path.stat().st_mtime,
        )
