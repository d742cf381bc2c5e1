"""In-memory item index, keyed by document path."""

from collections.abc import Iterator

from space_command.indexer.models import Category, Item


class ItemIndex:
    """
    Owns the items of every scanned document.

    The index is the only mutable state shared between the scanner, the
    processor and the project aggregator. It is passed to each of them
    explicitly; only the scanner writes to it.
    """

    def __init__(self) -> None:
        self._documents: dict[str, list[Item]] = {}
        self._generation = 0

    @property
    def generation(self) -> int:
        """Counter bumped on every change to the index."""
        return self._generation

    def clear(self) -> None:
        self._documents.clear()
        self._generation += 1

    def replace(self, path: str, items: list[Item]) -> None:
        """Replace all items for a document with a new generation."""
        if items:
            self._documents[path] = list(items)
        else:
            self._documents.pop(path, None)
        self._generation += 1

    def remove(self, path: str) -> bool:
        """Drop a document. Returns True if it had items."""
        existed = self._documents.pop(path, None) is not None
        self._generation += 1
        return existed

    def paths(self) -> list[str]:
        return sorted(self._documents)

    def document_items(self, path: str) -> list[Item]:
        return list(self._documents.get(path, []))

    def get(self, path: str, line_number: int) -> Item | None:
        for item in self._documents.get(path, []):
            if item.line_number == line_number:
                return item
        return None

    def iter_items(self, category: Category | None = None) -> Iterator[Item]:
        """Iterate items in (path, line) order, optionally by category."""
        for path in sorted(self._documents):
            for item in self._documents[path]:
                if category is None or item.category == category:
                    yield item

    def __len__(self) -> int:
        return sum(len(items) for items in self._documents.values())

    def __contains__(self, path: object) -> bool:
        return path in self._documents
