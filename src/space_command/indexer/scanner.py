"""Scanner: builds and maintains the item index from a document store."""

import logging
from collections.abc import Callable, Iterable

from space_command.config import Config
from space_command.events import EventChannel, SubscriptionToken
from space_command.indexer.debounce import KeyedDebouncer
from space_command.indexer.hierarchy import build_outline
from space_command.indexer.index import ItemIndex
from space_command.indexer.models import Category, Item, ItemCounts
from space_command.indexer.parser import iter_parsed_lines
from space_command.indexer.sorting import FOCUS_TAG, is_snoozed
from space_command.indexer.store import (
    DocumentEvent,
    DocumentNotFoundError,
    DocumentStore,
    DocumentStoreError,
)
from space_command.indexer.tags import filename_to_tag

logger = logging.getLogger(__name__)


def build_items(path: str, text: str) -> list[Item]:
    """
    Parse one document into items.

    Pure function: the same path and text always give the same items.
    """
    parsed = list(iter_parsed_lines(text))
    outline = build_outline((line_number, info) for line_number, _, info in parsed)
    file_tag = filename_to_tag(path)

    items: list[Item] = []
    for line_number, line, info in parsed:
        if not info.is_taggable:
            continue
        items.append(
            Item(
                document_path=path,
                line_number=line_number,
                raw_text=line,
                category=info.category,
                tags=tuple(info.tags),
                is_header=info.is_header,
                header_level=info.header_level,
                parent_line_number=outline.parent_of(line_number),
                child_line_numbers=tuple(outline.children_of(line_number)),
                has_checkbox=info.has_checkbox,
                is_checked=info.is_checked,
                inferred_file_tag=file_tag,
            )
        )
    return items


class Scanner:
    """
    Owns the scanning side of the index.

    The store is the source of truth; the index can be rebuilt from it at any
    time. Every change to the index is followed by a publish() on the
    `updated` channel, which carries no payload: subscribers re-query.

    Concurrency:
        Everything runs on the event loop thread. Reads from the store are
        the only suspension points. Change notifications are debounced per
        document path.
    """

    def __init__(self, store: DocumentStore, index: ItemIndex, config: Config):
        self.store = store
        self.index = index
        self.config = config
        self.updated = EventChannel("index-updated")
        self._exclude_from_done: set[str] = set()
        self._store_tokens: list[SubscriptionToken] = []
        self._debouncer = KeyedDebouncer(self.scan_document, config.debounce_seconds)
        self._apply_config(config)

    def _apply_config(self, config: Config) -> None:
        if config.exclude_todone_file_from_done and config.log_completions:
            self._exclude_from_done = {config.todone_file}
        else:
            self._exclude_from_done = set()

    def update_config(self, config: Config) -> None:
        """Swap configuration. Does not rescan."""
        self.config = config
        self._apply_config(config)
        if config.debounce_seconds != self._debouncer.window:
            self._debouncer.cancel_all()
            self._debouncer = KeyedDebouncer(self.scan_document, config.debounce_seconds)

    def exclude_from_done(self, paths: Iterable[str]) -> None:
        """Hide done items of these documents from done-item queries."""
        self._exclude_from_done = set(paths)

    # Notification channel

    def subscribe(self, handler: Callable[[], object]) -> SubscriptionToken:
        return self.updated.subscribe(handler)

    def unsubscribe(self, token: SubscriptionToken) -> bool:
        return self.updated.unsubscribe(token)

    # Scanning

    async def full_scan(self, scope: str = "") -> int:
        """
        Clear the index and scan every document in scope.

        Returns the number of documents that produced items.
        """
        logger.info("Starting full scan of %s", scope or "all documents")
        self.index.clear()

        paths = await self.store.list(scope)
        count = 0
        for path in paths:
            items = await self._read_items(path)
            if items is None:
                continue
            self.index.replace(path, items)
            if items:
                count += 1

        logger.info(
            "Full scan complete: %d items in %d of %d documents",
            len(self.index),
            count,
            len(paths),
        )
        self.updated.publish()
        return count

    async def scan_document(self, path: str) -> list[Item]:
        """Rescan one document, replacing its items. Returns the new items."""
        items = await self._read_items(path)
        if items is None:
            self.index.remove(path)
            items = []
        else:
            self.index.replace(path, items)
        logger.debug("Scanned %s: %d items", path, len(items))
        self.updated.publish()
        return items

    def remove_document(self, path: str) -> None:
        """Purge a deleted document from the index."""
        self._debouncer.cancel(path)
        if self.index.remove(path):
            logger.debug("Removed %s from index", path)
        self.updated.publish()

    async def _read_items(self, path: str) -> list[Item] | None:
        """Read and parse a document; None if it no longer exists."""
        try:
            text = await self.store.read(path)
        except DocumentNotFoundError:
            logger.debug("Document vanished before scan: %s", path)
            return None
        except DocumentStoreError as e:
            logger.warning("Skipping unreadable document %s: %s", path, e)
            return []
        return build_items(path, text)

    # Change notifications

    def watch(self) -> None:
        """Subscribe to the store's change events."""
        if self._store_tokens:
            logger.warning("Scanner already watching")
            return
        self._store_tokens = [
            self.store.subscribe("create", self._on_change),
            self.store.subscribe("modify", self._on_change),
            self.store.subscribe("delete", self._on_delete),
            self.store.subscribe("rename", self._on_rename),
        ]

    def unwatch(self) -> None:
        for token in self._store_tokens:
            self.store.unsubscribe(token)
        self._store_tokens = []
        self._debouncer.cancel_all()

    def schedule_scan(self, path: str) -> None:
        """Queue a debounced rescan of one document."""
        self._debouncer.schedule(path)

    async def drain(self) -> None:
        """Wait until running rescans have finished."""
        await self._debouncer.drain()

    def _on_change(self, event: DocumentEvent) -> None:
        self.schedule_scan(event.path)

    def _on_delete(self, event: DocumentEvent) -> None:
        self.remove_document(event.path)

    def _on_rename(self, event: DocumentEvent) -> None:
        if event.old_path:
            self._debouncer.cancel(event.old_path)
            self.index.remove(event.old_path)
        self.schedule_scan(event.path)

    # Queries

    def get_items(self, category: Category | None = None) -> list[Item]:
        """Items of a category in (path, line) order."""
        items = self.index.iter_items(category)
        if category == Category.TASK_DONE and self._exclude_from_done:
            return [i for i in items if i.document_path not in self._exclude_from_done]
        return list(items)

    def get_todos(self) -> list[Item]:
        return self.get_items(Category.TASK_OPEN)

    def get_todones(self, limit: int | None = None) -> list[Item]:
        items = self.get_items(Category.TASK_DONE)
        return items[:limit] if limit else items

    def get_ideas(self) -> list[Item]:
        return self.get_items(Category.IDEA)

    def get_principles(self) -> list[Item]:
        return self.get_items(Category.PRINCIPLE)

    def get_item(self, path: str, line_number: int) -> Item | None:
        return self.index.get(path, line_number)

    def get_items_with_tag(self, tag: str, category: Category | None = None) -> list[Item]:
        return [i for i in self.get_items(category) if i.has_tag(tag)]

    def get_counts(self) -> ItemCounts:
        counts = ItemCounts()
        for item in self.index.iter_items():
            counts.total += 1
            if item.category == Category.TASK_OPEN:
                counts.open += 1
                if item.has_tag(FOCUS_TAG):
                    counts.focused += 1
                if is_snoozed(item):
                    counts.snoozed += 1
            elif item.category == Category.TASK_DONE:
                counts.done += 1
            elif item.category == Category.IDEA:
                counts.ideas += 1
            elif item.category == Category.PRINCIPLE:
                counts.principles += 1
        return counts
