"""Processor: the only component that writes item changes back to documents.

Every mutation re-reads the document, checks that the target line still
matches the item snapshot, rewrites that one line and writes the document
back. The in-memory index is never patched; after a successful write the
registered callback asks the scanner to rescan the document.

There is no locking: another writer can still slip in between the read and
the write. That is accepted for a local, single-user notes collection.
"""

import inspect
import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from datetime import date

from space_command.config import Config, normalize_tag
from space_command.indexer.index import ItemIndex
from space_command.indexer.models import Category, Item
from space_command.indexer.parser import DONE_TAG_PAIRS, parse_line
from space_command.indexer.sorting import (
    FOCUS_TAG,
    SNOOZE_TAGS,
    exclusive_priority_tags,
)
from space_command.indexer.store import DocumentNotFoundError, DocumentStore, DocumentStoreError
from space_command.indexer.tags import (
    add_tag,
    extract_tags,
    has_checkbox,
    is_checkbox_checked,
    mark_checkbox_complete,
    mark_checkbox_incomplete,
    mask_code_spans,
    remove_tag,
    replace_tag,
    unmask_code_spans,
)

logger = logging.getLogger(__name__)

DATE_FORMAT = "%Y-%m-%d"

# Completion also accepts the plural header spelling of #todo
COMPLETE_PAIRS = {**DONE_TAG_PAIRS, "#todos": "#todones"}
REOPEN_PAIRS = {done: open_ for open_, done in COMPLETE_PAIRS.items()}

OnComplete = Callable[[str], Awaitable[None] | None]


class StaleItemError(Exception):
    """The target line no longer matches the item snapshot."""

    pass


@dataclass
class MutationResult:
    """Outcome of one mutation. Truthy when it succeeded."""

    success: bool
    path: str
    line_number: int
    reason: str | None = None
    new_text: str | None = None
    changed: bool = False

    def __bool__(self) -> bool:
        return self.success


def _first_tag_in(line: str, candidates: Iterable[str]) -> str | None:
    wanted = {c.lower() for c in candidates}
    for tag in extract_tags(line):
        if tag.lower() in wanted:
            return tag
    return None


def complete_line(line: str, today: date) -> str:
    """
    Turn an open task line into a done line.

    "- [ ] Ship #todo #p1" -> "- [x] Ship #todone @2024-01-15 #p1"

    Raises:
        StaleItemError: If the line is not an open task.
    """
    info = parse_line(line)
    if info.category != Category.TASK_OPEN:
        raise StaleItemError("line is not an open task")
    if info.has_checkbox and info.is_checked:
        raise StaleItemError("checkbox is already checked")

    open_tag = _first_tag_in(line, COMPLETE_PAIRS)
    if open_tag is None:
        raise StaleItemError("no completable task tag on line")

    done_tag = COMPLETE_PAIRS[open_tag.lower()]
    updated = replace_tag(line, open_tag, f"{done_tag} @{today.strftime(DATE_FORMAT)}")
    if has_checkbox(updated):
        updated = mark_checkbox_complete(updated)
    return updated


def reopen_line(line: str) -> str:
    """
    Turn a done task line back into an open one, dropping the completion date.

    Raises:
        StaleItemError: If the line is not a done task.
    """
    info = parse_line(line)
    if info.category != Category.TASK_DONE:
        raise StaleItemError("line is not a done task")

    done_tag = _first_tag_in(line, REOPEN_PAIRS)
    if done_tag is None:
        raise StaleItemError("no reopenable done tag on line")

    open_tag = REOPEN_PAIRS[done_tag.lower()]
    pattern = re.compile(
        r"(?<![\w#])" + re.escape(done_tag) + r"(?![\w-])(?:[ \t]+@\d{4}-\d{2}-\d{2})?",
        re.IGNORECASE,
    )
    masked, spans = mask_code_spans(line)
    updated = unmask_code_spans(pattern.sub(lambda _: open_tag, masked, count=1), spans)
    if is_checkbox_checked(updated):
        updated = mark_checkbox_incomplete(updated)
    return updated


def set_exclusive_tag(line: str, tag: str, exclusive: Iterable[str]) -> str:
    """Remove every tag of the exclusive set, then add the requested one."""
    for other in exclusive:
        line = remove_tag(line, other)
    return add_tag(line, tag)


class Processor:
    """
    Applies item mutations to their source documents.

    Expected drift (the document changed after the item was indexed) is
    reported as a failed MutationResult. Store read errors propagate as
    DocumentStoreError; a rejected write is a failed result.
    """

    def __init__(self, store: DocumentStore, index: ItemIndex, config: Config):
        self.store = store
        self.index = index
        self.config = config
        self._on_complete: OnComplete | None = None

    def set_on_complete_callback(self, callback: OnComplete | None) -> None:
        """Register the callback run with the document path after each write."""
        self._on_complete = callback

    def update_config(self, config: Config) -> None:
        self.config = config

    def find_item(self, path: str, line_number: int) -> Item | None:
        """Look up the current snapshot of an item in the index."""
        return self.index.get(path, line_number)

    @property
    def exclusive_tags(self) -> list[str]:
        return exclusive_priority_tags(self.config.priority_tags)

    # Mutations

    async def complete_item(self, item: Item, today: date | None = None) -> MutationResult:
        """Check the box, swap the task tag for its done form and stamp the date."""
        today = today or date.today()
        result = await self._mutate(item, lambda line: complete_line(line, today), "complete")
        if result.success and result.changed and self.config.log_completions:
            await self._append_to_log(item, result.new_text or "")
        return result

    async def uncomplete_item(self, item: Item) -> MutationResult:
        return await self._mutate(item, reopen_line, "uncomplete")

    async def set_priority_tag(
        self, item: Item, tag: str, focus: bool = False
    ) -> MutationResult:
        """
        Replace whatever priority tag the item carries with `tag`.

        Args:
            item: Item snapshot to change
            tag: One of the configured priority tags, #today or a snooze tag
            focus: Also add #focus

        Raises:
            ValueError: If tag is not part of the exclusive priority set.
        """
        tag = normalize_tag(tag)
        exclusive = self.exclusive_tags
        if tag.lower() not in {t.lower() for t in exclusive}:
            raise ValueError(
                f"Invalid priority tag: {tag}. Must be one of: {', '.join(exclusive)}"
            )

        def _transform(line: str) -> str:
            updated = set_exclusive_tag(line, tag, exclusive)
            return add_tag(updated, FOCUS_TAG) if focus else updated

        return await self._mutate(item, _transform, f"set priority {tag}")

    async def add_tag(self, item: Item, tag: str) -> MutationResult:
        tag = normalize_tag(tag)
        return await self._mutate(item, lambda line: add_tag(line, tag), f"add {tag}")

    async def remove_tag(self, item: Item, tag: str) -> MutationResult:
        tag = normalize_tag(tag)
        return await self._mutate(item, lambda line: remove_tag(line, tag), f"remove {tag}")

    async def snooze_item(self, item: Item, tag: str = SNOOZE_TAGS[0]) -> MutationResult:
        return await self.set_priority_tag(item, tag)

    async def unsnooze_item(self, item: Item) -> MutationResult:
        def _transform(line: str) -> str:
            for tag in SNOOZE_TAGS:
                line = remove_tag(line, tag)
            return line

        return await self._mutate(item, _transform, "unsnooze")

    # Bulk operations, applied one item at a time

    async def complete_all(
        self, items: Iterable[Item], today: date | None = None
    ) -> list[MutationResult]:
        return [await self.complete_item(item, today) for item in items]

    async def snooze_all(self, items: Iterable[Item]) -> list[MutationResult]:
        return [await self.snooze_item(item) for item in items]

    async def unsnooze_all(self, items: Iterable[Item]) -> list[MutationResult]:
        return [await self.unsnooze_item(item) for item in items]

    # Internals

    async def _mutate(
        self, item: Item, transform: Callable[[str], str], action: str
    ) -> MutationResult:
        path = item.document_path
        try:
            content = await self.store.read(path)
        except DocumentNotFoundError:
            logger.error("Cannot %s: %s no longer exists", action, path)
            return MutationResult(False, path, item.line_number, reason="document not found")
        except DocumentStoreError as e:
            logger.error("Cannot %s: %s", action, e)
            return MutationResult(False, path, item.line_number, reason="read failed")
        lines = content.split("\n")

        if item.line_number >= len(lines):
            logger.warning(
                "Cannot %s: line %d out of range in %s", action, item.line_number, path
            )
            return MutationResult(False, path, item.line_number, reason="line out of range")

        line = lines[item.line_number]
        eol = "\r" if line.endswith("\r") else ""
        line = line[: len(line) - len(eol)]

        if line.strip() != item.raw_text.strip():
            logger.warning(
                "Cannot %s: %s:%d changed since it was indexed",
                action,
                path,
                item.line_number,
            )
            return MutationResult(False, path, item.line_number, reason="stale item")

        try:
            updated = transform(line)
        except StaleItemError as e:
            logger.warning("Cannot %s %s:%d: %s", action, path, item.line_number, e)
            return MutationResult(False, path, item.line_number, reason=str(e))

        if updated == line:
            return MutationResult(True, path, item.line_number, new_text=line)

        lines[item.line_number] = updated + eol
        if not await self.store.write(path, "\n".join(lines)):
            logger.error("Cannot %s: write failed for %s", action, path)
            return MutationResult(False, path, item.line_number, reason="write failed")

        logger.info("%s: %s:%d", action.capitalize(), path, item.line_number)
        await self._notify(path)
        return MutationResult(True, path, item.line_number, new_text=updated, changed=True)

    async def _append_to_log(self, item: Item, completed_line: str) -> None:
        """Append a completed line to the completion log document."""
        log_path = self.config.todone_file
        if not log_path or item.document_path == log_path:
            return

        entry = completed_line.strip()
        if not has_checkbox(entry):
            entry = f"- [x] {entry}"

        try:
            current = await self.store.read(log_path)
        except DocumentNotFoundError:
            current = ""
        except DocumentStoreError as e:
            logger.error("Failed to append completion to %s: %s", log_path, e)
            return

        if current.strip():
            new_content = current.rstrip("\n") + f"\n{entry}\n"
        else:
            new_content = f"{entry}\n"
        if not await self.store.write(log_path, new_content):
            logger.error("Failed to append completion to %s", log_path)
            return
        await self._notify(log_path)

    async def _notify(self, path: str) -> None:
        if self._on_complete is None:
            return
        try:
            result = self._on_complete(path)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("Completion callback failed for %s", path)
