"""Document stores: where markdown text is read from and written to.

The core needs four capabilities from a store: read, write, list and
subscribe to change events. FileSystemStore serves a directory on disk and
watches it with watchdog; MemoryStore keeps documents in a dict and is used
by tests and by hosts that embed the index.
"""

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from space_command.events import EventChannel, SubscriptionToken
from space_command.indexer.walker import is_hidden, walk_markdown

logger = logging.getLogger(__name__)

EVENT_KINDS = ("create", "modify", "delete", "rename")


class DocumentStoreError(Exception):
    """Raised when a document cannot be read or written."""

    pass


class DocumentNotFoundError(DocumentStoreError):
    """Raised when a document does not exist."""

    pass


@dataclass(frozen=True)
class DocumentEvent:
    """A change notification from a store."""

    kind: str  # create, modify, delete, rename
    path: str
    old_path: str | None = None  # Only set for rename


class DocumentStore(Protocol):
    """Capabilities the scanner and processor rely on."""

    async def read(self, path: str) -> str: ...

    async def write(self, path: str, text: str) -> bool: ...

    async def list(self, scope: str = "") -> list[str]: ...

    def subscribe(
        self, kind: str, handler: Callable[[DocumentEvent], Any]
    ) -> SubscriptionToken: ...

    def unsubscribe(self, token: SubscriptionToken) -> bool: ...


class _EventSource:
    """Per-kind event channels shared by the store implementations."""

    def __init__(self) -> None:
        self._channels = {kind: EventChannel(kind) for kind in EVENT_KINDS}

    def subscribe(
        self, kind: str, handler: Callable[[DocumentEvent], Any]
    ) -> SubscriptionToken:
        if kind not in self._channels:
            raise ValueError(
                f"Invalid event kind: {kind}. Must be one of: {', '.join(EVENT_KINDS)}"
            )
        return self._channels[kind].subscribe(handler)

    def unsubscribe(self, token: SubscriptionToken) -> bool:
        channel = self._channels.get(token.channel)
        if channel is None:
            return False
        return channel.unsubscribe(token)

    def emit(self, event: DocumentEvent) -> None:
        self._channels[event.kind].publish(event)


def is_markdown(path: str) -> bool:
    return path.lower().endswith(".md")


class MemoryStore(_EventSource):
    """Dict-backed store. Writes, deletes and renames emit events."""

    def __init__(self, documents: dict[str, str] | None = None):
        super().__init__()
        self._documents: dict[str, str] = dict(documents or {})
        self.fail_writes = False

    async def read(self, path: str) -> str:
        try:
            return self._documents[path]
        except KeyError:
            raise DocumentNotFoundError(f"Document not found: {path}") from None

    async def write(self, path: str, text: str) -> bool:
        if self.fail_writes:
            logger.error("Write rejected for %s", path)
            return False
        kind = "modify" if path in self._documents else "create"
        self._documents[path] = text
        self.emit(DocumentEvent(kind=kind, path=path))
        return True

    async def list(self, scope: str = "") -> list[str]:
        prefix = scope.rstrip("/") + "/" if scope else ""
        return sorted(
            p for p in self._documents if is_markdown(p) and p.startswith(prefix)
        )

    async def delete(self, path: str) -> None:
        if self._documents.pop(path, None) is not None:
            self.emit(DocumentEvent(kind="delete", path=path))

    async def rename(self, old_path: str, new_path: str) -> None:
        if old_path not in self._documents:
            raise DocumentNotFoundError(f"Document not found: {old_path}")
        self._documents[new_path] = self._documents.pop(old_path)
        self.emit(DocumentEvent(kind="rename", path=new_path, old_path=old_path))

    def get_text(self, path: str) -> str | None:
        return self._documents.get(path)


class _WatchdogBridge(FileSystemEventHandler):
    """Forwards watchdog events (observer thread) onto the event loop."""

    def __init__(self, store: "FileSystemStore", loop: asyncio.AbstractEventLoop):
        self._store = store
        self._loop = loop

    def _forward(self, event: DocumentEvent) -> None:
        self._loop.call_soon_threadsafe(self._store.emit, event)

    def on_created(self, event: FileSystemEvent) -> None:
        path = self._store.to_relative(event.src_path)
        if not event.is_directory and path is not None:
            self._forward(DocumentEvent(kind="create", path=path))

    def on_modified(self, event: FileSystemEvent) -> None:
        path = self._store.to_relative(event.src_path)
        if not event.is_directory and path is not None:
            self._forward(DocumentEvent(kind="modify", path=path))

    def on_deleted(self, event: FileSystemEvent) -> None:
        path = self._store.to_relative(event.src_path)
        if not event.is_directory and path is not None:
            self._forward(DocumentEvent(kind="delete", path=path))

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        old_path = self._store.to_relative(event.src_path)
        new_path = self._store.to_relative(event.dest_path)
        if new_path is None and old_path is not None:
            # Moved out of the collection (or renamed to a non-markdown name)
            self._forward(DocumentEvent(kind="delete", path=old_path))
        elif new_path is not None:
            self._forward(DocumentEvent(kind="rename", path=new_path, old_path=old_path))


class FileSystemStore(_EventSource):
    """
    Markdown documents under a root directory.

    Paths handed in and out are relative to the root with "/" separators.
    Blocking file I/O runs in a worker thread so the event loop stays free.
    """

    def __init__(self, root: Path):
        super().__init__()
        self.root = root
        self._observer: Any = None

    def _resolve(self, path: str) -> Path:
        """Resolve a relative path, refusing anything outside the root."""
        if ".." in Path(path).parts:
            raise DocumentStoreError(f"Path traversal not allowed: {path}")
        resolved = (self.root / path).resolve()
        root = self.root.resolve()
        if not str(resolved).startswith(str(root) + "/"):
            raise DocumentStoreError(f"Path outside root: {path}")
        return resolved

    def to_relative(self, absolute: str | bytes) -> str | None:
        """Map an absolute path to a relative markdown path, or None."""
        if isinstance(absolute, bytes):
            absolute = absolute.decode()
        try:
            parts = Path(absolute).resolve().relative_to(self.root.resolve()).parts
        except ValueError:
            return None
        if not parts or is_hidden(parts):
            return None
        relative = "/".join(parts)
        return relative if is_markdown(relative) else None

    async def read(self, path: str) -> str:
        file_path = self._resolve(path)

        def _read() -> str:
            # newline="" keeps line endings byte for byte
            with file_path.open("r", encoding="utf-8", newline="") as f:
                return f.read()

        try:
            return await asyncio.to_thread(_read)
        except FileNotFoundError as e:
            raise DocumentNotFoundError(f"Document not found: {path}") from e
        except UnicodeDecodeError as e:
            raise DocumentStoreError(f"Invalid UTF-8 in {path}: {e}") from e
        except OSError as e:
            raise DocumentStoreError(f"Cannot read {path}: {e}") from e

    async def write(self, path: str, text: str) -> bool:
        file_path = self._resolve(path)

        def _write() -> None:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            with file_path.open("w", encoding="utf-8", newline="") as f:
                f.write(text)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            logger.error("Failed to write %s: %s", path, e)
            return False
        logger.debug("Wrote %s", path)
        return True

    async def list(self, scope: str = "") -> list[str]:
        def _walk() -> list[str]:
            return [info.relative_path for info in walk_markdown(self.root, scope)]

        return await asyncio.to_thread(_walk)

    def start_watching(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Start forwarding filesystem changes as store events."""
        if self._observer is not None:
            logger.warning("File watcher already running")
            return
        loop = loop or asyncio.get_running_loop()
        observer = Observer()
        observer.schedule(_WatchdogBridge(self, loop), str(self.root), recursive=True)
        observer.daemon = True
        observer.start()
        self._observer = observer
        logger.info("Watching %s for changes", self.root)

    def stop_watching(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5)
        self._observer = None
        logger.info("File watcher stopped")
