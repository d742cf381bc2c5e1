"""Wires the store, index, scanner, processor and project view together."""

import logging

from space_command.config import Config
from space_command.indexer import FileSystemStore, ItemIndex, Scanner
from space_command.indexer.store import DocumentStore
from space_command.llm import TextGenerator, create_generator
from space_command.processor import Processor
from space_command.projects import ProjectAggregator

logger = logging.getLogger(__name__)


class Workspace:
    """
    One notes collection and everything built on top of it.

    The index is created here and handed to each component; there is no
    module-level state.
    """

    def __init__(self, config: Config, store: DocumentStore | None = None):
        self.config = config
        self.store = store if store is not None else FileSystemStore(config.space_root)
        self.index = ItemIndex()
        self.scanner = Scanner(self.store, self.index, config)
        self.processor = Processor(self.store, self.index, config)
        self.projects = ProjectAggregator(self.index, self.store, config)
        self.processor.set_on_complete_callback(self.scanner.scan_document)
        self._started = False
        self._generator: TextGenerator | None = None

    async def start(self, watch: bool = True) -> int:
        """Run the initial full scan and start following changes."""
        count = await self.scanner.full_scan()
        if watch:
            self.scanner.watch()
            if isinstance(self.store, FileSystemStore):
                self.store.start_watching()
        self._started = True
        return count

    async def stop(self) -> None:
        if not self._started:
            return
        self.scanner.unwatch()
        if isinstance(self.store, FileSystemStore):
            self.store.stop_watching()
        await self.scanner.drain()
        self._started = False
        logger.info("Workspace stopped")

    def update_config(self, config: Config) -> None:
        """Apply new settings to every component. Does not rescan."""
        self.config = config
        self.scanner.update_config(config)
        self.processor.update_config(config)
        self.projects.update_config(config)
        self._generator = None

    def text_generator(self) -> TextGenerator:
        """Client for the configured LLM backend, built on first use."""
        if self._generator is None:
            self._generator = create_generator(self.config)
        return self._generator
