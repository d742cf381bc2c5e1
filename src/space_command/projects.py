"""Projects: a derived view grouping items by their content tags."""

import hashlib
import logging

from space_command.config import Config, normalize_tag
from space_command.indexer.index import ItemIndex
from space_command.indexer.models import Category, Item, ProjectInfo
from space_command.indexer.parser import is_system_tag
from space_command.indexer.sorting import FOCUS_TAG, exclusive_priority_tags, priority_rank
from space_command.indexer.store import DocumentNotFoundError, DocumentStore

logger = logging.getLogger(__name__)

PALETTE_SIZE = 8

PROJECT_CATEGORIES = (Category.TASK_OPEN, Category.IDEA)


def colour_index(tag: str) -> int:
    """Stable palette slot for a tag."""
    return hashlib.sha256(tag.lower().encode("utf-8")).digest()[0] % PALETTE_SIZE


def tag_to_filename(tag: str) -> str:
    return tag.lstrip("#") + ".md"


class ProjectAggregator:
    """
    Computes ProjectInfo from the current index on every call.

    Nothing is cached: each query reflects the index as it is right now.
    """

    def __init__(self, index: ItemIndex, store: DocumentStore, config: Config):
        self.index = index
        self.store = store
        self.config = config

    def update_config(self, config: Config) -> None:
        self.config = config

    def _is_excluded(self, item: Item) -> bool:
        for folder in self.config.exclude_folders_from_projects:
            prefix = folder.strip("/")
            if prefix and (item.folder == prefix or item.folder.startswith(prefix + "/")):
                return True
        return False

    def _non_project_tags(self) -> set[str]:
        tags = {t.lower() for t in exclusive_priority_tags(self.config.priority_tags)}
        tags.add(FOCUS_TAG)
        return tags

    def project_tags(self, item: Item) -> list[str]:
        """Tags of an item that name a project."""
        skip = self._non_project_tags()
        tags: list[str] = []
        for tag in item.tags:
            if is_system_tag(tag) or tag.lower() in skip:
                continue
            skip.add(tag.lower())
            tags.append(tag)
        return tags

    def get_projects(self) -> list[ProjectInfo]:
        """
        Group open tasks and ideas by project tag.

        Ordered by highest priority rank, then item count (descending), then tag.
        """
        # Keyed by lowercase tag; the first spelling seen is displayed
        projects: dict[str, ProjectInfo] = {}
        for category in PROJECT_CATEGORIES:
            for item in self.index.iter_items(category):
                if self._is_excluded(item):
                    continue
                rank = priority_rank(item)
                for tag in self.project_tags(item):
                    project = projects.get(tag.lower())
                    if project is None:
                        projects[tag.lower()] = ProjectInfo(
                            tag=tag,
                            item_count=1,
                            highest_priority_rank=rank,
                            colour_index=colour_index(tag),
                            document_paths=[item.document_path],
                        )
                        continue
                    project.item_count += 1
                    project.highest_priority_rank = min(project.highest_priority_rank, rank)
                    if item.document_path not in project.document_paths:
                        project.document_paths.append(item.document_path)

        return sorted(
            projects.values(),
            key=lambda p: (p.highest_priority_rank, -p.item_count, p.tag.lower()),
        )

    def get_focus_projects(self, limit: int | None = None) -> list[ProjectInfo]:
        projects = self.get_projects()
        if limit is not None and limit > 0:
            return projects[:limit]
        return projects

    def get_project(self, tag: str) -> ProjectInfo | None:
        wanted = normalize_tag(tag).lower()
        for project in self.get_projects():
            if project.tag.lower() == wanted:
                return project
        return None

    def get_project_items(self, tag: str) -> list[Item]:
        """Open tasks and ideas carrying a project tag."""
        wanted = normalize_tag(tag)
        return [
            item
            for category in PROJECT_CATEGORIES
            for item in self.index.iter_items(category)
            if item.has_tag(wanted) and not self._is_excluded(item)
        ]

    def project_document_path(self, tag: str) -> str:
        folder = self.config.projects_folder.strip("/")
        filename = tag_to_filename(normalize_tag(tag))
        return f"{folder}/{filename}" if folder else filename

    async def resolve_project_document(self, tag: str) -> str | None:
        """Return the path of the project's document if it exists."""
        path = self.project_document_path(tag)
        try:
            await self.store.read(path)
        except DocumentNotFoundError:
            return None
        return path

    async def create_project_document(self, tag: str) -> str:
        """
        Create the project's document from a template unless it exists.

        Returns:
            Path of the project document

        Raises:
            OSError: If the store refuses the write
        """
        existing = await self.resolve_project_document(tag)
        if existing is not None:
            return existing

        tag = normalize_tag(tag)
        name = tag.lstrip("#")
        path = self.project_document_path(tag)
        content = f"# {name}\n\n{tag}\n\n## Overview\n\n## TODOs\n\n"
        if not await self.store.write(path, content):
            raise OSError(f"Could not create project document {path}")
        logger.info("Created project document: %s", path)
        return path
