"""Write tools for space-command - change items in their source documents."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from space_command.auth import check_write_permission
from space_command.indexer.models import Category, Item
from space_command.processor import MutationResult
from space_command.workspace import Workspace

if TYPE_CHECKING:
    from fastmcp import FastMCP

logger = logging.getLogger(__name__)


def _lookup(workspace: Workspace, path: str, line_number: int) -> Item:
    """Find the indexed item at a line.

    Raises:
        ValueError: If no item is indexed there
    """
    item = workspace.processor.find_item(path, line_number)
    if item is None:
        raise ValueError(f"No item indexed at {path}:{line_number}")
    return item


def _result_to_dict(result: MutationResult) -> dict:
    return {
        "status": "updated" if result.changed else ("unchanged" if result.success else "failed"),
        "success": result.success,
        "path": result.path,
        "line_number": result.line_number,
        "text": result.new_text,
        "reason": result.reason,
    }


def register_tools_write(mcp: "FastMCP", workspace: Workspace) -> None:
    """Register all write tools with the FastMCP server.

    Every tool acts on the item currently indexed at (path, line_number).
    A "failed" status with reason "stale item" means the document changed
    since it was indexed; query again and retry.

    Args:
        mcp: FastMCP server instance
        workspace: Workspace whose processor performs the writes
    """

    @mcp.tool()
    async def tool_complete_item(path: str, line_number: int) -> dict:
        """Mark an open task as done (checks the box, stamps today's date).

        Args:
            path: Document path relative to the notes root
            line_number: 0-based line number of the task
        """
        check_write_permission(workspace.config, "tool_complete_item")
        item = _lookup(workspace, path, line_number)
        return _result_to_dict(await workspace.processor.complete_item(item))

    @mcp.tool()
    async def tool_uncomplete_item(path: str, line_number: int) -> dict:
        """Reopen a done task (unchecks the box, drops the completion date)."""
        check_write_permission(workspace.config, "tool_uncomplete_item")
        item = _lookup(workspace, path, line_number)
        return _result_to_dict(await workspace.processor.uncomplete_item(item))

    @mcp.tool()
    async def tool_set_priority(
        path: str, line_number: int, tag: str, focus: bool = False
    ) -> dict:
        """Replace the item's priority tag.

        Args:
            path: Document path relative to the notes root
            line_number: 0-based line number of the item
            tag: Priority tag such as #p0..#p4, #today or #future
            focus: Also add #focus
        """
        check_write_permission(workspace.config, "tool_set_priority")
        item = _lookup(workspace, path, line_number)
        return _result_to_dict(
            await workspace.processor.set_priority_tag(item, tag, focus=focus)
        )

    @mcp.tool()
    async def tool_add_tag(path: str, line_number: int, tag: str) -> dict:
        """Add a tag to an item's line."""
        check_write_permission(workspace.config, "tool_add_tag")
        item = _lookup(workspace, path, line_number)
        return _result_to_dict(await workspace.processor.add_tag(item, tag))

    @mcp.tool()
    async def tool_remove_tag(path: str, line_number: int, tag: str) -> dict:
        """Remove a tag from an item's line."""
        check_write_permission(workspace.config, "tool_remove_tag")
        item = _lookup(workspace, path, line_number)
        return _result_to_dict(await workspace.processor.remove_tag(item, tag))

    @mcp.tool()
    async def tool_snooze_item(path: str, line_number: int, snooze: bool = True) -> dict:
        """Snooze (tag #future) or unsnooze an item."""
        check_write_permission(workspace.config, "tool_snooze_item")
        item = _lookup(workspace, path, line_number)
        if snooze:
            result = await workspace.processor.snooze_item(item)
        else:
            result = await workspace.processor.unsnooze_item(item)
        return _result_to_dict(result)

    @mcp.tool()
    async def tool_complete_project(tag: str) -> dict:
        """Complete every open task carrying a project tag."""
        check_write_permission(workspace.config, "tool_complete_project")
        items = [
            i for i in workspace.projects.get_project_items(tag) if i.category == Category.TASK_OPEN
        ]
        results = await workspace.processor.complete_all(items)
        completed = sum(1 for r in results if r.changed)
        logger.info("Completed %d of %d items for project %s", completed, len(items), tag)
        return {
            "status": "updated" if completed else "unchanged",
            "tag": tag,
            "completed": completed,
            "failed": [_result_to_dict(r) for r in results if not r.success],
        }

    @mcp.tool()
    async def tool_create_project(tag: str) -> dict:
        """Create the project document for a tag, or return the existing one."""
        check_write_permission(workspace.config, "tool_create_project")
        existing = await workspace.projects.resolve_project_document(tag)
        if existing:
            return {"status": "exists", "tag": tag, "path": existing}
        try:
            path = await workspace.projects.create_project_document(tag)
        except OSError as e:
            raise ValueError(f"Failed to create project document: {e}") from e
        await workspace.scanner.scan_document(path)
        return {"status": "created", "tag": tag, "path": path}

    @mcp.tool()
    async def tool_rescan(path: str | None = None) -> dict:
        """Rebuild the index for one document, or all documents if path is omitted."""
        if path:
            items = await workspace.scanner.scan_document(path)
            return {"status": "rescanned", "path": path, "items": len(items)}
        documents = await workspace.scanner.full_scan()
        return {"status": "rescanned", "documents": documents, "items": len(workspace.index)}
