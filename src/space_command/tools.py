"""MCP read tools for the space-command server.

This module defines the query tools exposed by the MCP server:
- list_items: Items of one category, in ranked order
- get_item: One item by document path and line number
- filter_items: Items matching a filter expression
- get_counts: Per-category counts
- list_projects: Project tags with counts and priority
"""

from fastmcp import FastMCP

from space_command.filters import apply_filters, parse_filters
from space_command.indexer.models import Category, Item, ProjectInfo
from space_command.indexer.sorting import priority_rank, sort_items
from space_command.workspace import Workspace


def item_to_dict(item: Item) -> dict:
    return {
        "path": item.document_path,
        "line_number": item.line_number,
        "text": item.text,
        "category": item.category.value,
        "tags": list(item.tags),
        "is_header": item.is_header,
        "header_level": item.header_level,
        "parent_line_number": item.parent_line_number,
        "child_line_numbers": list(item.child_line_numbers),
        "has_checkbox": item.has_checkbox,
        "is_checked": item.is_checked,
        "priority_rank": priority_rank(item),
    }


def project_to_dict(project: ProjectInfo) -> dict:
    return {
        "tag": project.tag,
        "item_count": project.item_count,
        "highest_priority_rank": project.highest_priority_rank,
        "colour_index": project.colour_index,
        "document_paths": list(project.document_paths),
    }


def parse_category(category: str | None) -> Category | None:
    """Map a category name ("task-open", "idea", ...) to a Category."""
    if category is None or category == "":
        return None
    try:
        return Category(category)
    except ValueError:
        valid = ", ".join(c.value for c in Category)
        raise ValueError(f"Invalid category: {category}. Must be one of: {valid}") from None


def register_tools(mcp: FastMCP, workspace: Workspace) -> None:
    """Register all read tools with the FastMCP server.

    Args:
        mcp: FastMCP server instance
        workspace: Workspace whose index is queried
    """

    @mcp.tool()
    def list_items(
        category: str = "task-open",
        ranked: bool = True,
        limit: int | None = None,
    ) -> list[dict]:
        """List indexed items of one category.

        Args:
            category: task-open, task-done, idea or principle
            ranked: Sort by priority (#focus first, snoozed last)
            limit: Maximum number of items to return

        Returns:
            List of items with path, line_number, text, category, tags and
            header/child structure.
        """
        items = workspace.scanner.get_items(parse_category(category))
        if ranked:
            items = sort_items(items, workspace.config.priority_tags)
        if limit is not None and limit > 0:
            items = items[:limit]
        return [item_to_dict(item) for item in items]

    @mcp.tool()
    def get_item(path: str, line_number: int) -> dict | None:
        """Get the indexed item at a document line, or null if there is none."""
        item = workspace.scanner.get_item(path, line_number)
        return item_to_dict(item) if item else None

    @mcp.tool()
    def filter_items(expression: str, category: str | None = None) -> list[dict]:
        """Filter items with an expression.

        Args:
            expression: Clauses joined by "|": path:<prefix>, tags:#a,#b,
                limit:N, todone:show|hide
            category: Optional category restriction

        Returns:
            Matching items in ranked order.
        """
        filters = parse_filters(expression)
        items = sort_items(
            workspace.scanner.get_items(parse_category(category)),
            workspace.config.priority_tags,
        )
        return [item_to_dict(item) for item in apply_filters(items, filters)]

    @mcp.tool()
    def get_counts() -> dict:
        """Count items: total, open, done, ideas, principles, focused, snoozed."""
        counts = workspace.scanner.get_counts()
        return {
            "total": counts.total,
            "open": counts.open,
            "done": counts.done,
            "ideas": counts.ideas,
            "principles": counts.principles,
            "focused": counts.focused,
            "snoozed": counts.snoozed,
        }

    @mcp.tool()
    def list_projects(limit: int | None = None) -> list[dict]:
        """List projects (non-system tags on open tasks and ideas).

        Projects are ordered by their most urgent item, then by item count.
        """
        projects = workspace.projects.get_focus_projects(limit)
        return [project_to_dict(p) for p in projects]
