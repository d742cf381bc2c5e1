"""Filter expressions for item queries.

Syntax: clauses joined by "|", e.g. "path:projects/ | tags:#api,#p1 | limit:5".
"""

from dataclasses import dataclass, field

from space_command.indexer.models import Category, Item


@dataclass
class ItemFilters:
    path: str | None = None
    tags: list[str] = field(default_factory=list)
    limit: int | None = None
    todone: str | None = None  # "show" or "hide"


def parse_filters(expression: str) -> ItemFilters:
    """Parse a filter expression. Unknown or malformed clauses are ignored."""
    filters = ItemFilters()
    if not expression or not expression.strip():
        return filters

    for part in (p.strip() for p in expression.split("|")):
        key, sep, value = part.partition(":")
        if not sep:
            continue
        key = key.strip().lower()
        value = value.strip()

        if key == "path":
            filters.path = value
        elif key == "tags":
            filters.tags = [t.strip() for t in value.split(",") if t.strip()]
        elif key == "limit":
            try:
                limit = int(value)
            except ValueError:
                continue
            if limit > 0:
                filters.limit = limit
        elif key == "todone":
            if value.lower() in ("show", "hide"):
                filters.todone = value.lower()

    return filters


def apply_filters(items: list[Item], filters: ItemFilters) -> list[Item]:
    """Filter items by path prefix and tags, then cut to the limit."""
    filtered = list(items)

    if filters.todone == "hide":
        filtered = [i for i in filtered if i.category != Category.TASK_DONE]

    if filters.path:
        prefix = filters.path.lower()
        filtered = [i for i in filtered if i.document_path.lower().startswith(prefix)]

    if filters.tags:
        wanted = [t.lower() for t in filters.tags]
        filtered = [
            i for i in filtered if all(tag in {t.lower() for t in i.tags} for tag in wanted)
        ]

    if filters.limit:
        filtered = filtered[: filters.limit]

    return filtered
