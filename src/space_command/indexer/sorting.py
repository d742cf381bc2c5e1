"""Priority ranking shared by item lists and project ranking."""

import re
from collections.abc import Iterable, Sequence

from space_command.indexer.models import Item
from space_command.indexer.parser import is_system_tag

FOCUS_TAG = "#focus"
URGENT_TAG = "#today"
SNOOZE_TAGS = ("#future", "#snooze", "#someday")

# Lower rank sorts earlier
PRIORITY_RANKS = {
    FOCUS_TAG: 0,
    URGENT_TAG: 1,
    "#p0": 2,
    "#p1": 3,
    "#p2": 4,
    "#p3": 6,
    "#p4": 7,
}
NO_PRIORITY_RANK = 5
SNOOZED_RANK = 8

LEVEL_TAG_PATTERN = re.compile(r"^#p([0-4])$", re.IGNORECASE)


def is_snooze_tag(tag: str) -> bool:
    return tag.lower() in SNOOZE_TAGS


def is_snoozed(item: Item) -> bool:
    return any(is_snooze_tag(t) for t in item.tags)


def exclusive_priority_tags(priority_tags: Sequence[str]) -> list[str]:
    """Tags of which at most one may sit on a line at a time."""
    tags = [URGENT_TAG, *priority_tags, *SNOOZE_TAGS]
    seen: set[str] = set()
    unique = []
    for tag in tags:
        if tag.lower() not in seen:
            seen.add(tag.lower())
            unique.append(tag)
    return unique


def priority_rank(item: Item) -> int:
    """Rank an item: #focus=0, #today=1, #p0..#p2=2..4, none=5, #p3/#p4=6/7, snoozed=8."""
    lowered = {t.lower() for t in item.tags}
    if FOCUS_TAG in lowered:
        return PRIORITY_RANKS[FOCUS_TAG]
    ranks = [rank for tag, rank in PRIORITY_RANKS.items() if tag in lowered]
    if ranks:
        return min(ranks)
    if lowered.intersection(SNOOZE_TAGS):
        return SNOOZED_RANK
    return NO_PRIORITY_RANK


def count_content_tags(item: Item, priority_tags: Iterable[str] = ()) -> int:
    """Count tags that are neither system, priority nor snooze tags."""
    excluded = {t.lower() for t in exclusive_priority_tags(list(priority_tags))}
    excluded.add(FOCUS_TAG)
    excluded.update(PRIORITY_RANKS)
    return sum(
        1
        for t in item.tags
        if not is_system_tag(t) and t.lower() not in excluded
    )


def sort_items(items: Iterable[Item], priority_tags: Sequence[str] = ()) -> list[Item]:
    """
    Sort items into the ranked order used everywhere.

    Rank ascending, then number of content tags descending. Python's sort is
    stable, so remaining ties keep scan order.
    """
    return sorted(
        items,
        key=lambda item: (priority_rank(item), -count_content_tags(item, priority_tags)),
    )


def current_priority(item: Item) -> str | None:
    """Return the snooze or #pN tag on an item, if any."""
    for tag in item.tags:
        if is_snooze_tag(tag):
            return tag
    for tag in item.tags:
        if LEVEL_TAG_PATTERN.match(tag):
            return tag
    return None


def raise_priority(current: str | None) -> str:
    """Next priority up: none or snoozed -> #p0, #pN -> #p(N-1), #p0 stays."""
    match = LEVEL_TAG_PATTERN.match(current or "")
    if not match:
        return "#p0"
    level = int(match.group(1))
    return f"#p{max(level - 1, 0)}"


def lower_priority(current: str | None) -> str:
    """Next priority down: none or snoozed -> #p4, #pN -> #p(N+1), #p4 stays."""
    match = LEVEL_TAG_PATTERN.match(current or "")
    if not match:
        return "#p4"
    level = int(match.group(1))
    return f"#p{min(level + 1, 4)}"
