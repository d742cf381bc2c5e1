"""Tests for priority ranking and sorting."""

import pytest

from space_command.indexer.models import Category, Item
from space_command.indexer.sorting import (
    NO_PRIORITY_RANK,
    SNOOZED_RANK,
    count_content_tags,
    current_priority,
    exclusive_priority_tags,
    lower_priority,
    priority_rank,
    raise_priority,
    sort_items,
)


def make_item(name: str, *tags: str, line: int = 0) -> Item:
    all_tags = ("#todo", *tags)
    return Item(
        document_path="todo.md",
        line_number=line,
        raw_text=f"- [ ] {name} {' '.join(all_tags)}",
        category=Category.TASK_OPEN,
        tags=all_tags,
    )


class TestPriorityRank:
    @pytest.mark.parametrize(
        "tags, rank",
        [
            (("#focus",), 0),
            (("#today",), 1),
            (("#p0",), 2),
            (("#p1",), 3),
            (("#p2",), 4),
            ((), NO_PRIORITY_RANK),
            (("#p3",), 6),
            (("#p4",), 7),
            (("#future",), SNOOZED_RANK),
            (("#someday",), SNOOZED_RANK),
        ],
    )
    def test_rank_table(self, tags, rank):
        assert priority_rank(make_item("x", *tags)) == rank

    def test_focus_wins_over_everything(self):
        assert priority_rank(make_item("x", "#p4", "#future", "#focus")) == 0

    def test_priority_tag_beats_snooze(self):
        assert priority_rank(make_item("x", "#future", "#p1")) == 3

    def test_case_insensitive(self):
        assert priority_rank(make_item("x", "#P0")) == 2


class TestSortItems:
    def test_documented_example(self):
        a = make_item("A", "#focus", line=0)
        b = make_item("B", "#p0", line=1)
        c = make_item("C", line=2)
        d = make_item("D", "#p3", line=3)
        e = make_item("E", "#p0", "#project-x", line=4)

        ordered = sort_items([a, b, c, d, e])

        assert [i.line_number for i in ordered] == [0, 4, 1, 2, 3]

    def test_stable_for_full_ties(self):
        items = [make_item("x", line=n) for n in range(5)]
        assert sort_items(list(reversed(items))) == list(reversed(items))

    def test_snoozed_last(self):
        snoozed = make_item("s", "#future", line=0)
        plain = make_item("p", "#p4", line=1)
        assert sort_items([snoozed, plain]) == [plain, snoozed]


class TestCountContentTags:
    def test_excludes_system_and_priority_tags(self):
        item = make_item("x", "#p1", "#focus", "#future", "#alpha", "#beta")
        assert count_content_tags(item, ["#p0", "#p1"]) == 2


class TestExclusivePriorityTags:
    def test_default_set(self):
        tags = exclusive_priority_tags(["#p0", "#p1"])
        assert tags == ["#today", "#p0", "#p1", "#future", "#snooze", "#someday"]

    def test_deduplicates(self):
        assert exclusive_priority_tags(["#today", "#p0"]).count("#today") == 1


class TestPriorityStepping:
    def test_current_priority(self):
        assert current_priority(make_item("x", "#p2")) == "#p2"
        assert current_priority(make_item("x", "#p2", "#future")) == "#future"
        assert current_priority(make_item("x")) is None

    def test_raise_priority(self):
        assert raise_priority(None) == "#p0"
        assert raise_priority("#future") == "#p0"
        assert raise_priority("#p3") == "#p2"
        assert raise_priority("#p0") == "#p0"

    def test_lower_priority(self):
        assert lower_priority(None) == "#p4"
        assert lower_priority("#snooze") == "#p4"
        assert lower_priority("#p1") == "#p2"
        assert lower_priority("#p4") == "#p4"
