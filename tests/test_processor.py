"""Tests for the processor (item mutations)."""

from datetime import date

import pytest

from space_command.config import Config
from space_command.indexer import Category, DocumentStoreError, ItemIndex, MemoryStore
from space_command.indexer.scanner import build_items
from space_command.processor import (
    Processor,
    StaleItemError,
    complete_line,
    reopen_line,
    set_exclusive_tag,
)
from space_command.workspace import Workspace

TODAY = date(2024, 1, 15)


class FlakyStore(MemoryStore):
    """MemoryStore that fails to read selected documents."""

    def __init__(self, documents=None):
        super().__init__(documents)
        self.unreadable: set[str] = set()

    async def read(self, path: str) -> str:
        if path in self.unreadable:
            raise DocumentStoreError(f"Cannot read {path}")
        return await super().read(path)


@pytest.fixture
def config(tmp_path):
    return Config(space_root=tmp_path)


async def started(config, documents):
    workspace = Workspace(config, store=MemoryStore(documents))
    await workspace.start(watch=False)
    return workspace


class TestCompleteLine:
    def test_release_scenario(self):
        line = complete_line("- [ ] Ship release #task #p1", TODAY)
        assert line == "- [x] Ship release #done @2024-01-15 #p1"

    def test_todo_pair(self):
        assert complete_line("- [ ] call bob #todo", TODAY) == "- [x] call bob #todone @2024-01-15"

    def test_line_without_checkbox(self):
        assert complete_line("#todo call bob", TODAY) == "#todone @2024-01-15 call bob"

    def test_task_list_header(self):
        assert complete_line("## Sprint #todos", TODAY) == "## Sprint #todones @2024-01-15"

    def test_not_an_open_task(self):
        with pytest.raises(StaleItemError, match="not an open task"):
            complete_line("- [x] done #todone", TODAY)

    def test_checked_box_is_stale(self):
        with pytest.raises(StaleItemError, match="already checked"):
            complete_line("- [x] odd #todo", TODAY)

    def test_plural_tasks_has_no_done_form(self):
        with pytest.raises(StaleItemError, match="no completable task tag"):
            complete_line("## Sprint #tasks", TODAY)


class TestReopenLine:
    def test_strips_date_and_unchecks(self):
        assert reopen_line("- [x] Ship release #done @2024-01-15 #p1") == "- [ ] Ship release #task #p1"

    def test_without_date(self):
        assert reopen_line("- [x] call bob #todone") == "- [ ] call bob #todo"

    def test_not_done(self):
        with pytest.raises(StaleItemError):
            reopen_line("- [ ] call bob #todo")


class TestSetExclusiveTag:
    def test_replaces_other_priority_tags(self):
        line = set_exclusive_tag("- [ ] a #todo #p1 #future", "#p0", ["#p0", "#p1", "#future"])
        assert line == "- [ ] a #todo #p0"


class TestCompleteItem:
    @pytest.mark.asyncio
    async def test_release_scenario(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship release #task #p1\n"})
        item = ws.scanner.get_item("todo.md", 0)

        result = await ws.processor.complete_item(item, today=TODAY)

        assert result
        assert result.changed is True
        text = ws.store.get_text("todo.md")
        assert text == "- [x] Ship release #done @2024-01-15 #p1\n"

        rescanned = ws.scanner.get_item("todo.md", 0)
        assert rescanned.category == Category.TASK_DONE
        assert rescanned.is_checked is True

    @pytest.mark.asyncio
    async def test_appends_to_completion_log(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo\n"})

        await ws.processor.complete_item(ws.scanner.get_item("todo.md", 0), today=TODAY)

        assert ws.store.get_text("todos/done.md") == "- [x] Ship #todone @2024-01-15\n"
        # The log is indexed but hidden from done queries
        assert "todos/done.md" in ws.index
        assert [i.document_path for i in ws.scanner.get_todones()] == ["todo.md"]

    @pytest.mark.asyncio
    async def test_log_entry_gets_checkbox(self, config):
        ws = await started(
            config, {"todo.md": "#todo call bob\n", "todos/done.md": "- [x] old #todone\n"}
        )

        await ws.processor.complete_item(ws.scanner.get_item("todo.md", 0), today=TODAY)

        assert ws.store.get_text("todos/done.md") == (
            "- [x] old #todone\n- [x] #todone @2024-01-15 call bob\n"
        )

    @pytest.mark.asyncio
    async def test_no_log_when_disabled(self, config):
        ws = await started(
            config.replace(log_completions=False), {"todo.md": "- [ ] Ship #todo\n"}
        )

        await ws.processor.complete_item(ws.scanner.get_item("todo.md", 0), today=TODAY)

        assert ws.store.get_text("todos/done.md") is None

    @pytest.mark.asyncio
    async def test_round_trip(self, config):
        original = "- [ ] Ship release #task #p1"
        ws = await started(config, {"todo.md": f"intro\n{original}\n"})

        await ws.processor.complete_item(ws.scanner.get_item("todo.md", 1), today=TODAY)
        result = await ws.processor.uncomplete_item(ws.scanner.get_item("todo.md", 1))

        assert result.success
        assert ws.store.get_text("todo.md") == f"intro\n{original}\n"
        assert "@2024-01-15" not in ws.store.get_text("todo.md")
        assert ws.scanner.get_item("todo.md", 1).category == Category.TASK_OPEN

    @pytest.mark.asyncio
    async def test_stale_item_is_not_written(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo\n"})
        item = ws.scanner.get_item("todo.md", 0)
        await ws.store.write("todo.md", "- [ ] Something else #todo\n")

        result = await ws.processor.complete_item(item, today=TODAY)

        assert not result
        assert result.reason == "stale item"
        assert ws.store.get_text("todo.md") == "- [ ] Something else #todo\n"

    @pytest.mark.asyncio
    async def test_line_out_of_range(self, config):
        ws = await started(config, {"todo.md": "a\nb\n- [ ] Ship #todo"})
        item = ws.scanner.get_item("todo.md", 2)
        await ws.store.write("todo.md", "- [ ] Ship #todo")

        result = await ws.processor.complete_item(item, today=TODAY)

        assert result.reason == "line out of range"

    @pytest.mark.asyncio
    async def test_completing_done_item_fails_cleanly(self, config):
        ws = await started(config, {"todo.md": "- [x] Shipped #todone\n"})

        result = await ws.processor.complete_item(ws.scanner.get_item("todo.md", 0))

        assert result.success is False
        assert result.reason == "line is not an open task"

    @pytest.mark.asyncio
    async def test_preserves_crlf(self, config):
        ws = await started(
            config.replace(log_completions=False),
            {"todo.md": "- [ ] a #todo\r\n- [ ] b #todo\r\n"},
        )

        await ws.processor.complete_item(ws.scanner.get_item("todo.md", 0), today=TODAY)

        assert ws.store.get_text("todo.md") == "- [x] a #todone @2024-01-15\r\n- [ ] b #todo\r\n"

    @pytest.mark.asyncio
    async def test_write_failure(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo\n"})
        ws.store.fail_writes = True

        result = await ws.processor.complete_item(ws.scanner.get_item("todo.md", 0))

        assert result.success is False
        assert result.reason == "write failed"

    @pytest.mark.asyncio
    async def test_deleted_document_fails_cleanly(self, config, caplog):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo\n"})
        item = ws.scanner.get_item("todo.md", 0)
        await ws.store.delete("todo.md")

        result = await ws.processor.complete_item(item)

        assert not result
        assert result.reason == "document not found"
        assert "todo.md no longer exists" in caplog.text

    @pytest.mark.asyncio
    async def test_unreadable_document_fails_cleanly(self, config):
        store = FlakyStore({"todo.md": "- [ ] Ship #todo #p1\n"})
        ws = Workspace(config, store=store)
        await ws.start(watch=False)
        store.unreadable.add("todo.md")

        result = await ws.processor.set_priority_tag(ws.scanner.get_item("todo.md", 0), "#p0")

        assert result.success is False
        assert result.reason == "read failed"
        assert store.get_text("todo.md") == "- [ ] Ship #todo #p1\n"

    @pytest.mark.asyncio
    async def test_unreadable_log_keeps_completion(self, config, caplog):
        store = FlakyStore({"todo.md": "- [ ] Ship #todo\n", "todos/done.md": "old\n"})
        ws = Workspace(config, store=store)
        await ws.start(watch=False)
        store.unreadable.add("todos/done.md")

        result = await ws.processor.complete_item(ws.scanner.get_item("todo.md", 0), today=TODAY)

        assert result.success is True
        assert store.get_text("todo.md") == "- [x] Ship #todone @2024-01-15\n"
        assert store.get_text("todos/done.md") == "old\n"
        assert "Failed to append completion to todos/done.md" in caplog.text

    @pytest.mark.asyncio
    async def test_crlf_file_on_disk(self, tmp_path):
        (tmp_path / "todo.md").write_bytes(
            b"# Notes\r\n- [ ] Ship release #task #p1\r\nother line\r\n"
        )
        ws = Workspace(Config(space_root=tmp_path, log_completions=False))
        await ws.start(watch=False)

        result = await ws.processor.complete_item(ws.scanner.get_item("todo.md", 1), today=TODAY)

        assert result.success is True
        assert (tmp_path / "todo.md").read_bytes() == (
            b"# Notes\r\n- [x] Ship release #done @2024-01-15 #p1\r\nother line\r\n"
        )


class TestPriorityAndTags:
    @pytest.mark.asyncio
    async def test_set_priority_replaces_existing(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo #p1 #future\n"})

        result = await ws.processor.set_priority_tag(ws.scanner.get_item("todo.md", 0), "p0")

        assert result.changed
        assert ws.store.get_text("todo.md") == "- [ ] Ship #todo #p0\n"

    @pytest.mark.asyncio
    async def test_set_priority_with_focus(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo\n"})

        await ws.processor.set_priority_tag(
            ws.scanner.get_item("todo.md", 0), "#today", focus=True
        )

        assert ws.store.get_text("todo.md") == "- [ ] Ship #todo #today #focus\n"

    @pytest.mark.asyncio
    async def test_set_priority_rejects_unknown_tag(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo\n"})

        with pytest.raises(ValueError, match="Invalid priority tag"):
            await ws.processor.set_priority_tag(ws.scanner.get_item("todo.md", 0), "#urgent")

    @pytest.mark.asyncio
    async def test_add_and_remove_tag(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo ^blk\n"})

        await ws.processor.add_tag(ws.scanner.get_item("todo.md", 0), "api")
        assert ws.store.get_text("todo.md") == "- [ ] Ship #todo #api ^blk\n"

        await ws.processor.remove_tag(ws.scanner.get_item("todo.md", 0), "#api")
        assert ws.store.get_text("todo.md") == "- [ ] Ship #todo ^blk\n"

    @pytest.mark.asyncio
    async def test_unchanged_line_is_not_written(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo #api\n"})
        writes = []
        ws.store.subscribe("modify", writes.append)

        result = await ws.processor.add_tag(ws.scanner.get_item("todo.md", 0), "#api")

        assert result.success is True
        assert result.changed is False
        assert writes == []

    @pytest.mark.asyncio
    async def test_snooze_and_unsnooze(self, config):
        ws = await started(config, {"todo.md": "- [ ] Ship #todo #p1\n"})

        await ws.processor.snooze_item(ws.scanner.get_item("todo.md", 0))
        assert ws.store.get_text("todo.md") == "- [ ] Ship #todo #future\n"

        await ws.processor.unsnooze_item(ws.scanner.get_item("todo.md", 0))
        assert ws.store.get_text("todo.md") == "- [ ] Ship #todo\n"


class TestBulkOperations:
    @pytest.mark.asyncio
    async def test_complete_all(self, config):
        ws = await started(
            config.replace(log_completions=False),
            {"a.md": "- [ ] one #todo #api\n", "b.md": "- [ ] two #todo #api\n"},
        )

        results = await ws.processor.complete_all(ws.scanner.get_todos(), today=TODAY)

        assert all(results)
        assert ws.scanner.get_todos() == []
        assert len(ws.scanner.get_todones()) == 2

    @pytest.mark.asyncio
    async def test_snooze_all_and_unsnooze_all(self, config):
        ws = await started(config, {"a.md": "- [ ] one #todo\n- [ ] two #todo #p2\n"})

        await ws.processor.snooze_all(ws.scanner.get_todos())
        assert ws.store.get_text("a.md") == "- [ ] one #todo #future\n- [ ] two #todo #future\n"

        await ws.processor.unsnooze_all(ws.scanner.get_todos())
        assert ws.store.get_text("a.md") == "- [ ] one #todo\n- [ ] two #todo\n"


class TestCallback:
    @pytest.mark.asyncio
    async def test_callback_runs_after_write(self, config):
        store = MemoryStore({"todo.md": "- [ ] Ship #todo\n"})
        index = ItemIndex()
        processor = Processor(store, index, config.replace(log_completions=False))
        notified = []
        processor.set_on_complete_callback(notified.append)

        item = build_items("todo.md", await store.read("todo.md"))[0]
        await processor.add_tag(item, "#p1")

        assert notified == ["todo.md"]
        # The processor never patches the index itself
        assert len(index) == 0

    @pytest.mark.asyncio
    async def test_failing_callback_does_not_fail_mutation(self, config, caplog):
        store = MemoryStore({"todo.md": "- [ ] Ship #todo\n"})
        processor = Processor(store, ItemIndex(), config)

        async def broken(path):
            raise RuntimeError("boom")

        processor.set_on_complete_callback(broken)

        item = build_items("todo.md", await store.read("todo.md"))[0]
        result = await processor.add_tag(item, "#p1")

        assert result.success
        assert "Completion callback failed" in caplog.text
