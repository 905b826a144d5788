"""Tests for the YAML-backed store (storage/collection.py, storage/file_repos.py)."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
import yaml

from agent_board.domain.models import Agent, Project, Task, TaskColumn, TaskPriority
from agent_board.errors import ConflictError, StorageCorruptionError, ValidationError
from agent_board.storage import Store


@pytest.fixture
def store(tmp_path: Path) -> Store:
    return Store(tmp_path / "data")


def _read(path: Path) -> dict:
    return yaml.safe_load(path.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------

class TestCollectionFiles:
    def test_empty_read(self, store: Store) -> None:
        assert store.tasks.list() == []
        assert store.projects.list() == []
        assert store.agents.list() == []

    def test_file_layout(self, store: Store) -> None:
        asyncio.run(store.tasks.create(Task(id="t1", title="First", project_id="p1")))

        raw = _read(store.collection_path("tasks"))
        assert raw["version"] == 1
        assert [item["id"] for item in raw["tasks"]] == ["t1"]
        assert raw["tasks"][0]["column"] == "backlog"
        assert raw["tasks"][0]["status"] == "backlog"

    def test_empty_file_reads_as_empty(self, store: Store) -> None:
        store.collection_path("tasks").write_text("", encoding="utf-8")
        assert store.tasks.list() == []

    def test_unparseable_file_raises(self, store: Store) -> None:
        store.collection_path("tasks").write_text("tasks: [unclosed\n", encoding="utf-8")
        with pytest.raises(StorageCorruptionError):
            store.tasks.list()

    def test_wrong_shape_raises(self, store: Store) -> None:
        store.collection_path("tasks").write_text("tasks: 5\n", encoding="utf-8")
        with pytest.raises(StorageCorruptionError, match="list of mappings"):
            store.tasks.list()

    def test_undecodable_next_task_raises(self, store: Store) -> None:
        store.collection_path("tasks").write_text(
            yaml.safe_dump({"tasks": [{"id": "t1", "nextTask": {"title": "n"}}]}), encoding="utf-8"
        )
        with pytest.raises(StorageCorruptionError, match="record 0 in 'tasks'"):
            store.tasks.list()
        with pytest.raises(StorageCorruptionError):
            store.tasks.get("t1")

    def test_non_numeric_duration_raises(self, store: Store) -> None:
        store.collection_path("tasks").write_text(
            yaml.safe_dump({"tasks": [{"id": "t1"}, {"id": "t2", "duration_ms": "abc"}]}), encoding="utf-8"
        )
        with pytest.raises(StorageCorruptionError, match="record 1"):
            store.tasks.list()

    def test_corrupt_file_is_not_overwritten(self, store: Store) -> None:
        path = store.collection_path("tasks")
        path.write_text("tasks: [unclosed\n", encoding="utf-8")
        with pytest.raises(StorageCorruptionError):
            asyncio.run(store.tasks.create(Task(id="t1", title="x")))
        assert path.read_text(encoding="utf-8") == "tasks: [unclosed\n"

    def test_no_temp_files_left_behind(self, store: Store) -> None:
        async def scenario() -> None:
            for i in range(3):
                await store.tasks.create(Task(id=f"t{i}", title=str(i)))

        asyncio.run(scenario())
        assert not list(store.data_dir.glob("*.tmp"))

    def test_legacy_camel_case_records_load(self, store: Store) -> None:
        store.collection_path("tasks").write_text(
            yaml.safe_dump({
                "tasks": [{
                    "id": "t1",
                    "projectId": "p1",
                    "title": "Old",
                    "status": "doing",
                    "maxRetries": 5,
                    "requiresReview": True,
                    "startedAt": "2024-01-01T00:00:00.000Z",
                }]
            }),
            encoding="utf-8",
        )
        task = store.tasks.get("t1")
        assert task is not None
        assert task.project_id == "p1"
        assert task.column == TaskColumn.DOING
        assert task.max_retries == 5
        assert task.requires_review is True
        assert task.started_at == "2024-01-01T00:00:00.000Z"


# ---------------------------------------------------------------------------
# Task repository
# ---------------------------------------------------------------------------

class TestTaskRepository:
    def test_create_and_get(self, store: Store) -> None:
        asyncio.run(store.tasks.create(Task(id="t1", title="Test")))

        t = store.tasks.get("t1")
        assert t is not None
        assert t.title == "Test"
        assert store.tasks.get("nonexistent") is None

    def test_duplicate_create_raises(self, store: Store) -> None:
        async def scenario() -> None:
            await store.tasks.create(Task(id="t1", title="First"))
            await store.tasks.create(Task(id="t1", title="Duplicate"))

        with pytest.raises(ConflictError, match="already exists"):
            asyncio.run(scenario())
        assert [t.title for t in store.tasks.list()] == ["First"]

    def test_update(self, store: Store) -> None:
        async def scenario() -> Task | None:
            await store.tasks.create(Task(id="t1", title="Old title"))
            return await store.tasks.update("t1", {"title": "New title", "priority": "high"})

        result = asyncio.run(scenario())
        assert result is not None
        assert result.title == "New title"

        t = store.tasks.get("t1")
        assert t is not None
        assert t.title == "New title"
        assert t.priority == TaskPriority.HIGH

    def test_update_nonexistent(self, store: Store) -> None:
        assert asyncio.run(store.tasks.update("nope", {"title": "x"})) is None

    def test_update_status_drives_column(self, store: Store) -> None:
        async def scenario() -> None:
            await store.tasks.create(Task(id="t1", title="T"))
            await store.tasks.update("t1", {"status": "review"})

        asyncio.run(scenario())
        t = store.tasks.get("t1")
        assert t is not None
        assert t.column == TaskColumn.REVIEW
        assert t.status == TaskColumn.REVIEW

    def test_update_column_wins_over_status(self, store: Store) -> None:
        async def scenario() -> Task | None:
            await store.tasks.create(Task(id="t1", title="T"))
            return await store.tasks.update("t1", {"status": "review", "column": "todo"})

        t = asyncio.run(scenario())
        assert t is not None
        assert t.column == TaskColumn.TODO

    def test_rejected_update_leaves_file_untouched(self, store: Store) -> None:
        asyncio.run(store.tasks.create(Task(id="t1", title="T")))
        before = store.collection_path("tasks").read_text(encoding="utf-8")

        with pytest.raises(ValidationError):
            asyncio.run(store.tasks.update("t1", {"column": "nowhere"}))
        with pytest.raises(ValidationError, match="read-only"):
            asyncio.run(store.tasks.update("t1", {"id": "t2"}))
        with pytest.raises(ValidationError, match="cannot be null"):
            asyncio.run(store.tasks.update("t1", {"title": None}))

        assert store.collection_path("tasks").read_text(encoding="utf-8") == before

    def test_delete(self, store: Store) -> None:
        async def scenario() -> tuple[bool, bool]:
            await store.tasks.create(Task(id="t1", title="T"))
            return await store.tasks.delete("t1"), await store.tasks.delete("t1")

        first, second = asyncio.run(scenario())
        assert first is True
        assert second is False
        assert store.tasks.get("t1") is None

    def test_find_filters(self, store: Store) -> None:
        async def scenario() -> None:
            await store.tasks.create(Task(id="t1", title="Bug fix", project_id="p1", assignee="a", tags=["auth"]))
            await store.tasks.create(Task(id="t2", title="Feature", project_id="p1", assignee="b", column=TaskColumn.DOING))
            await store.tasks.create(Task(id="t3", title="Docs", description="fix typos", project_id="p2", tags=["auth"]))

        asyncio.run(scenario())
        assert [t.id for t in store.tasks.list(project_id="p1")] == ["t1", "t2"]
        assert [t.id for t in store.tasks.list(assignee="b")] == ["t2"]
        assert [t.id for t in store.tasks.list(column="doing")] == ["t2"]
        assert [t.id for t in store.tasks.list(status="doing")] == ["t2"]
        assert [t.id for t in store.tasks.list(tag="auth")] == ["t1", "t3"]
        assert [t.id for t in store.tasks.list(search="FIX")] == ["t1", "t3"]

    def test_append_comment(self, store: Store) -> None:
        async def scenario() -> Task | None:
            await store.tasks.create(Task(id="t1", title="T"))
            return await store.tasks.append_comment("t1", "alice", "looks good")

        t = asyncio.run(scenario())
        assert t is not None
        assert [(c.author, c.text) for c in t.comments] == [("alice", "looks good")]
        assert asyncio.run(store.tasks.append_comment("missing", "a", "b")) is None

    def test_strip_dependency(self, store: Store) -> None:
        async def scenario() -> list[str]:
            await store.tasks.create(Task(id="t1", title="Base"))
            await store.tasks.create(Task(id="t2", title="A", dependencies=["t1"]))
            await store.tasks.create(Task(id="t3", title="B", dependencies=["t1", "t2"]))
            return await store.tasks.strip_dependency("t1")

        changed = asyncio.run(scenario())
        assert sorted(changed) == ["t2", "t3"]
        assert store.tasks.get("t2").dependencies == []
        assert store.tasks.get("t3").dependencies == ["t2"]

    def test_delete_for_project(self, store: Store) -> None:
        async def scenario() -> int:
            await store.tasks.create(Task(id="t1", title="A", project_id="p1"))
            await store.tasks.create(Task(id="t2", title="B", project_id="p1"))
            await store.tasks.create(Task(id="t3", title="C", project_id="p2"))
            return await store.tasks.delete_for_project("p1")

        assert asyncio.run(scenario()) == 2
        assert [t.id for t in store.tasks.list()] == ["t3"]


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

class TestConcurrentWriters:
    def test_concurrent_comments_are_all_kept(self, store: Store) -> None:
        async def scenario() -> None:
            await store.tasks.create(Task(id="t1", title="Busy"))
            await asyncio.gather(*(
                store.tasks.append_comment("t1", f"agent-{i}", f"note {i}") for i in range(20)
            ))

        asyncio.run(scenario())
        t = store.tasks.get("t1")
        assert t is not None
        assert sorted(c.text for c in t.comments) == sorted(f"note {i}" for i in range(20))

    def test_concurrent_creates_are_all_kept(self, store: Store) -> None:
        async def scenario() -> None:
            await asyncio.gather(*(store.tasks.create(Task(id=f"t{i}", title=str(i))) for i in range(15)))

        asyncio.run(scenario())
        assert len(store.tasks.list()) == 15

    def test_writers_queue_in_arrival_order(self, store: Store) -> None:
        async def scenario() -> None:
            await store.tasks.create(Task(id="t1", title="Ordered"))
            lock = store.lock("tasks")
            await lock.acquire()
            try:
                pending = [
                    asyncio.ensure_future(store.tasks.append_comment("t1", "w", str(i)))
                    for i in range(5)
                ]
                # Let every writer reach the lock before releasing it.
                await asyncio.sleep(0)
            finally:
                lock.release()
            await asyncio.gather(*pending)

        asyncio.run(scenario())
        t = store.tasks.get("t1")
        assert t is not None
        assert [c.text for c in t.comments] == ["0", "1", "2", "3", "4"]

    def test_locks_are_per_collection(self, store: Store) -> None:
        assert store.lock("tasks") is store.lock("tasks")
        assert store.lock("tasks") is not store.lock("projects")


# ---------------------------------------------------------------------------
# Project and agent repositories
# ---------------------------------------------------------------------------

class TestProjectAndAgentRepositories:
    def test_project_crud(self, store: Store) -> None:
        async def scenario() -> None:
            await store.projects.create(Project(id="p1", name="Alpha", owner="alice"))
            await store.projects.create(Project(id="p2", name="Beta", owner="bob"))
            await store.projects.update("p2", {"status": "archived"})

        asyncio.run(scenario())
        assert [p.id for p in store.projects.list(owner="alice")] == ["p1"]
        assert [p.id for p in store.projects.list(status="archived")] == ["p2"]
        assert asyncio.run(store.projects.delete("p1")) is True
        assert store.projects.get("p1") is None

    def test_project_update_rejects_bad_status(self, store: Store) -> None:
        asyncio.run(store.projects.create(Project(id="p1", name="Alpha")))
        with pytest.raises(ValidationError, match="status must be one of"):
            asyncio.run(store.projects.update("p1", {"status": "paused"}))

    def test_agent_register_is_upsert(self, store: Store) -> None:
        async def scenario() -> None:
            await store.agents.register(Agent(id="a1", name="First"))
            await store.agents.register(Agent(id="a1", name="Second", capabilities=["code"]))

        asyncio.run(scenario())
        agents = store.agents.list()
        assert len(agents) == 1
        assert agents[0].name == "Second"
        assert [a.id for a in store.agents.list(capability="code")] == ["a1"]
        assert store.agents.list(role="reviewer") == []

    def test_agent_update_and_delete(self, store: Store) -> None:
        async def scenario() -> Agent | None:
            await store.agents.register(Agent(id="a1", name="Coder"))
            return await store.agents.update("a1", {"status": "offline", "role": "reviewer"})

        agent = asyncio.run(scenario())
        assert agent is not None
        assert [a.id for a in store.agents.list(status="offline")] == ["a1"]
        assert store.agents.get("a1").role == "reviewer"
        assert asyncio.run(store.agents.update("ghost", {"role": "x"})) is None
        assert asyncio.run(store.agents.delete("a1")) is True
        assert store.agents.list() == []
