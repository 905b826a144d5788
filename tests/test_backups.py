from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from pathlib import Path

import pytest
import yaml

from agent_board.domain.models import Task
from agent_board.storage import BackupRotator, Store


def test_snapshot_missing_source_is_noop(tmp_path: Path) -> None:
    rotator = BackupRotator(tmp_path / "backups")
    assert rotator.snapshot("tasks", tmp_path / "tasks.yaml") is None
    assert rotator.list("tasks") == []


def test_snapshot_copies_and_prunes(tmp_path: Path) -> None:
    source = tmp_path / "tasks.yaml"
    rotator = BackupRotator(tmp_path / "backups", keep=3)
    for i in range(5):
        source.write_text(f"n: {i}\n", encoding="utf-8")
        rotator.snapshot("tasks", source)

    kept = rotator.list("tasks")
    assert len(kept) == 3
    assert [p.read_text(encoding="utf-8") for p in kept] == ["n: 2\n", "n: 3\n", "n: 4\n"]
    assert [p.name for p in kept] == sorted(p.name for p in kept)


def test_stamp_advances_when_clock_does_not(tmp_path: Path) -> None:
    source = tmp_path / "tasks.yaml"
    source.write_text("n: 0\n", encoding="utf-8")
    rotator = BackupRotator(tmp_path / "backups", keep=10)
    # Pin the last stamp ahead of the wall clock so every snapshot must bump it.
    rotator._last = datetime(2099, 1, 1, tzinfo=timezone.utc)
    for _ in range(3):
        rotator.snapshot("tasks", source)

    names = [p.name for p in rotator.list("tasks")]
    assert names == [
        "tasks-20990101T000000.000001Z.yaml",
        "tasks-20990101T000000.000002Z.yaml",
        "tasks-20990101T000000.000003Z.yaml",
    ]


def test_prune_only_touches_named_collection(tmp_path: Path) -> None:
    rotator = BackupRotator(tmp_path / "backups", keep=1)
    tasks = tmp_path / "tasks.yaml"
    agents = tmp_path / "agents.yaml"
    tasks.write_text("a\n", encoding="utf-8")
    agents.write_text("b\n", encoding="utf-8")
    for _ in range(3):
        rotator.snapshot("tasks", tasks)
    rotator.snapshot("agents", agents)

    assert len(rotator.list("tasks")) == 1
    assert len(rotator.list("agents")) == 1


def test_keep_must_be_positive(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        BackupRotator(tmp_path, keep=0)


def test_sixty_writes_leave_newest_fifty(tmp_path: Path) -> None:
    store = Store(tmp_path / "data")

    async def scenario() -> None:
        for i in range(60):
            await store.tasks.create(Task(id=f"t{i}", title=str(i)))

    asyncio.run(scenario())

    backups = store.backups.list("tasks")
    assert len(backups) == 50
    # The snapshot taken before write k holds the k - 1 tasks written so far.
    counts = [len(yaml.safe_load(p.read_text(encoding="utf-8"))["tasks"]) for p in backups]
    assert counts == list(range(10, 60))


def test_max_backups_is_configurable(tmp_path: Path) -> None:
    store = Store(tmp_path / "data", max_backups=2)

    async def scenario() -> None:
        for i in range(5):
            await store.tasks.create(Task(id=f"t{i}", title=str(i)))

    asyncio.run(scenario())
    assert len(store.backups.list("tasks")) == 2
