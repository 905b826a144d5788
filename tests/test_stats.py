from __future__ import annotations

from datetime import datetime, timezone

from agent_board.domain.models import Agent, Task, TaskColumn, TaskPriority
from agent_board.stats import board_stats


def test_empty_board() -> None:
    stats = board_stats([], [])
    assert stats == {
        "totalTasks": 0,
        "byStatus": {},
        "byPriority": {},
        "avgDurationMs": None,
        "completionRate": 0,
        "agentStats": [],
        "oldestDoingTask": None,
    }


def test_counts_and_agents() -> None:
    tasks = [
        Task(id="t1", assignee="a1", column=TaskColumn.DONE, duration_ms=1000, priority=TaskPriority.HIGH),
        Task(id="t2", assignee="a1", column=TaskColumn.DONE, duration_ms=3000),
        Task(id="t3", assignee="a1", column=TaskColumn.FAILED),
        Task(id="t4", assignee="a2", column=TaskColumn.DOING, started_at="2024-01-01T00:00:10.000Z"),
    ]
    agents = [Agent(id="a1", name="One"), Agent(id="a2", name="Two"), Agent(id="idle", name="Idle")]
    stats = board_stats(tasks, agents, now=datetime(2024, 1, 1, 0, 1, 10, tzinfo=timezone.utc))

    assert stats["totalTasks"] == 4
    assert stats["byStatus"] == {"done": 2, "failed": 1, "doing": 1}
    assert stats["byPriority"] == {"high": 1, "medium": 3}
    assert stats["avgDurationMs"] == 2000
    assert stats["completionRate"] == 0.5

    by_agent = {s["agentId"]: s for s in stats["agentStats"]}
    assert set(by_agent) == {"a1", "a2"}
    assert by_agent["a1"]["completed"] == 2
    assert by_agent["a1"]["failed"] == 1
    assert by_agent["a1"]["avgDurationMs"] == 2000
    assert by_agent["a2"]["inProgress"] == 1
    assert by_agent["a2"]["avgDurationMs"] is None

    oldest = stats["oldestDoingTask"]
    assert oldest["id"] == "t4"
    assert oldest["ageMs"] == 60_000


def test_oldest_doing_picks_earliest_start() -> None:
    tasks = [
        Task(id="late", column=TaskColumn.DOING, started_at="2024-01-02T00:00:00.000Z"),
        Task(id="early", column=TaskColumn.DOING, started_at="2024-01-01T00:00:00.000Z"),
        Task(id="unstarted", column=TaskColumn.DOING),
    ]
    stats = board_stats(tasks, [], now=datetime(2024, 1, 3, tzinfo=timezone.utc))
    assert stats["oldestDoingTask"]["id"] == "early"
