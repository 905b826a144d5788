"""Aggregate board statistics for dashboards and stuck-task detection."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, Optional

from .domain.models import Agent, Task, TaskColumn
from .utils import parse_iso


def _avg(values: list[int]) -> Optional[int]:
    return round(sum(values) / len(values)) if values else None


def _agent_stats(agent: Agent, tasks: list[Task]) -> dict[str, Any]:
    owned = [t for t in tasks if t.assignee == agent.id]
    completed = [t for t in owned if t.column is TaskColumn.DONE]
    return {
        "agentId": agent.id,
        "totalTasks": len(owned),
        "completed": len(completed),
        "failed": sum(1 for t in owned if t.column is TaskColumn.FAILED),
        "inProgress": sum(1 for t in owned if t.column is TaskColumn.DOING),
        "avgDurationMs": _avg([t.duration_ms for t in completed if t.duration_ms]),
        "completionRate": len(completed) / len(owned) if owned else 0,
    }


def board_stats(
    tasks: Iterable[Task],
    agents: Iterable[Agent],
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Summarize the board.

    Args:
        tasks: Every task on the board.
        agents: Registered agents; only those with at least one task are reported.
        now: Reference time for ``oldestDoingTask.ageMs`` (defaults to now, UTC).

    Returns:
        A JSON-friendly mapping with totals, per-column and per-priority counts,
        average duration, completion rate, per-agent stats and the oldest task
        still in ``doing``.
    """
    tasks = list(tasks)
    now = now or datetime.now(timezone.utc)

    by_status: dict[str, int] = {}
    by_priority: dict[str, int] = {}
    for t in tasks:
        by_status[t.column.value] = by_status.get(t.column.value, 0) + 1
        by_priority[t.priority.value] = by_priority.get(t.priority.value, 0) + 1

    completed = sum(1 for t in tasks if t.column is TaskColumn.DONE)
    agent_stats = [s for s in (_agent_stats(a, tasks) for a in agents) if s["totalTasks"] > 0]

    oldest: Optional[dict[str, Any]] = None
    doing = [(parse_iso(t.started_at), t) for t in tasks if t.column is TaskColumn.DOING and t.started_at]
    doing = [(started, t) for started, t in doing if started is not None]
    if doing:
        started, task = min(doing, key=lambda pair: pair[0])
        oldest = {
            "id": task.id,
            "title": task.title,
            "assignee": task.assignee,
            "startedAt": task.started_at,
            "ageMs": int((now - started).total_seconds() * 1000),
        }

    return {
        "totalTasks": len(tasks),
        "byStatus": by_status,
        "byPriority": by_priority,
        "avgDurationMs": _avg([t.duration_ms for t in tasks if t.duration_ms]),
        "completionRate": completed / len(tasks) if tasks else 0,
        "agentStats": agent_stats,
        "oldestDoingTask": oldest,
    }
