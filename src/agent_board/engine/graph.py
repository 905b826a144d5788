"""Dependency graph queries over tasks.

These are pure functions: they take a task lookup rather than a store, so
the same check runs against live storage, a snapshot, or a plain dict.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Callable, Iterable, Optional, Union

from ..domain.models import Task, TaskColumn

TaskLookup = Union[Callable[[str], Optional[Task]], Mapping[str, Task]]


def _resolver(lookup: TaskLookup) -> Callable[[str], Optional[Task]]:
    if isinstance(lookup, Mapping):
        return lookup.get
    return lookup


def would_cycle(task_id: str, proposed: Iterable[str], lookup: TaskLookup) -> bool:
    """Return True if depending on *proposed* would make *task_id* reach itself.

    Walks depth-first from each proposed id through every visited task's own
    dependencies.  Ids that resolve to no task are leaves.
    """
    get = _resolver(lookup)
    visited: set[str] = set()
    stack = list(proposed)
    while stack:
        current = stack.pop()
        if current == task_id:
            return True
        if current in visited:
            continue
        visited.add(current)
        node = get(current)
        if node is not None:
            stack.extend(node.dependencies)
    return False


def dependency_view(task: Task, lookup: TaskLookup) -> tuple[list[Task], list[Task]]:
    """Return ``(dependencies, blocked_by)`` for *task*.

    Missing dependencies are omitted from both lists.
    """
    get = _resolver(lookup)
    resolved = [dep for dep in (get(dep_id) for dep_id in task.dependencies) if dep is not None]
    blocked_by = [dep for dep in resolved if dep.column is not TaskColumn.DONE]
    return resolved, blocked_by


def dependents_of(task_id: str, tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if task_id in t.dependencies]
