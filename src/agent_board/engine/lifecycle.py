"""Task lifecycle engine: the sanctioned path for moving a task between columns.

A raw field update can set ``column`` directly; :meth:`LifecycleEngine.move`
additionally enforces the dependency and quality gates, maintains the
timing metrics, and runs the completion and failure side effects (auto-retry,
dependent notification, chaining).
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Union

from loguru import logger

from ..config import BoardConfig
from ..constants import MISSING_DEPS_BLOCK, SYSTEM_AUTHOR
from ..domain.models import Comment, Task, TaskColumn, parse_column
from ..errors import Blocker, DependencyBlockedError, NotFoundError, ReviewRequiredError
from ..storage.interfaces import TaskRepository
from ..utils import elapsed_ms, format_iso


@dataclass
class MoveResult:
    task: Task
    retried: bool = False
    chained_task: Optional[Task] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"task": self.task.to_dict(), "retried": self.retried}
        if self.chained_task is not None:
            data["chainedTask"] = self.chained_task.to_dict()
        return data


class LifecycleEngine:
    """Move tasks through the board columns.

    Parameters
    ----------
    tasks:
        Repository the engine reads and writes through.
    config:
        Board settings; ``missing_dependencies`` decides whether a deleted
        dependency blocks entry into ``doing``.
    """

    def __init__(self, tasks: TaskRepository, config: Optional[BoardConfig] = None) -> None:
        self._tasks = tasks
        self._config = config or BoardConfig()

    async def move(self, task_id: str, column: Union[str, TaskColumn, None]) -> MoveResult:
        target = parse_column(column)
        current = self._tasks.get(task_id)
        if current is None:
            raise NotFoundError("task", task_id)

        if target is TaskColumn.DOING and current.dependencies:
            blockers = self._blockers(current)
            if blockers:
                logger.info("Move of {} to doing blocked by {}", task_id, [b.id for b in blockers])
                raise DependencyBlockedError(task_id, blockers)

        if target is TaskColumn.DONE and current.requires_review and current.column is not TaskColumn.REVIEW:
            raise ReviewRequiredError(task_id)

        updated = await self._tasks.update(task_id, self._derived_changes(current, target))
        if updated is None:
            raise NotFoundError("task", task_id)
        logger.info("Moved task {} from {} to {}", task_id, current.column.value, target.value)

        retried = False
        if target is TaskColumn.FAILED:
            updated, retried = await self._after_failure(updated)

        chained: Optional[Task] = None
        if target is TaskColumn.DONE:
            await self._notify_dependents(updated)
            if updated.next_task is not None:
                chained = await self._spawn_next(updated)

        return MoveResult(task=updated, retried=retried, chained_task=chained)

    # ------------------------------------------------------------------
    # Gates
    # ------------------------------------------------------------------

    def _blockers(self, task: Task) -> list[Blocker]:
        blockers: list[Blocker] = []
        for dep_id in task.dependencies:
            dep = self._tasks.get(dep_id)
            if dep is None:
                if self._config.missing_dependencies == MISSING_DEPS_BLOCK:
                    blockers.append(Blocker(dep_id, "", "missing"))
                else:
                    logger.warning("Task {} depends on missing task {}; not blocking", task.id, dep_id)
                continue
            if dep.column is not TaskColumn.DONE:
                blockers.append(Blocker(dep.id, dep.title, dep.column.value))
        return blockers

    # ------------------------------------------------------------------
    # Derived fields
    # ------------------------------------------------------------------

    @staticmethod
    def _derived_changes(current: Task, target: TaskColumn) -> dict[str, Any]:
        changes: dict[str, Any] = {"column": target}
        stamp = format_iso(datetime.now(timezone.utc))
        if target is TaskColumn.DOING and not current.started_at:
            changes["started_at"] = stamp
        elif target is TaskColumn.DONE:
            changes["completed_at"] = stamp
            if current.started_at:
                changes["duration_ms"] = elapsed_ms(current.started_at, stamp)
        elif target is TaskColumn.FAILED:
            changes["failed_at"] = stamp
        return changes

    # ------------------------------------------------------------------
    # Side effects
    # ------------------------------------------------------------------

    async def _after_failure(self, task: Task) -> tuple[Task, bool]:
        attempt = task.retry_count
        limit = task.max_retries
        if attempt < limit:
            await self._tasks.update(
                task.id,
                {"column": TaskColumn.TODO, "retry_count": attempt + 1, "failed_at": None},
            )
            text = f"Auto-retry {attempt + 1}/{limit}: task moved back to todo after failure."
            logger.info("Auto-retrying task {} ({}/{})", task.id, attempt + 1, limit)
            retried = True
        else:
            text = f"Max retries ({limit}) exhausted. Task requires manual intervention."
            logger.warning("Task {} exhausted {} retries", task.id, limit)
            retried = False
        commented = await self._tasks.append_comment(task.id, SYSTEM_AUTHOR, text)
        return (commented or task), retried

    async def _notify_dependents(self, task: Task) -> None:
        text = f'Dependency resolved: "{task.title}" ({task.id}) is now done.'
        for other in self._tasks.list():
            if task.id in other.dependencies:
                await self._tasks.append_comment(other.id, SYSTEM_AUTHOR, text)

    async def _spawn_next(self, task: Task) -> Task:
        template = task.next_task
        assert template is not None
        chained = Task(
            project_id=task.project_id,
            title=template.title,
            description=template.description or f"Chained from: {task.title} ({task.id})",
            column=TaskColumn.TODO,
            assignee=template.assignee,
            created_by=task.assignee,
            priority=template.priority or task.priority,
            tags=list(template.tags) if template.tags is not None else list(task.tags),
            max_retries=self._config.default_max_retries,
            comments=[Comment(SYSTEM_AUTHOR, f'Auto-created from completed task "{task.title}" ({task.id})')],
            parent_task_id=task.id,
        )
        created = await self._tasks.create(chained)
        logger.info("Chained task {} spawned from {}", created.id, task.id)
        return created
