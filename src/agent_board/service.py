"""Board service: the boundary every adapter (HTTP, tool calls, CLI) calls into.

The service composes the store, the lifecycle engine and the audit ledger.
It owns the rules that sit one layer above storage: dependency-cycle checks
on edit, dependency cleanup on delete, the project-to-task cascade,
create-only agent registration, template application and the client view.
Each accepted mutation appends one audit entry after the store write.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable, Optional, Union

from loguru import logger

from .audit import AuditEntry, AuditLedger
from .config import BoardConfig, load_board_config
from .constants import ANONYMOUS_ACTOR, AUDIT_FILE
from .domain.models import (
    Agent,
    Comment,
    NextTask,
    Project,
    Task,
    TaskColumn,
    TaskPriority,
    parse_column,
)
from .domain.templates import TaskTemplate, parse_templates
from .engine.graph import dependency_view, dependents_of, would_cycle
from .engine.lifecycle import LifecycleEngine, MoveResult
from .errors import ConflictError, CycleError, ForbiddenError, NotFoundError, ValidationError
from .stats import board_stats
from .storage import Store
from .utils import now_iso


def _require(value: Optional[str], name: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{name} is required")
    return str(value)


class BoardService:
    def __init__(
        self,
        store: Store,
        ledger: AuditLedger,
        engine: Optional[LifecycleEngine] = None,
        config: Optional[BoardConfig] = None,
    ) -> None:
        self.store = store
        self.ledger = ledger
        self.config = config or BoardConfig()
        self.engine = engine or LifecycleEngine(store.tasks, self.config)

    @classmethod
    def open(cls, data_dir: Path) -> "BoardService":
        """Wire a service over *data_dir*, reading ``board.yaml`` if present."""
        data_dir = Path(data_dir).expanduser().resolve()
        config, err = load_board_config(data_dir)
        if err:
            logger.warning("Ignoring unreadable board config: {}", err)
        store = Store(data_dir, max_backups=config.max_backups)
        ledger = AuditLedger(store.data_dir / AUDIT_FILE)
        return cls(store, ledger, LifecycleEngine(store.tasks, config), config)

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self, *, status: Optional[str] = None, owner: Optional[str] = None) -> list[Project]:
        return self.store.projects.list(status=status, owner=owner)

    def get_project(self, project_id: str) -> tuple[Project, list[Task]]:
        project = self.store.projects.get(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        return project, self.store.tasks.list(project_id=project_id)

    async def create_project(
        self,
        name: str,
        *,
        owner: Optional[str] = None,
        description: str = "",
        client_view_enabled: bool = False,
        actor_id: str = ANONYMOUS_ACTOR,
    ) -> Project:
        project = Project(
            name=_require(name, "name"),
            owner=owner or "unknown",
            description=description or "",
            client_view_enabled=bool(client_view_enabled),
        )
        await self.store.projects.create(project)
        self.ledger.record(
            actor_id, "project.create",
            project_id=project.id,
            details=f'Created project "{project.name}"',
        )
        return project

    async def update_project(
        self,
        project_id: str,
        changes: dict[str, Any],
        *,
        actor_id: str = ANONYMOUS_ACTOR,
    ) -> Project:
        updated = await self.store.projects.update(project_id, changes)
        if updated is None:
            raise NotFoundError("project", project_id)
        self.ledger.record(
            actor_id, "project.update",
            project_id=project_id,
            details=f"Updated project fields: {', '.join(changes)}",
        )
        return updated

    async def delete_project(self, project_id: str, *, actor_id: str = ANONYMOUS_ACTOR) -> int:
        """Delete a project, then its tasks. Returns the number of tasks removed.

        The two writes are independent; a failure between them leaves the
        tasks behind with a dangling ``project_id``.
        """
        project = self.store.projects.get(project_id)
        if not await self.store.projects.delete(project_id):
            raise NotFoundError("project", project_id)
        removed = await self.store.tasks.delete_for_project(project_id)
        name = project.name if project else project_id
        self.ledger.record(
            actor_id, "project.delete",
            project_id=project_id,
            details=f'Deleted project "{name}"',
        )
        logger.info("Deleted project {} and {} task(s)", project_id, removed)
        return removed

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------

    def list_tasks(self, **filters: Optional[str]) -> list[Task]:
        return self.store.tasks.list(**filters)

    def get_task(self, task_id: str) -> Task:
        task = self.store.tasks.get(task_id)
        if task is None:
            raise NotFoundError("task", task_id)
        return task

    async def create_task(
        self,
        project_id: str,
        title: str,
        assignee: str,
        *,
        description: str = "",
        created_by: Optional[str] = None,
        priority: Union[str, TaskPriority, None] = None,
        tags: Optional[Iterable[str]] = None,
        column: Union[str, TaskColumn, None] = None,
        next_task: Union[NextTask, dict[str, Any], None] = None,
        parent_task_id: Optional[str] = None,
        requires_review: bool = False,
        max_retries: Optional[int] = None,
        deadline: Optional[str] = None,
        input_path: Optional[str] = None,
        output_path: Optional[str] = None,
        dependencies: Optional[Iterable[str]] = None,
        actor_id: str = ANONYMOUS_ACTOR,
    ) -> Task:
        task = Task(
            project_id=_require(project_id, "project_id"),
            title=_require(title, "title"),
            assignee=_require(assignee, "assignee"),
            created_by=created_by or "unknown",
            column=parse_column(column) if column else TaskColumn.BACKLOG,
        )
        task.apply({
            "description": description or "",
            "priority": priority or TaskPriority.MEDIUM,
            "tags": list(tags or []),
            "dependencies": list(dependencies or []),
            "next_task": next_task,
            "parent_task_id": parent_task_id,
            "requires_review": bool(requires_review),
            "max_retries": self.config.default_max_retries if max_retries is None else max_retries,
            "deadline": deadline,
            "input_path": input_path,
            "output_path": output_path,
        })
        if task.column is TaskColumn.DOING:
            task.started_at = now_iso()
        created = await self.store.tasks.create(task)
        self.ledger.record(
            actor_id, "task.create",
            task_id=created.id,
            project_id=created.project_id,
            details=f'Created task "{created.title}"',
        )
        return created

    async def update_task(
        self,
        task_id: str,
        changes: dict[str, Any],
        *,
        actor_id: str = ANONYMOUS_ACTOR,
    ) -> Task:
        """Apply a direct field update.

        This bypasses the lifecycle gates; a changed ``dependencies`` list is
        checked for cycles first.
        """
        if changes.get("dependencies") is not None:
            proposed = list(changes["dependencies"])
            snapshot = {t.id: t for t in self.store.tasks.list()}
            if would_cycle(task_id, proposed, snapshot):
                raise CycleError(task_id, proposed)
        updated = await self.store.tasks.update(task_id, changes)
        if updated is None:
            raise NotFoundError("task", task_id)
        self.ledger.record(
            actor_id, "task.update",
            task_id=updated.id,
            project_id=updated.project_id,
            details=f"Updated task fields: {', '.join(changes)}",
        )
        return updated

    async def delete_task(self, task_id: str, *, actor_id: str = ANONYMOUS_ACTOR) -> list[str]:
        """Delete a task and strip it from other tasks' dependencies.

        Returns the ids of the tasks whose dependency lists changed.
        """
        task = self.store.tasks.get(task_id)
        if not await self.store.tasks.delete(task_id):
            raise NotFoundError("task", task_id)
        unblocked = await self.store.tasks.strip_dependency(task_id)
        if task is not None:
            self.ledger.record(
                actor_id, "task.delete",
                task_id=task.id,
                project_id=task.project_id,
                details=f'Deleted task "{task.title}"',
            )
        return unblocked

    async def move_task(
        self,
        task_id: str,
        column: Union[str, TaskColumn, None],
        *,
        actor_id: str = ANONYMOUS_ACTOR,
    ) -> MoveResult:
        before = self.store.tasks.get(task_id)
        result = await self.engine.move(task_id, column)
        target = parse_column(column).value
        from_column = before.column.value if before else None
        self.ledger.record(
            actor_id, "task.move",
            task_id=result.task.id,
            project_id=result.task.project_id,
            from_column=from_column,
            to_column=target,
            details=(
                "Moved to failed, auto-retried"
                if result.retried
                else f"Moved from {from_column} to {target}"
            ),
        )
        return result

    async def add_comment(
        self,
        task_id: str,
        author: str,
        text: str,
        *,
        actor_id: str = ANONYMOUS_ACTOR,
    ) -> Task:
        author = _require(author, "author")
        text = _require(text, "text")
        updated = await self.store.tasks.append_comment(task_id, author, text)
        if updated is None:
            raise NotFoundError("task", task_id)
        self.ledger.record(
            actor_id, "comment.add",
            task_id=updated.id,
            project_id=updated.project_id,
            details=f"Comment by {author}: {text[:100]}",
        )
        return updated

    def list_comments(self, task_id: str) -> list[Comment]:
        return list(self.get_task(task_id).comments)

    def task_dependencies(self, task_id: str) -> tuple[Task, list[Task], list[Task]]:
        """Return ``(task, dependencies, blocked_by)``."""
        task = self.get_task(task_id)
        dependencies, blocked_by = dependency_view(task, self.store.tasks.get)
        return task, dependencies, blocked_by

    def task_dependents(self, task_id: str) -> tuple[Task, list[Task]]:
        task = self.get_task(task_id)
        return task, dependents_of(task.id, self.store.tasks.list())

    # ------------------------------------------------------------------
    # Templates
    # ------------------------------------------------------------------

    async def apply_template(
        self,
        project_id: str,
        templates: Iterable[Union[TaskTemplate, dict[str, Any]]],
        *,
        actor_id: str = ANONYMOUS_ACTOR,
    ) -> list[Task]:
        """Create one task per template entry, then resolve ``next_task.ref`` links."""
        project = self.store.projects.get(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        entries = parse_templates(templates)

        created: list[Task] = []
        by_ref: dict[str, Task] = {}
        links: list[tuple[Task, str]] = []
        for entry in entries:
            link = entry.next_task
            task = Task(
                project_id=project_id,
                title=entry.title,
                description=entry.description,
                column=entry.column,
                assignee=entry.assignee or project.owner or "unassigned",
                created_by="template",
                priority=entry.priority,
                tags=list(entry.tags),
                next_task=link if isinstance(link, NextTask) else None,
                requires_review=entry.requires_review,
                max_retries=self.config.default_max_retries if entry.max_retries is None else entry.max_retries,
                input_path=entry.input_path,
                output_path=entry.output_path,
            )
            if task.column is TaskColumn.DOING:
                task.started_at = now_iso()
            await self.store.tasks.create(task)
            created.append(task)
            if entry.ref:
                by_ref[entry.ref] = task
            if link is not None and link.ref:
                links.append((task, link.ref))

        for task, ref in links:
            target = by_ref.get(ref)
            if target is None:
                logger.warning("Template ref {} on task {} matches no entry", ref, task.id)
                continue
            task.next_task = NextTask(
                title=target.title,
                description=target.description,
                assignee=target.assignee,
                priority=target.priority,
                tags=list(target.tags),
            )
            await self.store.tasks.update(task.id, {"next_task": task.next_task})

        self.ledger.record(
            actor_id, "project.from-template",
            project_id=project_id,
            details=f"Created {len(created)} tasks from template",
        )
        return created

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def list_agents(self, **filters: Optional[str]) -> list[Agent]:
        return self.store.agents.list(**filters)

    async def register_agent(
        self,
        agent_id: str,
        name: str,
        *,
        role: Optional[str] = None,
        capabilities: Optional[Iterable[str]] = None,
        actor_id: str = ANONYMOUS_ACTOR,
    ) -> Agent:
        """Register a new agent. Existing ids are rejected, never overwritten."""
        agent_id = _require(agent_id, "id")
        name = _require(name, "name")
        if self.store.agents.get(agent_id) is not None:
            raise ConflictError(f'Agent "{agent_id}" already exists')
        agent = await self.store.agents.register(
            Agent(id=agent_id, name=name, role=role or "worker", capabilities=list(capabilities or []))
        )
        self.ledger.record(actor_id, "agent.register", details=f'Registered agent "{name}" ({agent_id})')
        return agent

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def client_view(self, project_id: str) -> dict[str, Any]:
        """Sanitized read-only projection of a project for external viewers."""
        project = self.store.projects.get(project_id)
        if project is None:
            raise NotFoundError("project", project_id)
        if not project.client_view_enabled:
            raise ForbiddenError("Client view is not enabled for this project")

        tasks = self.store.tasks.list(project_id=project_id)
        done = sum(1 for t in tasks if t.column is TaskColumn.DONE)
        return {
            "project": {"id": project.id, "name": project.name, "description": project.description},
            "tasks": [
                {
                    "id": t.id,
                    "title": t.title,
                    "description": t.description,
                    "status": t.column.value,
                    "priority": t.priority.value,
                    "tags": list(t.tags),
                    "teamMember": "Team Member" if t.assignee else "Unassigned",
                    "createdAt": t.created_at,
                    "updatedAt": t.updated_at,
                    "completedAt": t.completed_at,
                }
                for t in tasks
            ],
            "progress": {
                "total": len(tasks),
                "done": done,
                "percentage": round(done / len(tasks) * 100) if tasks else 0,
            },
            "lastUpdated": max((t.updated_at for t in tasks), default=project.updated_at),
        }

    def audit(
        self,
        *,
        task_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> list[AuditEntry]:
        return self.ledger.query(task_id=task_id, actor_id=actor_id, limit=limit or self.config.audit_limit)

    def stats(self) -> dict[str, Any]:
        return board_stats(self.store.tasks.list(), self.store.agents.list())
