from __future__ import annotations

from typing import Any, Optional

from loguru import logger

from ..domain.models import Agent, Project, Task
from ..errors import ConflictError
from .collection import YamlCollection
from .interfaces import AgentRepository, ProjectRepository, TaskRepository


class FileProjectRepository(ProjectRepository):
    def __init__(self, collection: YamlCollection[Project]) -> None:
        self._repo = collection

    def list(self, *, status: Optional[str] = None, owner: Optional[str] = None) -> list[Project]:
        projects = self._repo.load()
        if status:
            projects = [p for p in projects if p.status.value == status]
        if owner:
            projects = [p for p in projects if p.owner == owner]
        return projects

    def get(self, project_id: str) -> Optional[Project]:
        for project in self._repo.load():
            if project.id == project_id:
                return project
        return None

    async def create(self, project: Project) -> Project:
        async with self._repo.transaction() as tx:
            if tx.index_of(project.id) is not None:
                raise ConflictError(f'Project "{project.id}" already exists')
            tx.items.append(project)
            tx.dirty = True
        return project

    async def update(self, project_id: str, changes: dict[str, Any]) -> Optional[Project]:
        async with self._repo.transaction() as tx:
            project = tx.get(project_id)
            if project is None:
                return None
            project.apply(changes)
            tx.dirty = True
        return project

    async def delete(self, project_id: str) -> bool:
        async with self._repo.transaction() as tx:
            idx = tx.index_of(project_id)
            if idx is None:
                return False
            tx.items.pop(idx)
            tx.dirty = True
        return True


class FileTaskRepository(TaskRepository):
    def __init__(self, collection: YamlCollection[Task]) -> None:
        self._repo = collection

    def list(
        self,
        *,
        project_id: Optional[str] = None,
        assignee: Optional[str] = None,
        column: Optional[str] = None,
        status: Optional[str] = None,
        tag: Optional[str] = None,
        search: Optional[str] = None,
    ) -> list[Task]:
        # ``status`` is the legacy spelling of ``column``.
        column = column or status
        out: list[Task] = []
        for t in self._repo.load():
            if project_id and t.project_id != project_id:
                continue
            if assignee and t.assignee != assignee:
                continue
            if column and t.column.value != column:
                continue
            if tag and tag not in t.tags:
                continue
            if search:
                q = search.lower()
                if q not in t.title.lower() and q not in t.description.lower():
                    continue
            out.append(t)
        return out

    def get(self, task_id: str) -> Optional[Task]:
        for task in self._repo.load():
            if task.id == task_id:
                return task
        return None

    async def create(self, task: Task) -> Task:
        async with self._repo.transaction() as tx:
            if tx.index_of(task.id) is not None:
                raise ConflictError(f'Task "{task.id}" already exists')
            tx.items.append(task)
            tx.dirty = True
        return task

    async def update(self, task_id: str, changes: dict[str, Any]) -> Optional[Task]:
        async with self._repo.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                return None
            # A rejected change raises before dirty is set, so nothing is written.
            task.apply(changes)
            tx.dirty = True
        return task

    async def delete(self, task_id: str) -> bool:
        async with self._repo.transaction() as tx:
            idx = tx.index_of(task_id)
            if idx is None:
                return False
            tx.items.pop(idx)
            tx.dirty = True
        return True

    async def append_comment(self, task_id: str, author: str, text: str) -> Optional[Task]:
        async with self._repo.transaction() as tx:
            task = tx.get(task_id)
            if task is None:
                return None
            task.add_comment(author, text)
            tx.dirty = True
        return task

    async def strip_dependency(self, dependency_id: str) -> list[str]:
        """Remove *dependency_id* from every task's dependencies in one write."""
        changed: list[str] = []
        async with self._repo.transaction() as tx:
            for task in tx.items:
                if task.remove_dependency(dependency_id):
                    changed.append(task.id)
            tx.dirty = bool(changed)
        if changed:
            logger.debug("Removed dependency {} from {} task(s)", dependency_id, len(changed))
        return changed

    async def delete_for_project(self, project_id: str) -> int:
        async with self._repo.transaction() as tx:
            keep = [t for t in tx.items if t.project_id != project_id]
            removed = len(tx.items) - len(keep)
            if removed:
                tx.items[:] = keep
                tx.dirty = True
        return removed


class FileAgentRepository(AgentRepository):
    def __init__(self, collection: YamlCollection[Agent]) -> None:
        self._repo = collection

    def list(
        self,
        *,
        status: Optional[str] = None,
        role: Optional[str] = None,
        capability: Optional[str] = None,
    ) -> list[Agent]:
        agents = self._repo.load()
        if status:
            agents = [a for a in agents if a.status.value == status]
        if role:
            agents = [a for a in agents if a.role == role]
        if capability:
            agents = [a for a in agents if capability in a.capabilities]
        return agents

    def get(self, agent_id: str) -> Optional[Agent]:
        for agent in self._repo.load():
            if agent.id == agent_id:
                return agent
        return None

    async def register(self, agent: Agent) -> Agent:
        """Insert or replace *agent*; duplicate rejection is the caller's job."""
        async with self._repo.transaction() as tx:
            idx = tx.index_of(agent.id)
            if idx is None:
                tx.items.append(agent)
            else:
                tx.items[idx] = agent
            tx.dirty = True
        return agent

    async def update(self, agent_id: str, changes: dict[str, Any]) -> Optional[Agent]:
        async with self._repo.transaction() as tx:
            agent = tx.get(agent_id)
            if agent is None:
                return None
            agent.apply(changes)
            tx.dirty = True
        return agent

    async def delete(self, agent_id: str) -> bool:
        async with self._repo.transaction() as tx:
            idx = tx.index_of(agent_id)
            if idx is None:
                return False
            tx.items.pop(idx)
            tx.dirty = True
        return True
