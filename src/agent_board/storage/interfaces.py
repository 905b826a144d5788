from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..domain.models import Agent, Project, Task


class ProjectRepository(ABC):
    @abstractmethod
    def list(self, *, status: Optional[str] = None, owner: Optional[str] = None) -> list[Project]:
        raise NotImplementedError

    @abstractmethod
    def get(self, project_id: str) -> Optional[Project]:
        raise NotImplementedError

    @abstractmethod
    async def create(self, project: Project) -> Project:
        raise NotImplementedError

    @abstractmethod
    async def update(self, project_id: str, changes: dict[str, Any]) -> Optional[Project]:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, project_id: str) -> bool:
        raise NotImplementedError


class TaskRepository(ABC):
    @abstractmethod
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
        raise NotImplementedError

    @abstractmethod
    def get(self, task_id: str) -> Optional[Task]:
        raise NotImplementedError

    @abstractmethod
    async def create(self, task: Task) -> Task:
        raise NotImplementedError

    @abstractmethod
    async def update(self, task_id: str, changes: dict[str, Any]) -> Optional[Task]:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, task_id: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    async def append_comment(self, task_id: str, author: str, text: str) -> Optional[Task]:
        raise NotImplementedError

    @abstractmethod
    async def strip_dependency(self, dependency_id: str) -> list[str]:
        raise NotImplementedError

    @abstractmethod
    async def delete_for_project(self, project_id: str) -> int:
        raise NotImplementedError


class AgentRepository(ABC):
    @abstractmethod
    def list(
        self,
        *,
        status: Optional[str] = None,
        role: Optional[str] = None,
        capability: Optional[str] = None,
    ) -> list[Agent]:
        raise NotImplementedError

    @abstractmethod
    def get(self, agent_id: str) -> Optional[Agent]:
        raise NotImplementedError

    @abstractmethod
    async def register(self, agent: Agent) -> Agent:
        raise NotImplementedError

    @abstractmethod
    async def update(self, agent_id: str, changes: dict[str, Any]) -> Optional[Agent]:
        raise NotImplementedError

    @abstractmethod
    async def delete(self, agent_id: str) -> bool:
        raise NotImplementedError
