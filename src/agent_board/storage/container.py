from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Callable, TypeVar

from ..constants import AGENTS, BACKUP_DIR, MAX_BACKUPS, PROJECTS, TASKS
from ..domain.models import Agent, Project, Task
from .backups import BackupRotator
from .collection import YamlCollection
from .file_repos import FileAgentRepository, FileProjectRepository, FileTaskRepository

T = TypeVar("T")


class Store:
    """Persistent store over the ``projects``, ``tasks`` and ``agents`` collections.

    The store owns one :class:`asyncio.Lock` per collection name.  Writers to
    the same collection queue on it in FIFO order; writers to different
    collections never contend.  Locks live and die with the instance.
    """

    def __init__(self, data_dir: Path, *, max_backups: int = MAX_BACKUPS) -> None:
        self.data_dir = Path(data_dir).expanduser().resolve()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._locks: dict[str, asyncio.Lock] = {}
        self.backups = BackupRotator(self.data_dir / BACKUP_DIR, keep=max_backups)

        self.projects = FileProjectRepository(self._collection(PROJECTS, Project.from_dict, lambda p: p.to_dict()))
        self.tasks = FileTaskRepository(self._collection(TASKS, Task.from_dict, lambda t: t.to_dict()))
        self.agents = FileAgentRepository(self._collection(AGENTS, Agent.from_dict, lambda a: a.to_dict()))

    def lock(self, name: str) -> asyncio.Lock:
        lock = self._locks.get(name)
        if lock is None:
            lock = self._locks[name] = asyncio.Lock()
        return lock

    def collection_path(self, name: str) -> Path:
        return self.data_dir / f"{name}.yaml"

    def _collection(
        self,
        name: str,
        loader: Callable[[dict[str, Any]], T],
        dumper: Callable[[T], dict[str, Any]],
    ) -> YamlCollection[T]:
        return YamlCollection(
            name,
            self.collection_path(name),
            lock=self.lock,
            backups=self.backups,
            loader=loader,
            dumper=dumper,
        )
