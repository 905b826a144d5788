from .backups import BackupRotator
from .container import Store
from .file_repos import FileAgentRepository, FileProjectRepository, FileTaskRepository
from .interfaces import AgentRepository, ProjectRepository, TaskRepository

__all__ = [
    "AgentRepository",
    "BackupRotator",
    "FileAgentRepository",
    "FileProjectRepository",
    "FileTaskRepository",
    "ProjectRepository",
    "Store",
    "TaskRepository",
]
