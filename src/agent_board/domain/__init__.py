from .models import (
    COLUMN_VALUES,
    Agent,
    AgentStatus,
    Comment,
    NextTask,
    Project,
    ProjectStatus,
    Task,
    TaskColumn,
    TaskPriority,
    parse_column,
)
from .templates import TaskTemplate, TemplateLink, parse_templates

__all__ = [
    "COLUMN_VALUES",
    "Agent",
    "AgentStatus",
    "Comment",
    "NextTask",
    "Project",
    "ProjectStatus",
    "Task",
    "TaskColumn",
    "TaskPriority",
    "TaskTemplate",
    "TemplateLink",
    "parse_column",
    "parse_templates",
]
