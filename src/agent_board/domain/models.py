"""Board entities: projects, tasks, agents and their comments.

Tasks carry a single canonical lifecycle field, ``column``.  Older callers
and stored records also know a ``status`` field; it is written as a mirror of
``column`` by :meth:`Task.to_dict` and read as a fallback by
:meth:`Task.from_dict`, so the two can never disagree on disk.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..constants import DEFAULT_MAX_RETRIES, SYSTEM_AUTHOR
from ..errors import ValidationError
from ..utils import generate_id, now_iso


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskColumn(str, Enum):
    """Lifecycle position of a task on the board."""

    BACKLOG = "backlog"
    TODO = "todo"
    DOING = "doing"
    REVIEW = "review"
    DONE = "done"
    FAILED = "failed"


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class ProjectStatus(str, Enum):
    ACTIVE = "active"
    ARCHIVED = "archived"


class AgentStatus(str, Enum):
    ONLINE = "online"
    OFFLINE = "offline"


COLUMN_VALUES = tuple(c.value for c in TaskColumn)


def parse_column(raw: Any) -> TaskColumn:
    """Coerce *raw* into a :class:`TaskColumn`, raising :class:`ValidationError`."""
    if isinstance(raw, TaskColumn):
        return raw
    if raw is None or raw == "":
        raise ValidationError("column is required")
    try:
        return TaskColumn(str(raw))
    except ValueError:
        raise ValidationError(f"column must be one of: {', '.join(COLUMN_VALUES)}") from None


def _enum(enum_cls: type[Enum], raw: Any, default: Enum) -> Any:
    if raw is None:
        return default
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(str(raw))
    except ValueError:
        return default


def _strict_enum(enum_cls: type[Enum], name: str) -> Callable[[Any], Any]:
    def coerce(raw: Any) -> Any:
        if isinstance(raw, enum_cls):
            return raw
        try:
            return enum_cls(str(raw))
        except ValueError:
            allowed = ", ".join(e.value for e in enum_cls)
            raise ValidationError(f"{name} must be one of: {allowed}") from None

    return coerce


def _strict_int(name: str) -> Callable[[Any], int]:
    def coerce(raw: Any) -> int:
        if isinstance(raw, bool):
            raise ValidationError(f"{name} must be a non-negative integer")
        try:
            value = int(raw)
        except (TypeError, ValueError):
            raise ValidationError(f"{name} must be a non-negative integer") from None
        if value < 0 or (isinstance(raw, float) and raw != value):
            raise ValidationError(f"{name} must be a non-negative integer")
        return value

    return coerce


_TRUE = frozenset({"true", "yes", "on", "1"})
_FALSE = frozenset({"false", "no", "off", "0"})


def _strict_bool(name: str) -> Callable[[Any], bool]:
    def coerce(raw: Any) -> bool:
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        raise ValidationError(f"{name} must be a boolean")

    return coerce


def _int(raw: Any, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _str_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str) or not isinstance(raw, (list, tuple, set, frozenset)):
        raise ValidationError("expected a list of strings")
    return [str(item) for item in raw]


def _apply_changes(
    entity: Any,
    changes: dict[str, Any],
    coercers: dict[str, Callable[[Any], Any]],
    readonly: frozenset[str] = frozenset({"id", "created_at"}),
) -> None:
    nullable = {f.name for f in fields(entity) if f.default is None}
    names = {f.name for f in fields(entity)}
    for key, value in changes.items():
        if key not in names or key in readonly:
            raise ValidationError(f"Unknown or read-only field: {key}")
        if value is None:
            if key not in nullable:
                raise ValidationError(f"{key} cannot be null")
            setattr(entity, key, None)
            continue
        coerce = coercers.get(key)
        setattr(entity, key, coerce(value) if coerce is not None else value)


# ---------------------------------------------------------------------------
# Chaining template
# ---------------------------------------------------------------------------

class NextTask(BaseModel):
    """Successor task spawned when the carrying task reaches ``done``."""

    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    assignee: str = Field(min_length=1)
    description: Optional[str] = None
    priority: Optional[TaskPriority] = None
    tags: Optional[list[str]] = None
    # Placeholder pointing at another entry of the same template batch.
    ref: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


def _next_task(raw: Any) -> NextTask:
    if isinstance(raw, NextTask):
        return raw
    try:
        return NextTask.model_validate(raw)
    except Exception as exc:
        raise ValidationError(f"Invalid next_task: {exc}") from exc


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

@dataclass
class Comment:
    author: str
    text: str
    at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {"author": self.author, "text": self.text, "at": self.at}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Comment":
        return cls(
            author=str(data.get("author") or SYSTEM_AUTHOR),
            text=str(data.get("text") or ""),
            at=str(data.get("at") or data.get("timestamp") or now_iso()),
        )


@dataclass
class Project:
    id: str = field(default_factory=lambda: generate_id("proj"))
    name: str = ""
    status: ProjectStatus = ProjectStatus.ACTIVE
    owner: str = "unknown"
    description: str = ""
    client_view_enabled: bool = False
    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "status": self.status.value,
            "owner": self.owner,
            "description": self.description,
            "client_view_enabled": self.client_view_enabled,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Project":
        d = _rename_legacy(data)
        return cls(
            id=str(d.get("id") or generate_id("proj")),
            name=str(d.get("name") or ""),
            status=_enum(ProjectStatus, d.get("status"), ProjectStatus.ACTIVE),
            owner=str(d.get("owner") or "unknown"),
            description=str(d.get("description") or ""),
            client_view_enabled=bool(d.get("client_view_enabled", False)),
            created_at=str(d.get("created_at") or now_iso()),
            updated_at=str(d.get("updated_at") or now_iso()),
        )

    def apply(self, changes: dict[str, Any]) -> None:
        _apply_changes(self, changes, {
            "status": _strict_enum(ProjectStatus, "status"),
            "client_view_enabled": _strict_bool("client_view_enabled"),
        })
        self.updated_at = now_iso()


@dataclass
class Task:
    """A unit of work on the board.

    The ``started_at``, ``completed_at``, ``failed_at`` and ``duration_ms``
    metrics are written by the lifecycle engine when the task moves; a direct
    field update can still overwrite them.
    """

    # Identity
    id: str = field(default_factory=lambda: generate_id("task"))
    project_id: str = ""
    title: str = ""
    description: str = ""

    # Lifecycle
    column: TaskColumn = TaskColumn.BACKLOG
    priority: TaskPriority = TaskPriority.MEDIUM
    requires_review: bool = False
    max_retries: int = DEFAULT_MAX_RETRIES
    retry_count: int = 0

    # Assignment
    assignee: str = ""
    created_by: str = "unknown"

    # Relations
    tags: list[str] = field(default_factory=list)
    dependencies: list[str] = field(default_factory=list)
    comments: list[Comment] = field(default_factory=list)
    next_task: Optional[NextTask] = None
    parent_task_id: Optional[str] = None

    # Advisory
    deadline: Optional[str] = None
    input_path: Optional[str] = None
    output_path: Optional[str] = None

    # Metrics
    started_at: Optional[str] = None
    completed_at: Optional[str] = None
    failed_at: Optional[str] = None
    duration_ms: Optional[int] = None

    created_at: str = field(default_factory=now_iso)
    updated_at: str = field(default_factory=now_iso)

    @property
    def status(self) -> TaskColumn:
        """Legacy alias of :attr:`column`."""
        return self.column

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "title": self.title,
            "description": self.description,
            "column": self.column.value,
            "status": self.column.value,
            "priority": self.priority.value,
            "requires_review": self.requires_review,
            "max_retries": self.max_retries,
            "retry_count": self.retry_count,
            "assignee": self.assignee,
            "created_by": self.created_by,
            "tags": list(self.tags),
            "dependencies": list(self.dependencies),
            "comments": [c.to_dict() for c in self.comments],
            "next_task": self.next_task.to_dict() if self.next_task else None,
            "parent_task_id": self.parent_task_id,
            "deadline": self.deadline,
            "input_path": self.input_path,
            "output_path": self.output_path,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "failed_at": self.failed_at,
            "duration_ms": self.duration_ms,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        d = _rename_legacy(data)
        raw_next = d.get("next_task")
        duration = d.get("duration_ms")
        return cls(
            id=str(d.get("id") or generate_id("task")),
            project_id=str(d.get("project_id") or ""),
            title=str(d.get("title") or ""),
            description=str(d.get("description") or ""),
            column=_enum(TaskColumn, d.get("column") or d.get("status"), TaskColumn.BACKLOG),
            priority=_enum(TaskPriority, d.get("priority"), TaskPriority.MEDIUM),
            requires_review=bool(d.get("requires_review", False)),
            max_retries=_int(d.get("max_retries"), DEFAULT_MAX_RETRIES),
            retry_count=_int(d.get("retry_count"), 0),
            assignee=str(d.get("assignee") or ""),
            created_by=str(d.get("created_by") or "unknown"),
            tags=list(d.get("tags") or []),
            dependencies=list(d.get("dependencies") or []),
            comments=[Comment.from_dict(c) for c in list(d.get("comments") or []) if isinstance(c, dict)],
            next_task=NextTask.model_validate(raw_next) if isinstance(raw_next, dict) else None,
            parent_task_id=d.get("parent_task_id"),
            deadline=d.get("deadline"),
            input_path=d.get("input_path"),
            output_path=d.get("output_path"),
            started_at=d.get("started_at"),
            completed_at=d.get("completed_at"),
            failed_at=d.get("failed_at"),
            duration_ms=int(duration) if duration is not None else None,
            created_at=str(d.get("created_at") or now_iso()),
            updated_at=str(d.get("updated_at") or now_iso()),
        )

    # ------------------------------------------------------------------
    # Mutation helpers
    # ------------------------------------------------------------------

    def apply(self, changes: dict[str, Any]) -> None:
        """Merge *changes* into the task.

        ``column`` wins when both ``column`` and ``status`` are given; a lone
        ``status`` drives ``column``.
        """
        changes = dict(changes)
        legacy_status = changes.pop("status", None)
        if "column" not in changes and legacy_status is not None:
            changes["column"] = legacy_status
        if "column" in changes:
            changes["column"] = parse_column(changes["column"])
        _apply_changes(self, changes, {
            "priority": _strict_enum(TaskPriority, "priority"),
            "tags": _str_list,
            "dependencies": _str_list,
            "next_task": _next_task,
            "max_retries": _strict_int("max_retries"),
            "retry_count": _strict_int("retry_count"),
            "duration_ms": _strict_int("duration_ms"),
            "requires_review": _strict_bool("requires_review"),
        })
        self.touch()

    def touch(self) -> None:
        self.updated_at = now_iso()

    def add_comment(self, author: str, text: str) -> Comment:
        comment = Comment(author=author, text=text)
        self.comments.append(comment)
        self.touch()
        return comment

    def remove_dependency(self, task_id: str) -> bool:
        if task_id not in self.dependencies:
            return False
        self.dependencies = [d for d in self.dependencies if d != task_id]
        self.touch()
        return True


@dataclass
class Agent:
    id: str = field(default_factory=lambda: generate_id("agent"))
    name: str = ""
    role: str = "worker"
    status: AgentStatus = AgentStatus.ONLINE
    capabilities: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role,
            "status": self.status.value,
            "capabilities": list(self.capabilities),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Agent":
        return cls(
            id=str(data.get("id") or generate_id("agent")),
            name=str(data.get("name") or ""),
            role=str(data.get("role") or "worker"),
            status=_enum(AgentStatus, data.get("status"), AgentStatus.ONLINE),
            capabilities=list(data.get("capabilities") or []),
        )

    def apply(self, changes: dict[str, Any]) -> None:
        _apply_changes(self, changes, {
            "status": _strict_enum(AgentStatus, "status"),
            "capabilities": _str_list,
        })


# ---------------------------------------------------------------------------
# Legacy key migration
# ---------------------------------------------------------------------------

# Boards written by the earlier service used camelCase keys.
_LEGACY_KEYS = {
    "projectId": "project_id",
    "createdBy": "created_by",
    "nextTask": "next_task",
    "parentTaskId": "parent_task_id",
    "inputPath": "input_path",
    "outputPath": "output_path",
    "startedAt": "started_at",
    "completedAt": "completed_at",
    "failedAt": "failed_at",
    "retryCount": "retry_count",
    "maxRetries": "max_retries",
    "requiresReview": "requires_review",
    "durationMs": "duration_ms",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
    "clientViewEnabled": "client_view_enabled",
}


def _rename_legacy(data: dict[str, Any]) -> dict[str, Any]:
    d = dict(data)
    for old, new in _LEGACY_KEYS.items():
        if old in d and new not in d:
            d[new] = d.pop(old)
    return d
