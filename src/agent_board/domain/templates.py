"""Typed task templates used to seed a project with a batch of tasks.

Templates are validated once, when parsed, so applying them never has to
guess at the shape of an entry.  Entries may name themselves with ``ref``
and point a ``next_task`` at another entry's ``ref``; the service resolves
those placeholders after the batch has been created.
"""

from __future__ import annotations

from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from ..errors import ValidationError
from .models import NextTask, TaskColumn, TaskPriority


class TemplateLink(BaseModel):
    """Bare pointer at a sibling entry, resolved once the batch exists."""

    model_config = ConfigDict(extra="forbid")

    ref: str = Field(min_length=1)


class TaskTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(min_length=1)
    description: str = ""
    column: TaskColumn = TaskColumn.BACKLOG
    assignee: Optional[str] = None
    priority: TaskPriority = TaskPriority.MEDIUM
    tags: list[str] = Field(default_factory=list)
    next_task: Optional[Union[NextTask, TemplateLink]] = None
    ref: Optional[str] = None
    requires_review: bool = False
    max_retries: Optional[int] = Field(default=None, ge=0)
    input_path: Optional[str] = None
    output_path: Optional[str] = None


_TEMPLATE_LIST = TypeAdapter(list[TaskTemplate])


def parse_templates(raw: Iterable[Any]) -> list[TaskTemplate]:
    """Validate a batch of template entries (dicts or :class:`TaskTemplate`)."""
    entries = list(raw)
    if not entries:
        raise ValidationError("Provide at least one task template")
    try:
        return _TEMPLATE_LIST.validate_python(
            [e.model_dump() if isinstance(e, TaskTemplate) else e for e in entries]
        )
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid task template: {exc}") from exc
