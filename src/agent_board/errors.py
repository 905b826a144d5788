"""Exception taxonomy for board operations.

Every error carries a ``to_dict()`` payload shaped like the board HTTP API
responses (``{"error": ...}`` plus optional machine-readable keys) so an
adapter can serialize failures without inspecting the exception type.
"""

from __future__ import annotations

from typing import Any, NamedTuple, Optional


class BoardError(Exception):
    """Base class for all board errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.message}


class ValidationError(BoardError):
    """Caller supplied a malformed value (bad column, missing field)."""


class NotFoundError(BoardError):
    def __init__(self, entity: str, entity_id: str) -> None:
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(BoardError):
    """An entity with the same id already exists."""


class CycleError(ValidationError):
    def __init__(self, task_id: str, dependencies: list[str]) -> None:
        super().__init__("Circular dependency detected")
        self.task_id = task_id
        self.dependencies = list(dependencies)


class ForbiddenError(BoardError):
    """The requested projection is disabled for this entity."""


class GateBlockedError(BoardError):
    """A transition precondition is not met; retry once it clears."""


class Blocker(NamedTuple):
    id: str
    title: str
    column: str


class DependencyBlockedError(GateBlockedError):
    def __init__(self, task_id: str, blockers: list[Blocker]) -> None:
        listed = ", ".join(f'"{b.title}" ({b.id}, status: {b.column})' for b in blockers)
        super().__init__(f"Blocked by unresolved dependencies: {listed}")
        self.task_id = task_id
        self.blockers = list(blockers)

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["blockers"] = [b._asdict() for b in self.blockers]
        return payload


class ReviewRequiredError(GateBlockedError):
    requires_review = True

    def __init__(self, task_id: str) -> None:
        super().__init__("Quality gate: this task requires review before done. Move to 'review' first.")
        self.task_id = task_id

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["requiresReview"] = True
        return payload


class StorageCorruptionError(BoardError):
    """A collection file exists but cannot be parsed."""

    def __init__(self, path: Any, reason: Optional[str] = None) -> None:
        detail = f": {reason}" if reason else ""
        super().__init__(f"Corrupt collection file {path}{detail}")
        self.path = path
