"""Append-only audit ledger stored as JSON lines.

Each mutation accepted at the service boundary appends one immutable
:class:`AuditEntry`.  Appends use a single ``write`` on an ``O_APPEND``
descriptor and take no lock, so they never wait on collection writers.
Queries replay the whole file; that is linear in ledger size.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from .constants import DEFAULT_AUDIT_LIMIT
from .io_utils import _append_line
from .utils import now_iso


@dataclass(frozen=True)
class AuditEntry:
    timestamp: str
    actor_id: str
    action: str
    task_id: Optional[str] = None
    project_id: Optional[str] = None
    from_column: Optional[str] = None
    to_column: Optional[str] = None
    details: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "timestamp": self.timestamp,
            "actor_id": self.actor_id,
            "action": self.action,
        }
        if self.task_id is not None:
            data["task_id"] = self.task_id
        if self.project_id is not None:
            data["project_id"] = self.project_id
        if self.from_column is not None:
            data["from"] = self.from_column
        if self.to_column is not None:
            data["to"] = self.to_column
        data["details"] = self.details
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AuditEntry":
        return cls(
            timestamp=str(data.get("timestamp") or ""),
            actor_id=str(data.get("actor_id") or data.get("agentId") or "unknown"),
            action=str(data.get("action") or ""),
            task_id=data.get("task_id") or data.get("taskId"),
            project_id=data.get("project_id") or data.get("projectId"),
            from_column=data.get("from"),
            to_column=data.get("to"),
            details=str(data.get("details") or ""),
        )


class AuditLedger:
    def __init__(self, path: Path) -> None:
        self.path = path

    def append(self, entry: AuditEntry) -> AuditEntry:
        _append_line(self.path, json.dumps(entry.to_dict(), ensure_ascii=False))
        return entry

    def record(
        self,
        actor_id: str,
        action: str,
        *,
        task_id: Optional[str] = None,
        project_id: Optional[str] = None,
        from_column: Optional[str] = None,
        to_column: Optional[str] = None,
        details: str = "",
    ) -> AuditEntry:
        """Build an entry stamped with the current time and append it."""
        return self.append(
            AuditEntry(
                timestamp=now_iso(),
                actor_id=actor_id,
                action=action,
                task_id=task_id,
                project_id=project_id,
                from_column=from_column,
                to_column=to_column,
                details=details,
            )
        )

    def _replay(self) -> list[AuditEntry]:
        if not self.path.exists():
            return []
        entries: list[AuditEntry] = []
        with self.path.open("r", encoding="utf-8") as handle:
            for lineno, line in enumerate(handle, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    parsed = json.loads(line)
                except json.JSONDecodeError:
                    logger.warning("Skipping malformed audit line {} in {}", lineno, self.path)
                    continue
                if isinstance(parsed, dict):
                    entries.append(AuditEntry.from_dict(parsed))
        return entries

    def query(
        self,
        *,
        task_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        limit: Optional[int] = DEFAULT_AUDIT_LIMIT,
    ) -> list[AuditEntry]:
        """Return matching entries newest first, truncated to *limit* when positive."""
        entries = self._replay()
        if task_id:
            entries = [e for e in entries if e.task_id == task_id]
        if actor_id:
            entries = [e for e in entries if e.actor_id == actor_id]
        entries.reverse()
        if limit and limit > 0:
            entries = entries[:limit]
        return entries
