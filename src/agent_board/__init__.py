"""Provide the public `agent_board` package exports."""

from __future__ import annotations

from .audit import AuditEntry, AuditLedger
from .config import BoardConfig, load_board_config
from .domain import Agent, NextTask, Project, Task, TaskColumn, TaskPriority
from .engine import LifecycleEngine, MoveResult
from .service import BoardService
from .storage import Store

__all__ = [
    "Agent",
    "AuditEntry",
    "AuditLedger",
    "BoardConfig",
    "BoardService",
    "LifecycleEngine",
    "MoveResult",
    "NextTask",
    "Project",
    "Store",
    "Task",
    "TaskColumn",
    "TaskPriority",
    "load_board_config",
]
