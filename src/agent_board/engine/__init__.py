"""Task lifecycle engine and dependency graph checks."""

from .graph import dependency_view, dependents_of, would_cycle
from .lifecycle import LifecycleEngine, MoveResult

__all__ = ["LifecycleEngine", "MoveResult", "dependency_view", "dependents_of", "would_cycle"]
