"""Taskflow - task workflow and analytics engine."""

from .config import Settings
from .manager import TaskManager
from .models import Query, Task, TaskStats
from .pipeline import MutationPipeline
from .store import TaskStore

__all__ = [
    "TaskManager",
    "MutationPipeline",
    "TaskStore",
    "Task",
    "Query",
    "TaskStats",
    "Settings",
]
