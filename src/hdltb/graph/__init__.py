"""Dependency-graph task execution."""

from .executor import TaskGraphExecutor, run_graph
from .models import GraphValidationError, Task, TaskAction, TaskGraph, TaskState

__all__ = [
    "GraphValidationError",
    "Task",
    "TaskAction",
    "TaskGraph",
    "TaskGraphExecutor",
    "TaskState",
    "run_graph",
]
