"""Task and task graph models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Iterator, Mapping

# Actions may be plain functions or coroutine functions.
TaskAction = Callable[[Mapping[str, Any]], Any]


class GraphValidationError(ValueError):
    """Raised when a task graph references unknown tasks or contains a cycle."""


class TaskState(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(slots=True)
class Task:
    """A named unit of work that runs once all of its dependencies succeeded."""

    name: str
    action: TaskAction
    dependencies: frozenset[str] = field(default_factory=frozenset)
    state: TaskState = TaskState.PENDING


class TaskGraph(Mapping[str, Task]):
    """Mapping of task name to task, built once per run."""

    def __init__(self) -> None:
        self._tasks: dict[str, Task] = {}

    def __getitem__(self, name: str) -> Task:
        return self._tasks[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def add(self, name: str, action: TaskAction, depends_on: Iterable[str] = ()) -> Task:
        """Register a task; names must be unique within the graph.

        A single dependency may be given as a bare task name.
        """

        if isinstance(depends_on, str):
            depends_on = (depends_on,)
        if not name:
            raise GraphValidationError("Task name must not be empty")
        if name in self._tasks:
            raise GraphValidationError(f"Task '{name}' is already defined")
        task = Task(name=name, action=action, dependencies=frozenset(depends_on))
        self._tasks[name] = task
        return task

    def task(self, name: str | None = None, depends_on: Iterable[str] = ()):
        """Decorator form of :meth:`add`."""

        def decorator(fn: TaskAction) -> TaskAction:
            self.add(name or fn.__name__, fn, depends_on)
            return fn

        return decorator

    def ready(self) -> list[Task]:
        """Return pending tasks whose dependencies have all succeeded."""

        return [
            task
            for task in self._tasks.values()
            if task.state is TaskState.PENDING
            and all(self._tasks[dep].state is TaskState.SUCCEEDED for dep in task.dependencies)
        ]

    def validate(self) -> list[str]:
        """Check dependency references and acyclicity.

        Returns the task names in a topological order. Raises
        :class:`GraphValidationError` naming the offending tasks otherwise.
        """

        for task in self._tasks.values():
            missing = sorted(dep for dep in task.dependencies if dep not in self._tasks)
            if missing:
                raise GraphValidationError(
                    f"Task '{task.name}' depends on unknown task(s): {', '.join(missing)}"
                )

        order: list[str] = []
        visiting: list[str] = []
        visited: set[str] = set()

        def visit(name: str) -> None:
            if name in visited:
                return
            if name in visiting:
                cycle = visiting[visiting.index(name):] + [name]
                raise GraphValidationError(f"Dependency cycle detected: {' -> '.join(cycle)}")
            visiting.append(name)
            for dep in sorted(self._tasks[name].dependencies):
                visit(dep)
            visiting.pop()
            visited.add(name)
            order.append(name)

        for name in self._tasks:
            visit(name)
        return order

    def states(self) -> dict[str, TaskState]:
        return {name: task.state for name, task in self._tasks.items()}


__all__ = ["GraphValidationError", "Task", "TaskAction", "TaskGraph", "TaskState"]
