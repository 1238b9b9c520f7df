"""Concurrent dependency-graph executor."""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Mapping

from .models import Task, TaskGraph, TaskState

logger = logging.getLogger(__name__)


class TaskGraphExecutor:
    """Run every task of a graph once, in dependency order.

    Tasks whose dependencies have all succeeded are launched together on the
    running event loop. The first failure stops new launches; tasks already
    in flight are awaited, their results dropped, and the original exception
    is re-raised to the caller. Nothing is retried or rolled back.
    """

    async def run(self, graph: TaskGraph) -> dict[str, Any]:
        graph.validate()

        results: dict[str, Any] = {}
        running: dict[asyncio.Task[Any], str] = {}
        failure: BaseException | None = None

        while True:
            if failure is None:
                for task in graph.ready():
                    task.state = TaskState.RUNNING
                    inputs = {dep: results[dep] for dep in task.dependencies}
                    logger.debug("Starting task %s", task.name, extra={"task": task.name})
                    running[asyncio.ensure_future(self._invoke(task, inputs))] = task.name

            if not running:
                break

            done, _ = await asyncio.wait(running, return_when=asyncio.FIRST_COMPLETED)
            for future in done:
                task = graph[running.pop(future)]
                if future.cancelled():
                    error: BaseException | None = asyncio.CancelledError(
                        f"Task '{task.name}' was cancelled"
                    )
                else:
                    error = future.exception()
                if error is not None:
                    task.state = TaskState.FAILED
                    if failure is None:
                        failure = error
                        logger.error(
                            "Task %s failed: %s",
                            task.name,
                            error,
                            extra={"task": task.name, "in_flight": sorted(running.values())},
                        )
                    continue

                task.state = TaskState.SUCCEEDED
                if failure is None:
                    results[task.name] = future.result()
                    logger.debug("Finished task %s", task.name, extra={"task": task.name})

        if failure is not None:
            raise failure
        return results

    @staticmethod
    async def _invoke(task: Task, inputs: Mapping[str, Any]) -> Any:
        result = task.action(inputs)
        if inspect.isawaitable(result):
            result = await result
        return result


async def run_graph(graph: TaskGraph) -> dict[str, Any]:
    """Convenience wrapper around :meth:`TaskGraphExecutor.run`."""

    return await TaskGraphExecutor().run(graph)


__all__ = ["TaskGraphExecutor", "run_graph"]
