from __future__ import annotations

import asyncio

import pytest

from hdltb.graph import GraphValidationError, TaskGraph, TaskGraphExecutor, TaskState


def _run(graph: TaskGraph):
    return asyncio.run(TaskGraphExecutor().run(graph))


def test_runs_every_task_once_and_passes_dependency_results() -> None:
    calls: list[str] = []
    graph = TaskGraph()

    def source(_):
        calls.append("source")
        return 2

    async def double(inputs):
        calls.append("double")
        return inputs["source"] * 2

    async def combine(inputs):
        calls.append("combine")
        return {"sum": inputs["source"] + inputs["double"], "keys": sorted(inputs)}

    graph.add("source", source)
    graph.add("double", double, depends_on=["source"])
    graph.add("combine", combine, depends_on=["source", "double"])

    results = _run(graph)

    assert sorted(calls) == ["combine", "double", "source"]
    assert results == {"source": 2, "double": 4, "combine": {"sum": 6, "keys": ["double", "source"]}}
    assert set(graph.states().values()) == {TaskState.SUCCEEDED}


def test_cycle_fails_validation_before_any_action() -> None:
    calls: list[str] = []
    graph = TaskGraph()
    graph.add("free", lambda _: calls.append("free"))
    graph.add("a", lambda _: calls.append("a"), depends_on=["c"])
    graph.add("b", lambda _: calls.append("b"), depends_on=["a"])
    graph.add("c", lambda _: calls.append("c"), depends_on=["b"])

    with pytest.raises(GraphValidationError, match="cycle"):
        _run(graph)

    assert calls == []
    assert set(graph.states().values()) == {TaskState.PENDING}


def test_unknown_dependency_is_rejected() -> None:
    graph = TaskGraph()
    graph.add("a", lambda _: None, depends_on=["missing"])

    with pytest.raises(GraphValidationError, match="missing"):
        graph.validate()


def test_duplicate_task_names_are_rejected() -> None:
    graph = TaskGraph()
    graph.add("a", lambda _: None)

    with pytest.raises(GraphValidationError):
        graph.add("a", lambda _: None)


def test_validate_returns_topological_order() -> None:
    graph = TaskGraph()
    graph.add("report", lambda _: None, depends_on=["analyze"])
    graph.add("analyze", lambda _: None, depends_on=["compile"])
    graph.add("compile", lambda _: None)

    assert graph.validate() == ["compile", "analyze", "report"]


def test_failed_dependency_stops_dependents() -> None:
    invoked: list[str] = []
    graph = TaskGraph()

    def broken(_):
        invoked.append("a")
        raise ValueError("boom")

    graph.add("a", broken)
    graph.add("b", lambda _: invoked.append("b"), depends_on=["a"])
    graph.add("c", lambda _: invoked.append("c"), depends_on=["b"])

    with pytest.raises(ValueError, match="boom"):
        _run(graph)

    assert invoked == ["a"]
    assert graph["a"].state is TaskState.FAILED
    assert graph["b"].state is TaskState.PENDING
    assert graph["c"].state is TaskState.PENDING


def test_independent_tasks_run_concurrently() -> None:
    graph = TaskGraph()
    events: dict[str, asyncio.Event] = {}

    async def ping(_):
        events.setdefault("ping", asyncio.Event()).set()
        await asyncio.wait_for(events.setdefault("pong", asyncio.Event()).wait(), timeout=1)
        return "ping"

    async def pong(_):
        events.setdefault("pong", asyncio.Event()).set()
        await asyncio.wait_for(events.setdefault("ping", asyncio.Event()).wait(), timeout=1)
        return "pong"

    graph.add("ping", ping)
    graph.add("pong", pong)

    assert _run(graph) == {"ping": "ping", "pong": "pong"}


def test_in_flight_tasks_finish_after_failure_but_nothing_new_starts() -> None:
    finished: list[str] = []
    graph = TaskGraph()

    async def fails_fast(_):
        raise RuntimeError("compile step crashed")

    async def slow(_):
        await asyncio.sleep(0.05)
        finished.append("slow")
        return "slow"

    graph.add("fails_fast", fails_fast)
    graph.add("slow", slow)
    graph.add("after_slow", lambda _: finished.append("after_slow"), depends_on=["slow"])

    with pytest.raises(RuntimeError, match="compile step crashed"):
        _run(graph)

    assert finished == ["slow"]
    assert graph["slow"].state is TaskState.SUCCEEDED
    assert graph["after_slow"].state is TaskState.PENDING


def test_decorator_registers_tasks() -> None:
    graph = TaskGraph()

    @graph.task()
    def files(_):
        return ["a.v"]

    @graph.task("count", depends_on=["files"])
    def count(inputs):
        return len(inputs["files"])

    assert _run(graph) == {"files": ["a.v"], "count": 1}


def test_empty_graph_returns_no_results() -> None:
    assert _run(TaskGraph()) == {}


def test_single_dependency_may_be_a_bare_name() -> None:
    graph = TaskGraph()
    graph.add("files", lambda _: ["a.v"])
    task = graph.add("count", lambda inputs: len(inputs["files"]), depends_on="files")

    assert task.dependencies == frozenset({"files"})
    assert _run(graph) == {"files": ["a.v"], "count": 1}


def test_cancelled_task_fails_the_run_after_draining_siblings() -> None:
    finished: list[str] = []
    graph = TaskGraph()

    async def cancels_itself(_):
        raise asyncio.CancelledError()

    async def slow(_):
        await asyncio.sleep(0.05)
        finished.append("slow")
        return "slow"

    graph.add("cancels_itself", cancels_itself)
    graph.add("slow", slow)
    graph.add("after", lambda _: finished.append("after"), depends_on=["cancels_itself"])

    with pytest.raises(asyncio.CancelledError):
        _run(graph)

    assert finished == ["slow"]
    assert graph["cancels_itself"].state is TaskState.FAILED
    assert graph["slow"].state is TaskState.SUCCEEDED
    assert graph["after"].state is TaskState.PENDING
