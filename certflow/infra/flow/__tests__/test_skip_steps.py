"""
Tests for skipping steps of a run.
"""
import logging

import pytest

from certflow.infra.flow import TaskState
from conftest import (
    build_flow,
    create_recording_task,
    messages_for,
)


@pytest.mark.asyncio
async def test_skipped_task_satisfies_dependents(execution_log, events):
    """
    Test: Skipping `extract` lets `load` run without it.

    Verifies:
    - The skipped body never runs
    - The skipped task is DONE and flagged skipped
    - A "step skipped" event is emitted and no "step started"
    - Skipped tasks do not count as completed
    """
    flow = build_flow("skippy", [
        {"id": "extract", "fn": create_recording_task("extract", execution_log)},
        {"id": "load", "fn": create_recording_task("load", execution_log), "depends_on": ["extract"]},
    ], sinks=[events.append])

    result = await flow.run(skip=["extract"])

    assert execution_log == ["load"]
    task = flow.get_task("extract")
    assert task.state == TaskState.DONE
    assert task.skipped
    assert task.attempts == 0
    assert result.skipped == ["extract"]
    assert result.tasks_completed == 1
    assert messages_for(events, step="extract") == ["step skipped"]


@pytest.mark.asyncio
async def test_unknown_skip_name_is_ignored(execution_log, caplog):
    flow = build_flow("skip_unknown", [
        {"id": "a", "fn": create_recording_task("a", execution_log)},
    ])

    with caplog.at_level(logging.WARNING, logger="certflow.infra.flow.flow"):
        result = await flow.run(skip=["nope"])

    assert execution_log == ["a"]
    assert result.skipped == []
    assert "nope" in caplog.text


@pytest.mark.asyncio
async def test_skip_every_task(execution_log):
    flow = build_flow("skip_all", [
        {"id": "a", "fn": create_recording_task("a", execution_log)},
        {"id": "b", "fn": create_recording_task("b", execution_log), "depends_on": ["a"]},
    ])

    result = await flow.run(skip=["b", "a"])

    assert execution_log == []
    assert result.success
    assert result.skipped == ["a", "b"]
    assert result.tasks_completed == 0
