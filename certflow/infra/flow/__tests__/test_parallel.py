"""
Tests for parallel execution within a wave.

This module tests that every ready task of a wave runs concurrently, for
both async and blocking sync bodies, and that a wave is a barrier.
"""
import time

import pytest

from conftest import (
    build_flow,
    create_blocking_task,
    create_delayed_task,
)


@pytest.mark.asyncio
@pytest.mark.parametrize("num_tasks", [2, 3, 5])
async def test_independent_async_tasks_overlap(num_tasks):
    """
    Test: N independent 200ms async tasks finish in about one task's time.
    """
    flow = build_flow(f"parallel_{num_tasks}", [
        {"id": f"task_{i}", "fn": create_delayed_task(200)}
        for i in range(num_tasks)
    ])

    started = time.monotonic()
    result = await flow.run()
    elapsed = time.monotonic() - started

    assert result.tasks_completed == num_tasks
    assert elapsed < 0.2 * num_tasks - 0.1


@pytest.mark.asyncio
async def test_blocking_sync_tasks_overlap():
    """
    Test: Sync bodies run in worker threads, so blocking sleeps overlap.
    """
    flow = build_flow("blocking", [
        {"id": f"task_{i}", "fn": create_blocking_task(200)}
        for i in range(3)
    ])

    started = time.monotonic()
    await flow.run()
    elapsed = time.monotonic() - started

    assert elapsed < 0.5


@pytest.mark.asyncio
async def test_wave_is_a_barrier(execution_log):
    """
    Test: A task waits for its whole predecessor wave, not just its own dependencies.

    Verifies:
    - `child` depends only on `fast`
    - `child` still starts after `slow`, which shares fast's wave
    """
    flow = build_flow("barrier", [
        {"id": "fast", "fn": create_delayed_task(10, "fast", execution_log)},
        {"id": "slow", "fn": create_delayed_task(200, "slow", execution_log)},
        {"id": "child", "fn": create_delayed_task(0, "child", execution_log), "depends_on": ["fast"]},
    ])

    await flow.run()

    assert execution_log == ["fast", "slow", "child"]


@pytest.mark.asyncio
async def test_fan_out_after_single_root():
    """
    Test: root -> 4 x 150ms branches takes about two steps, not five.
    """
    specs = [{"id": "root", "fn": create_delayed_task(10)}]
    specs += [
        {"id": f"branch_{i}", "fn": create_delayed_task(150), "depends_on": ["root"]}
        for i in range(4)
    ]
    flow = build_flow("fan_out", specs)

    started = time.monotonic()
    result = await flow.run()
    elapsed = time.monotonic() - started

    assert result.tasks_completed == 5
    assert elapsed < 0.45
