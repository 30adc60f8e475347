"""
Tests for RunContext and cooperative cancellation of runs.

This module tests:
- Cancellation and deadline state of a context
- Parent/child propagation
- Interruptible sleeps
- Runs that are cancelled before they start, between waves, or from outside
"""
import asyncio
import time

import pytest

from certflow.infra.flow import FlowCancelledError, RunContext
from conftest import (
    assert_task_done,
    assert_task_pending,
    build_flow,
    create_delayed_task,
    create_recording_task,
    messages_for,
)


# ============================================================
#                   CONTEXT STATE
# ============================================================

def test_background_context_is_never_done():
    ctx = RunContext.background()

    assert not ctx.done
    assert ctx.reason is None
    assert ctx.remaining() is None
    ctx.check("anything")


def test_cancel_sets_reason_and_check_raises():
    ctx = RunContext()
    ctx.cancel()

    assert ctx.cancelled
    assert ctx.reason == FlowCancelledError.CANCELLED
    with pytest.raises(FlowCancelledError) as exc_info:
        ctx.check("pipeline coc")
    assert str(exc_info.value) == "pipeline coc cancelled"
    assert not exc_info.value.deadline_exceeded


def test_expired_deadline():
    ctx = RunContext(timeout=0)

    assert ctx.expired
    assert ctx.remaining() == 0.0
    with pytest.raises(FlowCancelledError) as exc_info:
        ctx.check("pipeline coc")
    assert exc_info.value.deadline_exceeded


def test_child_inherits_parent_cancellation_and_deadline():
    parent = RunContext(timeout=60)
    child = RunContext(timeout=3600, parent=parent)

    assert child.deadline == parent.deadline
    parent.cancel()
    assert child.cancelled
    assert not RunContext(parent=RunContext()).cancelled


# ============================================================
#                   SLEEP
# ============================================================

@pytest.mark.asyncio
async def test_sleep_completes_when_not_cancelled():
    ctx = RunContext()

    interrupted = await ctx.sleep(0.01)

    assert interrupted is False


@pytest.mark.asyncio
async def test_sleep_wakes_on_cancel():
    ctx = RunContext()
    asyncio.get_running_loop().call_later(0.05, ctx.cancel)

    started = time.monotonic()
    interrupted = await ctx.sleep(10)

    assert interrupted is True
    assert time.monotonic() - started < 2


@pytest.mark.asyncio
async def test_sleep_wakes_at_deadline():
    ctx = RunContext(timeout=0.05)

    started = time.monotonic()
    interrupted = await ctx.sleep(10)

    assert interrupted is True
    assert time.monotonic() - started < 2


@pytest.mark.asyncio
async def test_child_sleep_wakes_on_parent_cancel():
    parent = RunContext()
    child = RunContext(parent=parent)
    asyncio.get_running_loop().call_later(0.05, parent.cancel)

    assert await child.sleep(10) is True


# ============================================================
#                   CANCELLED RUNS
# ============================================================

@pytest.mark.asyncio
async def test_cancelled_before_run_starts_no_task(execution_log, events):
    """
    Test: A context cancelled before the run means no task ever starts.

    Verifies:
    - FlowCancelledError is raised
    - Every task is still pending with zero attempts
    - The run still emits a start and exactly one failure event
    """
    flow = build_flow("precancelled", [
        {"id": "a", "fn": create_recording_task("a", execution_log)},
        {"id": "b", "fn": create_recording_task("b", execution_log)},
    ], sinks=[events.append])
    ctx = RunContext()
    ctx.cancel()

    with pytest.raises(FlowCancelledError) as exc_info:
        await flow.run(ctx)

    assert exc_info.value.reason == "cancelled"
    assert execution_log == []
    assert_task_pending(flow, "a")
    assert_task_pending(flow, "b")
    assert messages_for(events) == ["pipeline started", "pipeline failed"]


@pytest.mark.asyncio
async def test_deadline_between_waves(execution_log, events):
    """
    Test: The deadline passes while the first wave runs.

    Verifies:
    - The running task is not preempted and completes
    - The next wave is never launched
    - The error reports an exceeded deadline
    """
    flow = build_flow("deadline", [
        {"id": "slow", "fn": create_delayed_task(150, "slow", execution_log)},
        {"id": "next", "fn": create_recording_task("next", execution_log), "depends_on": ["slow"]},
    ], sinks=[events.append])

    with pytest.raises(FlowCancelledError) as exc_info:
        await flow.run(RunContext(timeout=0.05))

    assert exc_info.value.deadline_exceeded
    assert execution_log == ["slow"]
    assert_task_done(flow, "slow")
    assert_task_pending(flow, "next")
    assert events[-1].message == "pipeline failed"
    assert events[-1].tasks_completed == 1


@pytest.mark.asyncio
async def test_cancel_during_last_wave_fails_the_run(events):
    """
    Test: Cancellation while the final wave runs is reported after the barrier.

    Verifies:
    - The running task completes
    - The run raises FlowCancelledError instead of returning success
    """
    flow = build_flow("last_wave_cancel", [
        {"id": "only", "fn": create_delayed_task(100)},
    ], sinks=[events.append])
    ctx = RunContext()
    asyncio.get_running_loop().call_later(0.02, ctx.cancel)

    with pytest.raises(FlowCancelledError) as exc_info:
        await flow.run(ctx)

    assert exc_info.value.reason == "cancelled"
    assert_task_done(flow, "only")
    assert events[-1].message == "pipeline failed"
    assert events[-1].tasks_completed == 1


@pytest.mark.asyncio
async def test_deadline_during_last_wave_fails_the_run():
    flow = build_flow("last_wave_deadline", [
        {"id": "only", "fn": create_delayed_task(100)},
    ])

    with pytest.raises(FlowCancelledError) as exc_info:
        await flow.run(RunContext(timeout=0.02))

    assert exc_info.value.deadline_exceeded
    assert_task_done(flow, "only")


@pytest.mark.asyncio
async def test_outer_task_cancellation_still_reports_failure(events):
    """
    Test: Cancelling the asyncio task awaiting the run propagates
    CancelledError and still emits exactly one terminal event.
    """
    flow = build_flow("outer_cancel", [
        {"id": "long", "fn": create_delayed_task(10_000)},
    ], sinks=[events.append])

    runner = asyncio.create_task(flow.run())
    await asyncio.sleep(0.05)
    runner.cancel()

    with pytest.raises(asyncio.CancelledError):
        await runner

    terminal = [e for e in events if e.is_terminal]
    assert len(terminal) == 1
    assert terminal[0].message == "pipeline failed"
