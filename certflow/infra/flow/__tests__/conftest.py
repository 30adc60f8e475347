"""
Pytest configuration and DRY test utilities.

This module provides reusable fixtures, task factories, and helpers
for declarative flow testing.
"""
import asyncio
import threading
import time
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional

import pytest

from certflow.infra.flow import Flow, FlowEvent, RetryPolicy, TaskState


# ============================================================
#                   FIXTURES
# ============================================================

@pytest.fixture
def events() -> List[FlowEvent]:
    """
    Collect every event emitted by flows that use it as a sink.

    Returns:
        List filled in emission order
    """
    return []


@pytest.fixture
def execution_log() -> List[str]:
    """Shared list that task factories append their names to."""
    return []


# ============================================================
#                   TASK FACTORIES (DRY)
# ============================================================

def create_recording_task(name: str, log: List[str]) -> Callable[[], None]:
    """
    Factory: Create a sync task that records its execution.

    Args:
        name: Value appended to the log
        log: Shared execution log

    Example:
        task_fn = create_recording_task("extract", log)
    """
    lock = threading.Lock()

    def task():
        with lock:
            log.append(name)
    return task


def create_delayed_task(delay_ms: int, name: Optional[str] = None, log: Optional[List[str]] = None) -> Callable:
    """
    Factory: Create an async task with a delay.

    Args:
        delay_ms: Delay in milliseconds
        name: Value appended to the log after the delay
        log: Optional shared execution log

    Returns:
        Async task function
    """
    async def task():
        await asyncio.sleep(delay_ms / 1000)
        if log is not None:
            log.append(name)
    return task


def create_blocking_task(delay_ms: int) -> Callable[[], None]:
    """Factory: Create a sync task that blocks its thread for `delay_ms`."""
    def task():
        time.sleep(delay_ms / 1000)
    return task


def create_failing_task(error_msg: str) -> Callable[[], None]:
    """
    Factory: Create a task that always fails.

    Args:
        error_msg: Error message to raise

    Returns:
        Task function that raises ValueError
    """
    def task():
        raise ValueError(error_msg)
    return task


def create_flaky_task(failures: int, error_msg: str = "transient") -> tuple[Callable[[], None], Dict[str, int]]:
    """
    Factory: Create an async task that fails `failures` times, then succeeds.

    Returns:
        Tuple of (task_function, counter); counter["calls"] counts invocations

    Example:
        task_fn, counter = create_flaky_task(failures=2)
    """
    counter = {"calls": 0}

    async def task():
        counter["calls"] += 1
        if counter["calls"] <= failures:
            raise RuntimeError(f"{error_msg} #{counter['calls']}")
    return task, counter


# ============================================================
#                   FLOW HELPERS (DRY)
# ============================================================

def no_delay(retries: int = 0) -> RetryPolicy:
    """Retry policy without waiting between attempts."""
    return RetryPolicy(retries=retries, delay=timedelta(0))


def build_flow(
    flow_name: str,
    tasks_spec: List[Dict[str, Any]],
    sinks: Optional[List[Callable[[FlowEvent], None]]] = None,
    retry_policy: Optional[RetryPolicy] = None,
) -> Flow:
    """
    Build a flow from a declarative specification.

    Args:
        flow_name: Name of the flow
        tasks_spec: List of task specifications, each containing:
            - id: Task name (required)
            - fn: Task body (required)
            - depends_on: List of upstream task names (optional)
            - retry_policy: Per-task retry policy (optional)
        sinks: Event sinks (e.g. `events.append`)
        retry_policy: Flow default policy (default: one attempt, no delay)

    Returns:
        Configured Flow instance

    Example:
        flow = build_flow("etl", [
            {"id": "extract", "fn": create_recording_task("extract", log)},
            {"id": "load", "fn": create_recording_task("load", log), "depends_on": ["extract"]},
        ])
    """
    flow = Flow(flow_name, retry_policy=retry_policy or no_delay(), sinks=sinks or [])
    for spec in tasks_spec:
        flow.add_task(
            spec["id"],
            spec["fn"],
            *spec.get("depends_on", []),
            retry_policy=spec.get("retry_policy"),
        )
    return flow


def messages_for(events: List[FlowEvent], step: Optional[str] = None) -> List[str]:
    """Event messages in emission order, optionally for one step only."""
    return [str(e.message) for e in events if step is None or e.step == step]


# ============================================================
#                   ASSERTION HELPERS
# ============================================================

def assert_task_done(flow: Flow, task_name: str, attempts: Optional[int] = None):
    """
    Assert that a task completed.

    Args:
        flow: Flow after the run
        task_name: Name of task to check
        attempts: Optional expected number of attempts
    """
    task = flow.get_task(task_name)
    assert task.state == TaskState.DONE, (
        f"Task {task_name} expected DONE, got {task.state}"
    )
    if attempts is not None:
        assert task.attempts == attempts, (
            f"Task {task_name} expected {attempts} attempts, got {task.attempts}"
        )


def assert_task_failed(flow: Flow, task_name: str, error_contains: Optional[str] = None):
    """
    Assert that a task failed.

    Args:
        flow: Flow after the run
        task_name: Name of task to check
        error_contains: Optional substring to check in the recorded error
    """
    task = flow.get_task(task_name)
    assert task.state == TaskState.FAILED, (
        f"Task {task_name} expected FAILED, got {task.state}"
    )
    if error_contains:
        assert error_contains in str(task.error), (
            f"Task {task_name} error should contain '{error_contains}', got '{task.error}'"
        )


def assert_task_pending(flow: Flow, task_name: str):
    """Assert that a task never started."""
    task = flow.get_task(task_name)
    assert task.state == TaskState.PENDING, (
        f"Task {task_name} expected PENDING, got {task.state}"
    )
    assert task.attempts == 0
