# certflow/infra/flow/executors.py
"""
Execution engine for flow tasks.

This module contains the retry wrapper around a single task body and the
per-task lifecycle handling (state transitions and step events) used by the
wave executor in `Flow.run`.
"""
from __future__ import annotations

import asyncio
import inspect
import logging
import traceback
from datetime import datetime
from typing import Any, Optional

from certflow.infra.flow.context import RunContext
from certflow.infra.flow.errors import FlowCancelledError, TaskCancelledError, TaskFailedError
from certflow.infra.flow.models import Task, TaskState, TaskWork
from certflow.infra.flow.reporter import RunReporter

# Configure logger for executors
logger = logging.getLogger(__name__)


class TaskExecutor:
    """
    Runs tasks with bounded retries and cooperative cancellation.

    One executor is shared by every member of a run; each task is only ever
    touched by one coroutine at a time, and shared state writes go through
    the run lock.
    """

    def __init__(self, reporter: RunReporter, run_lock: asyncio.Lock):
        """
        Initialize the task executor.

        Args:
            reporter: Reporter for step-level events
            run_lock: Lock guarding the flow's task-state table
        """
        self.reporter = reporter
        self.run_lock = run_lock

    async def _invoke_task_function(self, work: TaskWork) -> Any:
        """
        Invoke a task body, handling both sync and async callables.

        Sync bodies run in a worker thread so that blocking work in the same
        wave still overlaps.

        Args:
            work: The callable to invoke

        Returns:
            The result of the callable
        """
        if inspect.iscoroutinefunction(work):
            return await work()
        result = await asyncio.to_thread(work)
        if inspect.isawaitable(result):
            return await result
        return result

    async def _update_task_state(self, task: Task, state: TaskState, **kwargs) -> None:
        """
        Update task state with lock protection.

        Args:
            task: The task to update
            state: New state for the task
            **kwargs: Additional task attributes to update
        """
        async with self.run_lock:
            task.state = state
            for key, value in kwargs.items():
                setattr(task, key, value)

    async def run_with_retry(self, task: Task, ctx: RunContext) -> None:
        """
        Execute a task body with the task's retry policy.

        Args:
            task: The task to run
            ctx: Run context checked before every attempt and during delays

        Raises:
            TaskCancelledError: If the context is done before an attempt or during a delay
            TaskFailedError: If every attempt failed (chained to the last error)
        """
        policy = task.retry_policy
        last_error: Optional[Exception] = None

        for attempt in range(1, policy.max_attempts + 1):
            reason = ctx.reason
            if reason is not None:
                raise TaskCancelledError(task.name, reason) from last_error

            async with self.run_lock:
                task.attempts = attempt

            try:
                await self._invoke_task_function(task.work)
                return
            except Exception as e:
                last_error = e
                logger.debug(f"Full traceback for {self.reporter.run_id}::{task.name}:\n{traceback.format_exc()}")

            if attempt == policy.max_attempts:
                break

            if policy.delay_seconds > 0 and await ctx.sleep(policy.delay_seconds):
                raise TaskCancelledError(task.name, ctx.reason) from last_error
            self.reporter.task_retrying(task.name, attempt, last_error)

        raise TaskFailedError(task.name, policy.max_attempts, last_error) from last_error

    async def execute(self, task: Task, ctx: RunContext) -> Optional[FlowCancelledError | TaskFailedError]:
        """
        Run one wave member to a terminal state.

        The task must already be marked RUNNING by the caller.

        Args:
            task: The task to execute
            ctx: Run context

        Returns:
            None on success, otherwise the error recorded on the task
        """
        start_date = datetime.now()
        async with self.run_lock:
            task.start_date = start_date
        self.reporter.task_started(task.name)

        try:
            await self.run_with_retry(task, ctx)
        except (TaskFailedError, FlowCancelledError) as e:
            end_date = datetime.now()
            await self._update_task_state(task, TaskState.FAILED, error=e, end_date=end_date)
            self.reporter.task_failed(
                task.name,
                (end_date - start_date).total_seconds(),
                e,
                attempt=task.attempts or None,
            )
            return e

        end_date = datetime.now()
        await self._update_task_state(task, TaskState.DONE, end_date=end_date)
        self.reporter.task_completed(task.name, (end_date - start_date).total_seconds(), task.attempts)
        return None
