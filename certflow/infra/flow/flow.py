# certflow/infra/flow/flow.py
"""
Async task-flow scheduler.

This module provides the dependency graph of named tasks and the wave
executor that drives it to completion:
- Task registration with dependency names
- Ready-set discovery
- Parallel execution of every ready task as one wave
- Bounded retries with cooperative cancellation
- Structured start/finish/step events
"""
from __future__ import annotations

import asyncio
import logging
import time
import uuid
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from certflow.infra.flow.context import RunContext
from certflow.infra.flow.errors import DeadlockError, DuplicateTaskError, FlowCancelledError, FlowError
from certflow.infra.flow.executors import TaskExecutor
from certflow.infra.flow.models import (
    EventSink,
    RetryPolicy,
    RunResult,
    Task,
    TaskState,
    TaskWork,
)
from certflow.infra.flow.reporter import RunReporter

logger = logging.getLogger(__name__)


class Flow:
    """
    A named set of tasks with dependency edges, run wave by wave.

    A flow is built once per execution and consumed by a single `run` call;
    task state is not reset between runs.

    Example:
        ```python
        flow = Flow("etl", retry_policy=RetryPolicy(retries=2))

        flow.add_task("extract", extract)
        flow.add_task("transform", transform, "extract")

        @flow.task("load", depends_on=["transform"])
        async def load():
            ...

        result = await flow.run(RunContext(timeout=60))
        ```
    """

    def __init__(
            self,
            name: str,
            *,
            retry_policy: Optional[RetryPolicy] = None,
            sinks: Iterable[EventSink] = (),
    ):
        """
        Initialize a new flow.

        Args:
            name: Name of the flow, used for logging only
            retry_policy: Default retry policy for tasks registered without one
            sinks: Callables receiving every event emitted by runs of this flow
        """
        self.name = name
        self.retry_policy = retry_policy or RetryPolicy()
        self._sinks: List[EventSink] = list(sinks)

        # Task registry, insertion order is the declared order
        self._tasks: Dict[str, Task] = {}

        # Guards the task-state table during a run
        self._lock = asyncio.Lock()

    # ================================================================
    #                   TASK REGISTRATION (Public API)
    # ================================================================

    def add_task(
            self,
            name: str,
            work: TaskWork,
            *dependencies: str,
            retry_policy: Optional[RetryPolicy] = None,
    ) -> Flow:
        """
        Register a task.

        Dependency names are stored as given; a name that is never registered
        keeps its dependents from ever becoming ready, which the run reports
        as a deadlock.

        Args:
            name: Unique identifier for the task
            work: Zero-argument callable (sync or async) executing the task
            *dependencies: Names of tasks that must be done before this one
            retry_policy: Retry policy overriding the flow default

        Returns:
            Self for method chaining

        Raises:
            DuplicateTaskError: If a task with the same name already exists
        """
        if name in self._tasks:
            raise DuplicateTaskError(self.name, name)
        self._tasks[name] = Task(
            name=name,
            work=work,
            dependencies=tuple(dependencies),
            retry_policy=retry_policy or self.retry_policy,
        )
        return self

    def task(
            self,
            name: str,
            *,
            depends_on: Optional[List[str]] = None,
            retry_policy: Optional[RetryPolicy] = None,
    ) -> Callable[[TaskWork], TaskWork]:
        """
        Decorator to register a task in the flow.

        Example:
            ```python
            @flow.task("render", depends_on=["fetch"])
            async def render():
                ...
            ```
        """

        def decorator(work: TaskWork) -> TaskWork:
            self.add_task(name, work, *(depends_on or []), retry_policy=retry_policy)
            return work

        return decorator

    def has_task(self, name: str) -> bool:
        return name in self._tasks

    def get_task(self, name: str) -> Task:
        """
        Look up a registered task.

        Raises:
            KeyError: If no task has this name
        """
        if name not in self._tasks:
            raise KeyError(f"Task '{name}' not found in flow {self.name}")
        return self._tasks[name]

    @property
    def task_names(self) -> List[str]:
        """Task names in declared order."""
        return list(self._tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    # ================================================================
    #                   GRAPH QUERIES
    # ================================================================

    def find_ready_tasks(self) -> List[Task]:
        """
        Get every task that can start now.

        A task is ready if it is pending and each of its dependency names maps
        to a task in state DONE. The order of the result carries no meaning.

        Returns:
            Ready tasks
        """
        return [
            task
            for task in self._tasks.values()
            if task.state == TaskState.PENDING and self._dependencies_done(task)
        ]

    def all_done(self) -> bool:
        """True iff every registered task is DONE."""
        return all(task.state == TaskState.DONE for task in self._tasks.values())

    def _dependencies_done(self, task: Task) -> bool:
        for dep_name in task.dependencies:
            dependency = self._tasks.get(dep_name)
            if dependency is None or dependency.state != TaskState.DONE:
                return False
        return True

    def _first_error(self, tasks: Iterable[Task]) -> Optional[BaseException]:
        # Ties between simultaneous failures are broken by task name
        failed = sorted((t for t in tasks if t.error is not None), key=lambda t: t.name)
        return failed[0].error if failed else None

    # ================================================================
    #                   EXECUTION
    # ================================================================

    async def run(
            self,
            ctx: Optional[RunContext] = None,
            *,
            skip: Optional[Iterable[str]] = None,
    ) -> RunResult:
        """
        Execute the flow until every task is done or the run fails.

        Args:
            ctx: Cancellation/deadline context (default: never cancelled)
            skip: Names of tasks to mark done without running them

        Returns:
            The run result

        Raises:
            TaskFailedError: If a task exhausted its retries
            FlowCancelledError: If the context was cancelled or expired
            DeadlockError: If pending tasks remain but none can become ready
        """
        ctx = ctx or RunContext.background()
        run_id = str(uuid.uuid4())
        reporter = RunReporter(self.name, run_id, self._sinks)
        executor = TaskExecutor(reporter, self._lock)
        started = time.monotonic()
        completed: List[str] = []

        reporter.run_started(self.task_names)
        skipped = await self._apply_skips(skip, reporter)

        try:
            while True:
                ready = self.find_ready_tasks()
                if not ready:
                    if self.all_done():
                        break
                    error = self._first_error(self._tasks.values())
                    if error is not None:
                        raise error
                    pending = [t.name for t in self._tasks.values() if t.state == TaskState.PENDING]
                    raise DeadlockError(self.name, pending)

                ctx.check(f"pipeline {self.name}")

                async with self._lock:
                    for task in ready:
                        task.state = TaskState.RUNNING

                results = await asyncio.gather(*(executor.execute(task, ctx) for task in ready))
                completed.extend(task.name for task, error in zip(ready, results) if error is None)

                error = self._first_error(ready)
                if error is not None:
                    raise error

                # Every wave ends with a context check, including the last one
                ctx.check(f"pipeline {self.name}")
        except FlowError as e:
            reporter.run_failed(time.monotonic() - started, len(completed), e)
            raise
        except asyncio.CancelledError:
            # The awaiting coroutine itself was cancelled, not the context
            reporter.run_failed(
                time.monotonic() - started,
                len(completed),
                FlowCancelledError(f"pipeline {self.name}"),
            )
            raise

        duration = time.monotonic() - started
        reporter.run_completed(duration, len(completed))
        return RunResult(
            run_id=run_id,
            flow_name=self.name,
            duration=duration,
            tasks_completed=len(completed),
            task_states={name: task.state for name, task in self._tasks.items()},
            skipped=skipped,
        )

    async def _apply_skips(self, skip: Optional[Iterable[str]], reporter: RunReporter) -> List[str]:
        skipped = []
        for name in sorted(set(skip or ())):
            task = self._tasks.get(name)
            if task is None:
                logger.warning(f"Skip requested for unknown task: flow={self.name}, task_id={name}")
                continue
            if task.state != TaskState.PENDING:
                continue
            now = datetime.now()
            async with self._lock:
                task.state = TaskState.DONE
                task.skipped = True
                task.start_date = now
                task.end_date = now
            reporter.task_skipped(name)
            skipped.append(name)
        return skipped
