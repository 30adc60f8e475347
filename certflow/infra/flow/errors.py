"""Error types raised by the task-flow scheduler."""
from __future__ import annotations

from typing import Iterable, Optional


class FlowError(Exception):
    """Base error for the scheduler."""


class DuplicateTaskError(FlowError):
    """Raised when a task name is registered twice in the same flow."""

    def __init__(self, flow_name: str, task_name: str):
        super().__init__(f"flow {flow_name}: task {task_name!r} is already registered")
        self.flow_name = flow_name
        self.task_name = task_name


class TaskFailedError(FlowError):
    """Raised when a task exhausted all of its attempts."""

    def __init__(self, task_name: str, attempts: int, last_error: BaseException):
        super().__init__(f"task {task_name} failed after {attempts} attempts: {last_error}")
        self.task_name = task_name
        self.attempts = attempts
        self.last_error = last_error


class FlowCancelledError(FlowError):
    """Raised when the run context was cancelled or its deadline passed."""

    CANCELLED = "cancelled"
    DEADLINE_EXCEEDED = "deadline exceeded"

    def __init__(self, what: str, reason: str = CANCELLED):
        super().__init__(f"{what} {reason}")
        self.reason = reason

    @property
    def deadline_exceeded(self) -> bool:
        return self.reason == self.DEADLINE_EXCEEDED


class TaskCancelledError(FlowCancelledError):
    """Raised by the retry wrapper when cancellation stops a task."""

    def __init__(self, task_name: str, reason: str = FlowCancelledError.CANCELLED):
        super().__init__(f"task {task_name}", reason)
        self.task_name = task_name


class DeadlockError(FlowError):
    """Raised when pending tasks remain but none can become ready."""

    def __init__(self, flow_name: str, pending: Optional[Iterable[str]] = None):
        self.flow_name = flow_name
        self.pending = sorted(pending or [])
        detail = f" (pending: {', '.join(self.pending)})" if self.pending else ""
        super().__init__(f"pipeline {flow_name}: deadlock detected{detail}")
