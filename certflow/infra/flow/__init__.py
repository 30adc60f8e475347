"""
Async task-flow scheduler.

Main exports:
- Flow: Dependency graph of named tasks, run wave by wave
- RunContext: Cancellation and deadline context for a run
- RetryPolicy: Bounded retry configuration
- TaskState: Task lifecycle states

Errors:
- FlowError and its subclasses (TaskFailedError, FlowCancelledError,
  TaskCancelledError, DeadlockError, DuplicateTaskError)
"""

from certflow.infra.flow.context import RunContext
from certflow.infra.flow.errors import (
    DeadlockError,
    DuplicateTaskError,
    FlowCancelledError,
    FlowError,
    TaskCancelledError,
    TaskFailedError,
)
from certflow.infra.flow.flow import Flow
from certflow.infra.flow.models import (
    EventMessage,
    EventSink,
    FlowEvent,
    RetryPolicy,
    RunResult,
    Severity,
    Task,
    TaskState,
)
from certflow.infra.flow.reporter import RunReporter

__all__ = [
    # Main classes
    "Flow",
    "RunContext",
    "RunReporter",
    # States and types
    "TaskState",
    "Severity",
    "EventMessage",
    "EventSink",
    # Data models
    "Task",
    "RetryPolicy",
    "RunResult",
    "FlowEvent",
    # Errors
    "FlowError",
    "DuplicateTaskError",
    "TaskFailedError",
    "FlowCancelledError",
    "TaskCancelledError",
    "DeadlockError",
]
