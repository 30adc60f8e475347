# certflow/infra/flow/models.py
"""
Core data models and types for the task-flow scheduler.

This module contains the dataclasses, enums and type aliases shared by the
flow, the executor and the reporter.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

# A task body: zero arguments, sync or async, raises on failure.
TaskWork = Callable[[], Union[None, Awaitable[None], Any]]


# ============================================================
#                   TASK STATES
# ============================================================
class TaskState(enum.StrEnum):
    """Lifecycle states of a task within a single run."""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"


# ============================================================
#                   RETRY POLICY
# ============================================================
@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded retry configuration for a task.

    Attributes:
        retries: Number of retries after the first attempt
        delay: Fixed wait applied before every attempt after the first
    """
    retries: int = 2
    delay: timedelta = timedelta(seconds=5)

    def __post_init__(self):
        if self.retries < 0:
            raise ValueError(f"retries must be >= 0, got {self.retries}")
        if self.delay < timedelta(0):
            raise ValueError(f"delay must not be negative, got {self.delay}")

    @property
    def max_attempts(self) -> int:
        return self.retries + 1

    @property
    def delay_seconds(self) -> float:
        return self.delay.total_seconds()

    @classmethod
    def none(cls) -> RetryPolicy:
        """Single attempt, no delay."""
        return cls(retries=0, delay=timedelta(0))


# ============================================================
#                   TASK
# ============================================================
@dataclass(eq=False)
class Task:
    """
    A named unit of work registered in a flow.

    Attributes:
        name: Unique identifier of the task within its flow
        work: Zero-argument callable executing the task logic
        dependencies: Names of tasks that must be done before this one starts
        retry_policy: Retry configuration applied by the executor
        state: Current lifecycle state
        attempts: Number of attempts made so far
        error: Final error if the task failed
        skipped: True if the run was asked to skip this task
        start_date: Timestamp when the first attempt started
        end_date: Timestamp when the task reached a terminal state
    """
    name: str
    work: TaskWork
    dependencies: Tuple[str, ...] = ()
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    state: TaskState = TaskState.PENDING
    attempts: int = 0
    error: Optional[BaseException] = None
    skipped: bool = False
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None

    @property
    def duration(self) -> Optional[float]:
        """Elapsed seconds between start and end, if both are known."""
        if self.start_date is None or self.end_date is None:
            return None
        return (self.end_date - self.start_date).total_seconds()


# ============================================================
#                   EVENTS
# ============================================================
class Severity(enum.StrEnum):
    """Severity attached to flow events, ordered from least to most severe."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def rank(self) -> int:
        return list(Severity).index(self)


class EventMessage(enum.StrEnum):
    """Messages used for lifecycle events; log queries key on these."""
    PIPELINE_STARTED = "pipeline started"
    PIPELINE_COMPLETED = "pipeline completed"
    PIPELINE_FAILED = "pipeline failed"
    STEP_STARTED = "step started"
    STEP_RETRYING = "step retrying"
    STEP_COMPLETED = "step completed"
    STEP_FAILED = "step failed"
    STEP_SKIPPED = "step skipped"


@dataclass(frozen=True)
class FlowEvent:
    """
    Structured lifecycle event handed to logging collaborators.

    Attributes:
        message: One of EventMessage
        pipeline: Name of the flow emitting the event
        run_id: Identifier of the run
        severity: Event severity
        timestamp: When the event was created
        step: Task name for step-level events
        attempt: Attempt number (1-based) for step-level events
        duration: Elapsed seconds for completion/failure events
        error: Error text for failure/retry events
        task_count: Number of tasks (pipeline started only)
        tasks: Declared task names (pipeline started only)
        tasks_completed: Completed task count (terminal events only)
    """
    message: str
    pipeline: str
    run_id: str
    severity: Severity = Severity.INFO
    timestamp: datetime = field(default_factory=datetime.now)
    step: Optional[str] = None
    attempt: Optional[int] = None
    duration: Optional[float] = None
    error: Optional[str] = None
    task_count: Optional[int] = None
    tasks: Optional[Tuple[str, ...]] = None
    tasks_completed: Optional[int] = None

    @property
    def is_terminal(self) -> bool:
        return self.message in {EventMessage.PIPELINE_COMPLETED, EventMessage.PIPELINE_FAILED}

    def to_dict(self) -> Dict[str, Any]:
        """Key/value view of the event, without unset fields."""
        data: Dict[str, Any] = {
            "msg": str(self.message),
            "pipeline": self.pipeline,
            "run_id": self.run_id,
            "severity": str(self.severity),
            "timestamp": self.timestamp.isoformat(),
        }
        for key in ("step", "attempt", "duration", "error", "task_count", "tasks_completed"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        if self.tasks is not None:
            data["tasks"] = list(self.tasks)
        return data


EventSink = Callable[[FlowEvent], None]


# ============================================================
#                   RUN RESULT
# ============================================================
@dataclass
class RunResult:
    """
    Outcome of a successful flow run.

    Attributes:
        run_id: Identifier of the run
        flow_name: Name of the flow
        duration: Elapsed seconds for the whole run
        tasks_completed: Number of tasks executed to completion in this run
        task_states: Final state of every task, keyed by name
        skipped: Names of tasks marked done without running
    """
    run_id: str
    flow_name: str
    duration: float
    tasks_completed: int
    task_states: Dict[str, TaskState] = field(default_factory=dict)
    skipped: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(state == TaskState.DONE for state in self.task_states.values())
