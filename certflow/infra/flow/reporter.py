# certflow/infra/flow/reporter.py
"""
Structured run reporting.

The reporter turns scheduler transitions into FlowEvent records, logs them
with the event fields attached as `extra`, and forwards them to any
registered sinks (for example the run-event log).
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence

from certflow.infra.flow.models import EventMessage, EventSink, FlowEvent, Severity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    Severity.DEBUG: logging.DEBUG,
    Severity.INFO: logging.INFO,
    Severity.WARNING: logging.WARNING,
    Severity.ERROR: logging.ERROR,
}


class RunReporter:
    """
    Emits lifecycle events for one run of one flow.

    Every terminal transition of the run goes through exactly one of
    `run_completed` or `run_failed`.
    """

    def __init__(self, flow_name: str, run_id: str, sinks: Iterable[EventSink] = ()):
        """
        Initialize the reporter.

        Args:
            flow_name: Name of the flow, attached to every event as `pipeline`
            run_id: Identifier of the run, attached to every event
            sinks: Callables receiving every emitted event
        """
        self.flow_name = flow_name
        self.run_id = run_id
        self._sinks: List[EventSink] = list(sinks)
        self._terminal_emitted = False

    # ================================================================
    #                   RUN-LEVEL EVENTS
    # ================================================================

    def run_started(self, task_names: Sequence[str]) -> FlowEvent:
        return self._emit(
            EventMessage.PIPELINE_STARTED,
            task_count=len(task_names),
            tasks=tuple(task_names),
        )

    def run_completed(self, duration: float, tasks_completed: int) -> FlowEvent:
        return self._emit_terminal(
            EventMessage.PIPELINE_COMPLETED,
            duration=duration,
            tasks_completed=tasks_completed,
        )

    def run_failed(self, duration: float, tasks_completed: int, error: BaseException) -> FlowEvent:
        return self._emit_terminal(
            EventMessage.PIPELINE_FAILED,
            severity=Severity.ERROR,
            duration=duration,
            tasks_completed=tasks_completed,
            error=str(error),
        )

    # ================================================================
    #                   STEP-LEVEL EVENTS
    # ================================================================

    def task_started(self, step: str, attempt: int = 1) -> FlowEvent:
        return self._emit(EventMessage.STEP_STARTED, step=step, attempt=attempt)

    def task_retrying(self, step: str, attempt: int, error: BaseException) -> FlowEvent:
        return self._emit(
            EventMessage.STEP_RETRYING,
            severity=Severity.WARNING,
            step=step,
            attempt=attempt,
            error=f"{error.__class__.__name__}: {error}",
        )

    def task_completed(self, step: str, duration: float, attempt: int) -> FlowEvent:
        return self._emit(EventMessage.STEP_COMPLETED, step=step, duration=duration, attempt=attempt)

    def task_failed(self, step: str, duration: float, error: BaseException, attempt: Optional[int] = None) -> FlowEvent:
        return self._emit(
            EventMessage.STEP_FAILED,
            severity=Severity.ERROR,
            step=step,
            duration=duration,
            attempt=attempt,
            error=str(error),
        )

    def task_skipped(self, step: str) -> FlowEvent:
        return self._emit(EventMessage.STEP_SKIPPED, step=step)

    # ================================================================
    #                   INTERNAL HELPERS
    # ================================================================

    def _emit_terminal(self, message: EventMessage, **fields) -> FlowEvent:
        if self._terminal_emitted:
            raise RuntimeError(f"run {self.run_id} already reported a terminal event")
        self._terminal_emitted = True
        return self._emit(message, **fields)

    def _emit(self, message: EventMessage, severity: Severity = Severity.INFO, **fields) -> FlowEvent:
        event = FlowEvent(
            message=message,
            pipeline=self.flow_name,
            run_id=self.run_id,
            severity=severity,
            **fields,
        )
        logger.log(_LOG_LEVELS[severity], str(message), extra={"event": event.to_dict()})
        for sink in self._sinks:
            try:
                sink(event)
            except Exception:
                logger.exception(f"Event sink failed: run_id={self.run_id}, sink={sink!r}")
        return event
