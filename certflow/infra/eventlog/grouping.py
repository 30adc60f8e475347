"""
Fold flat event lists into per-run summaries for display.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from certflow.infra.flow.models import EventMessage, FlowEvent


@dataclass
class StepSummary:
    """
    Outcome of a single step within a run.

    Attributes:
        name: Task name
        status: "completed", "failed" or "skipped"
        duration: Elapsed seconds, when reported
        attempts: Attempt number that ended the step, when reported
        error: Error text for failed steps
    """
    name: str
    status: str
    duration: Optional[float] = None
    attempts: Optional[int] = None
    error: Optional[str] = None


@dataclass
class PipelineRunSummary:
    """
    One pipeline run reconstructed from its events.

    A run is assumed successful until a failure event is seen.
    """
    run_id: str
    pipeline: str
    start_time: datetime
    end_time: Optional[datetime] = None
    duration: Optional[float] = None
    success: bool = True
    finished: bool = False
    steps: List[StepSummary] = field(default_factory=list)
    error: Optional[str] = None


_STEP_STATUS = {
    EventMessage.STEP_COMPLETED: "completed",
    EventMessage.STEP_FAILED: "failed",
    EventMessage.STEP_SKIPPED: "skipped",
}


def group_by_run(events: Iterable[FlowEvent]) -> List[PipelineRunSummary]:
    """
    Group events into pipeline runs.

    Args:
        events: Events in any order

    Returns:
        Run summaries, newest run first
    """
    runs: Dict[str, PipelineRunSummary] = {}

    for event in sorted(events, key=lambda e: e.timestamp):
        run = runs.get(event.run_id)
        if run is None:
            # Runs whose start fell outside the query window begin at their first event
            run = PipelineRunSummary(run_id=event.run_id, pipeline=event.pipeline, start_time=event.timestamp)
            runs[event.run_id] = run

        if event.message == EventMessage.PIPELINE_STARTED:
            run.start_time = event.timestamp
        elif event.message in _STEP_STATUS and event.step:
            run.steps.append(StepSummary(
                name=event.step,
                status=_STEP_STATUS[EventMessage(event.message)],
                duration=event.duration,
                attempts=event.attempt,
                error=event.error,
            ))
            if event.message == EventMessage.STEP_FAILED:
                run.success = False
                run.error = event.error
        elif event.is_terminal:
            run.finished = True
            run.end_time = event.timestamp
            run.duration = event.duration
            if event.message == EventMessage.PIPELINE_FAILED:
                run.success = False
                run.error = event.error

    return sorted(runs.values(), key=lambda r: r.start_time, reverse=True)
