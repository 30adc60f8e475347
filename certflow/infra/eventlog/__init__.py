"""
Run-event log: SQL storage for flow events and per-run grouping.
"""

from certflow.infra.eventlog.grouping import PipelineRunSummary, StepSummary, group_by_run
from certflow.infra.eventlog.store import EventStore

__all__ = [
    "EventStore",
    "PipelineRunSummary",
    "StepSummary",
    "group_by_run",
]
