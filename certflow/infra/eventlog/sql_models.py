"""
SQLModel models and mappers for the run-event log.

This module contains the SQLModel table definition and the mapper functions
to convert between rows and FlowEvent dataclasses.
"""
from datetime import datetime
from typing import Optional
import json

from sqlmodel import Field, SQLModel

from certflow.infra.flow.models import FlowEvent, Severity


# ============================================================
#                   SQLMODEL TABLE DEFINITIONS
# ============================================================

class FlowEventModel(SQLModel, table=True):
    """
    SQLModel representation of a flow event.

    Table: flow_event
    """
    __tablename__ = "flow_event"

    id: Optional[int] = Field(default=None, primary_key=True)
    run_id: str = Field(index=True)
    pipeline: str = Field(index=True)
    message: str
    severity: str = Field(default=Severity.INFO, index=True)
    severity_rank: int = Field(default=1, index=True)
    timestamp: datetime = Field(index=True)
    step: Optional[str] = Field(default=None)
    attempt: Optional[int] = Field(default=None)
    duration: Optional[float] = Field(default=None)
    error: Optional[str] = Field(default=None)
    task_count: Optional[int] = Field(default=None)
    tasks_json: Optional[str] = Field(default=None)
    tasks_completed: Optional[int] = Field(default=None)


# ============================================================
#                   MAPPER FUNCTIONS
# ============================================================

def event_to_model(event: FlowEvent) -> FlowEventModel:
    """
    Convert a FlowEvent dataclass to a SQLModel row.

    Args:
        event: The event to convert

    Returns:
        FlowEventModel instance (not yet added to a session)
    """
    severity = Severity(event.severity)
    return FlowEventModel(
        run_id=event.run_id,
        pipeline=event.pipeline,
        message=str(event.message),
        severity=str(severity),
        severity_rank=severity.rank,
        timestamp=event.timestamp,
        step=event.step,
        attempt=event.attempt,
        duration=event.duration,
        error=event.error,
        task_count=event.task_count,
        tasks_json=json.dumps(list(event.tasks)) if event.tasks is not None else None,
        tasks_completed=event.tasks_completed,
    )


def model_to_event(model: FlowEventModel) -> FlowEvent:
    """
    Convert a SQLModel row back to a FlowEvent dataclass.

    Args:
        model: The row to convert

    Returns:
        FlowEvent instance
    """
    return FlowEvent(
        message=model.message,
        pipeline=model.pipeline,
        run_id=model.run_id,
        severity=Severity(model.severity),
        timestamp=model.timestamp,
        step=model.step,
        attempt=model.attempt,
        duration=model.duration,
        error=model.error,
        task_count=model.task_count,
        tasks=tuple(json.loads(model.tasks_json)) if model.tasks_json else None,
        tasks_completed=model.tasks_completed,
    )
