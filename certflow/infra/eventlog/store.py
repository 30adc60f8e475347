"""
EventStore implementation using SQLModel.

This module provides the storage backend for the run-event log: every event
emitted by a flow run is appended here, and the logs endpoint queries it.
The log is history only; nothing reads it back to resume a run.
"""
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import Engine, desc as sqlalchemy_desc
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select, col

from certflow.infra.flow.models import FlowEvent, Severity
from certflow.infra.eventlog.sql_models import FlowEventModel, event_to_model, model_to_event

DEFAULT_QUERY_WINDOW = timedelta(hours=1)
DEFAULT_QUERY_LIMIT = 100


class EventStore:

    def __init__(self, connection_string: str = "sqlite://", echo: bool = False):
        self.connection_string = connection_string
        self.echo = echo
        self.engine: Optional[Engine] = None

    # ---------- Lifecycle ----------

    def open(self):
        kwargs = {}
        if self.connection_string.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if self._is_in_memory():
                # One shared connection, otherwise every session sees an empty database
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(self.connection_string, echo=self.echo, **kwargs)
        SQLModel.metadata.create_all(self.engine)

    def close(self):
        """Close the database engine and release resources."""
        if self.engine:
            self.engine.dispose()
            self.engine = None

    def _is_in_memory(self) -> bool:
        return self.connection_string in ("sqlite://", "sqlite:///:memory:")

    # ---------- Writes ----------

    def append(self, event: FlowEvent):
        """
        Persist one event.

        The store is a valid reporter sink: `Flow(name, sinks=[store])`.

        Args:
            event: The event to store
        """
        if not self.engine:
            raise RuntimeError("open() must be called before append()")

        with Session(self.engine) as session:
            session.add(event_to_model(event))
            session.commit()

    __call__ = append

    # ---------- Queries ----------

    def query(
            self,
            pipeline: Optional[str] = None,
            severity: Optional[str] = None,
            since: timedelta = DEFAULT_QUERY_WINDOW,
            limit: int = DEFAULT_QUERY_LIMIT,
            now: Optional[datetime] = None,
    ) -> List[FlowEvent]:
        """
        Get recent events, newest first.

        Args:
            pipeline: Only events of this pipeline
            severity: Only events at least this severe (DEBUG, INFO, WARNING, ERROR)
            since: How far back to look
            limit: Maximum number of events
            now: Reference time for `since` (default: now)

        Returns:
            Matching events ordered by timestamp descending

        Raises:
            ValueError: If severity is not a known level
        """
        if not self.engine:
            raise RuntimeError("open() must be called before query()")

        cutoff = (now or datetime.now()) - since
        statement = select(FlowEventModel).where(col(FlowEventModel.timestamp) >= cutoff)
        if pipeline:
            statement = statement.where(FlowEventModel.pipeline == pipeline)
        if severity:
            statement = statement.where(col(FlowEventModel.severity_rank) >= Severity(severity.upper()).rank)
        statement = statement.order_by(
            sqlalchemy_desc(col(FlowEventModel.timestamp)), sqlalchemy_desc(col(FlowEventModel.id))
        ).limit(limit)

        with Session(self.engine) as session:
            return [model_to_event(row) for row in session.exec(statement).all()]

    def get_run_events(self, run_id: str) -> List[FlowEvent]:
        """
        Get every event of one run, oldest first.

        Args:
            run_id: Identifier of the run

        Returns:
            Events of the run in emission order
        """
        if not self.engine:
            raise RuntimeError("open() must be called before get_run_events()")

        statement = (
            select(FlowEventModel)
            .where(FlowEventModel.run_id == run_id)
            .order_by(col(FlowEventModel.timestamp), col(FlowEventModel.id))
        )
        with Session(self.engine) as session:
            return [model_to_event(row) for row in session.exec(statement).all()]
