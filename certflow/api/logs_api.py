import dataclasses
import logging
from datetime import timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from certflow.api.dependencies import get_event_store, require_api_key
from certflow.infra.eventlog import EventStore, group_by_run

logger = logging.getLogger(__name__)

log_router = APIRouter(prefix="/logs", tags=["Logs"], dependencies=[Depends(require_api_key)])

DEFAULT_SINCE_SECONDS = 3600
DEFAULT_LIMIT = 100
MAX_LIMIT = 500


@log_router.get("", summary="Recent pipeline runs")
def get_logs(
        pipeline: Optional[str] = None,
        severity: Optional[str] = None,
        since: int = DEFAULT_SINCE_SECONDS,
        limit: int = DEFAULT_LIMIT,
        store: EventStore = Depends(get_event_store),
):
    """
    Recent run events grouped by run.

    Args:
        pipeline: Only runs of this pipeline
        severity: Only events at least this severe
        since: Look-back window in seconds
        limit: Maximum number of events (1-500; out-of-range values fall back to 100)

    Returns:
        Runs newest first, their count and the effective query
    """
    if not 0 < limit <= MAX_LIMIT:
        limit = DEFAULT_LIMIT
    if since <= 0:
        since = DEFAULT_SINCE_SECONDS

    try:
        events = store.query(pipeline=pipeline, severity=severity, since=timedelta(seconds=since), limit=limit)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"unknown severity: {severity}")

    runs = group_by_run(events)
    return {
        "runs": [dataclasses.asdict(run) for run in runs],
        "count": len(runs),
        "query": {"pipeline": pipeline, "severity": severity, "since": since, "limit": limit},
    }
