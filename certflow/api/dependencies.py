from typing import Optional

from fastapi import Header, HTTPException, Request

from certflow.application.registry import PipelineRegistry
from certflow.config import Settings
from certflow.infra.eventlog import EventStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_registry(request: Request) -> PipelineRegistry:
    return request.app.state.registry


def get_event_store(request: Request) -> EventStore:
    return request.app.state.event_store


async def require_api_key(
        request: Request,
        authorization: Optional[str] = Header(default=None),
        x_api_key: Optional[str] = Header(default=None),
) -> None:
    """
    Accept `Authorization: Bearer <key>` or `X-API-Key: <key>`.

    Every request passes when no API key is configured.

    Raises:
        HTTPException: 401 if a key is configured and neither header matches
    """
    api_key = get_settings(request).api_key
    if not api_key:
        return
    if authorization and authorization.startswith("Bearer ") and authorization[len("Bearer "):] == api_key:
        return
    if x_api_key == api_key:
        return
    raise HTTPException(status_code=401, detail="unauthorized")
