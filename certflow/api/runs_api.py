import logging

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import JSONResponse

from certflow.api.dependencies import get_registry, get_settings, require_api_key
from certflow.application.registry import PipelineRegistry
from certflow.config import Settings
from certflow.domain.models import PipelineRequest, PipelineResponse
from certflow.infra.flow import RunContext

logger = logging.getLogger(__name__)

run_router = APIRouter(prefix="/run", tags=["Runs"], dependencies=[Depends(require_api_key)])


@run_router.post("/{name}", summary="Trigger a pipeline", response_model=PipelineResponse)
async def trigger(
        name: str,
        request: PipelineRequest,
        registry: PipelineRegistry = Depends(get_registry),
        settings: Settings = Depends(get_settings),
):
    """
    Run a pipeline to completion and report its outcome.

    Args:
        name: Pipeline name
        request: SSCC to process and optional steps to skip

    Returns:
        PipelineResponse; HTTP 500 when the pipeline failed

    Raises:
        HTTPException: 404 for an unknown pipeline, 400 for a missing sscc or unknown skip step
    """
    try:
        descriptor = registry.get(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"unknown pipeline: {name}")

    if not request.sscc:
        raise HTTPException(status_code=400, detail="sscc is required")

    unknown = sorted(set(request.skip_steps) - set(descriptor.steps))
    if unknown:
        raise HTTPException(status_code=400, detail=f"unknown skip steps: {', '.join(unknown)}")

    logger.info(f"pipeline started: pipeline={name}, sscc={request.sscc}, skip_steps={request.skip_steps}")
    ctx = RunContext(timeout=settings.run_timeout_seconds)
    result = await descriptor.runner(request, ctx)
    logger.info(f"pipeline complete: pipeline={name}, success={result.success}")

    response = PipelineResponse.from_result(result)
    if not result.success:
        return JSONResponse(status_code=500, content=response.model_dump())
    return response
