from fastapi import APIRouter, Depends, HTTPException

from certflow.api.dependencies import get_registry, require_api_key
from certflow.application.registry import PipelineRegistry
from certflow.domain.models import JobInfoResponse, JobListResponse

job_router = APIRouter(prefix="/jobs", tags=["Jobs"], dependencies=[Depends(require_api_key)])


@job_router.get("", summary="List pipelines", response_model=JobListResponse)
async def get_all(registry: PipelineRegistry = Depends(get_registry)):
    """Names of every registered pipeline, sorted."""
    return JobListResponse(jobs=registry.names)


@job_router.get("/{name}", summary="Get a pipeline", response_model=JobInfoResponse)
async def get_job(name: str, registry: PipelineRegistry = Depends(get_registry)):
    """
    Describe one pipeline.

    Args:
        name: Pipeline name

    Returns:
        Pipeline name, description, its steps in declared order and its schedule

    Raises:
        HTTPException: If the pipeline doesn't exist
    """
    try:
        descriptor = registry.get(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Pipeline '{name}' not found")
    return JobInfoResponse(name=descriptor.name, description=descriptor.description, tasks=descriptor.steps)
