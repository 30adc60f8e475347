from contextlib import asynccontextmanager

from fastapi import APIRouter, FastAPI

from certflow.api.jobs_api import job_router
from certflow.api.logs_api import log_router
from certflow.api.runs_api import run_router
from certflow.application.registry import PipelineRegistry
from certflow.config import Settings
from certflow.infra.eventlog import EventStore

api_router = APIRouter()

api_router.include_router(job_router)
api_router.include_router(run_router)
api_router.include_router(log_router)


@api_router.get("/health", tags=["Health"], summary="Liveness check")
async def health():
    return {"status": "healthy"}


def create_app(settings: Settings, registry: PipelineRegistry, event_store: EventStore) -> FastAPI:
    """
    Build the HTTP service.

    The event store is opened on startup; it and the registry's clients are
    closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if event_store.engine is None:
            event_store.open()
        try:
            yield
        finally:
            await registry.aclose()
            event_store.close()

    app = FastAPI(title="certflow", lifespan=lifespan)
    app.state.settings = settings
    app.state.registry = registry
    app.state.event_store = event_store
    app.include_router(api_router)
    return app
