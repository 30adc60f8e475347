"""
Pipeline registry.

Maps pipeline names to runners. Built once at startup and handed to the HTTP
layer; nothing registers pipelines at import time.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, Iterable, List

from certflow.application.coc_pipeline import PIPELINE_NAME, STEPS, CocPipeline
from certflow.config import Settings
from certflow.domain.models import PipelineRequest, PipelineResult
from certflow.infra.clients import CocApiClient, DirectusClient, Mailer, PdfRenderer, SmtpConfig
from certflow.infra.flow import EventSink, RunContext

logger = logging.getLogger(__name__)

PipelineRunner = Callable[[PipelineRequest, RunContext], Awaitable[PipelineResult]]


@dataclass(frozen=True)
class PipelineDescriptor:
    name: str
    description: str
    steps: List[str]
    runner: PipelineRunner = field(compare=False, repr=False)


class PipelineRegistry:
    """Named pipelines available to trigger."""

    def __init__(self, descriptors: Iterable[PipelineDescriptor] = ()):
        self._pipelines: Dict[str, PipelineDescriptor] = {}
        self._closers: List[Callable[[], Awaitable[None]]] = []
        for descriptor in descriptors:
            self.register(descriptor)

    def register(self, descriptor: PipelineDescriptor) -> PipelineRegistry:
        """
        Add a pipeline.

        Raises:
            ValueError: If a pipeline with the same name is already registered
        """
        if descriptor.name in self._pipelines:
            raise ValueError(f"Pipeline '{descriptor.name}' is already registered")
        self._pipelines[descriptor.name] = descriptor
        logger.debug(f"Pipeline registered: name={descriptor.name}, steps={len(descriptor.steps)}")
        return self

    def get(self, name: str) -> PipelineDescriptor:
        """
        Look up a pipeline by name.

        Raises:
            KeyError: If no pipeline has this name
        """
        if name not in self._pipelines:
            raise KeyError(f"Pipeline '{name}' not found")
        return self._pipelines[name]

    def __contains__(self, name: str) -> bool:
        return name in self._pipelines

    @property
    def names(self) -> List[str]:
        return sorted(self._pipelines)

    @property
    def descriptors(self) -> List[PipelineDescriptor]:
        return [self._pipelines[name] for name in self.names]

    def describe(self) -> str:
        """Human-readable listing of the registered pipelines and their steps."""
        lines = ["Available pipelines:"]
        for descriptor in self.descriptors:
            lines.append(f"  {descriptor.name}: {descriptor.description}")
            lines.append(f"    steps: {', '.join(descriptor.steps)}")
        return "\n".join(lines)

    # ================================================================
    #                   LIFECYCLE
    # ================================================================

    def on_close(self, closer: Callable[[], Awaitable[None]]) -> None:
        """Register a coroutine function to await on shutdown (e.g. an HTTP client's aclose)."""
        self._closers.append(closer)

    async def aclose(self) -> None:
        while self._closers:
            closer = self._closers.pop()
            await closer()


def build_registry(settings: Settings, *, sinks: Iterable[EventSink] = ()) -> PipelineRegistry:
    """
    Build the registry of every pipeline the service exposes.

    Args:
        settings: Service configuration
        sinks: Event sinks attached to every run (e.g. the event store)

    Returns:
        Registry owning the outbound clients; await `aclose()` on shutdown
    """
    coc_api = CocApiClient(settings.coc_data_api_url, settings.coc_data_api_key)
    renderer = PdfRenderer(settings.pdf_render_url, settings.coc_viewer_base_url)
    cms = DirectusClient(settings.cms_base_url, settings.directus_cms_api_key)
    mailer = Mailer(SmtpConfig(
        host=settings.email_smtp_host,
        port=settings.email_smtp_port,
        user=settings.email_smtp_user,
        password=settings.email_smtp_password,
        from_address=settings.email_from_address,
    ))
    coc = CocPipeline(settings, coc_api, renderer, cms, mailer, sinks=sinks)

    registry = PipelineRegistry()
    registry.register(PipelineDescriptor(
        name=PIPELINE_NAME,
        description=CocPipeline.description,
        steps=list(STEPS),
        runner=coc,
    ))
    for client in (coc_api, renderer, cms):
        registry.on_close(client.aclose)
    logger.info(f"Pipeline registry built: pipelines={registry.names}")
    return registry
