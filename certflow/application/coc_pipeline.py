"""
Certificate of conformance (COC) pipeline.

    fetch_coc_data ──> prepare_record ──> create_certification ──┐
                                                                 ├──> upload_pdf ──> send_email
    generate_pdf ────────────────────────────────────────────────┘
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from certflow.config import Settings
from certflow.domain.models import (
    CertificationRecord,
    CocData,
    CoveredProduct,
    PipelineRequest,
    PipelineResult,
)
from certflow.infra.clients import CocApiClient, DirectusClient, Mailer, PdfRenderer
from certflow.infra.flow import EventSink, Flow, FlowError, RunContext

logger = logging.getLogger(__name__)

PIPELINE_NAME = "coc"
CERTIFICATION_COLLECTION = "certification"

STEPS = [
    "fetch_coc_data",
    "generate_pdf",
    "prepare_record",
    "create_certification",
    "upload_pdf",
    "send_email",
]


def extract_last_path_segment(uri: str) -> str:
    """
    Last path segment of a URI.

    Relative paths: "/docs/DN-1/" -> "DN-1", "DN-1" -> "".
    Absolute URLs: "https://h/po/PO-7" -> "PO-7", "https://h" -> "".
    """
    if not uri:
        return ""
    if "://" not in uri:
        uri = uri.removesuffix("/")
        _, slash, segment = uri.rpartition("/")
        return segment if slash else ""

    rest = uri.split("://", 1)[1]
    slash_idx = rest.find("/")
    if slash_idx == -1:
        return ""
    path = rest[slash_idx:].removesuffix("/")
    return path.rpartition("/")[2]


def prepare_record(coc_data: Optional[CocData]) -> CertificationRecord:
    """
    Build the certification record for a shipment.

    Header fields come from the first item; serials from every item.

    Raises:
        ValueError: If there is no COC data
    """
    if coc_data is None or not coc_data.items:
        raise ValueError("no COC data available")

    first = coc_data.items[0]
    serials = [item.serial for item in coc_data.items if item.serial]
    products = [CoveredProduct(product_id=first.product_id)] if first.product_id else []

    return CertificationRecord(
        certification_type="Conformance",
        certification_identification=first.coc_document_id,
        sscc=first.sscc,
        delivery_note=extract_last_path_segment(first.delivery_note_uri),
        customer_po=extract_last_path_segment(first.purchase_order_uri),
        initial_certification_date=first.coc_document_date,
        covered_serials="\n".join(serials),
        covered_products=products,
        event_id=first.shipping_event_id,
    )


@dataclass
class CocRunState:
    """Values handed from task to task within one run."""
    sscc: str
    coc_data: Optional[CocData] = None
    pdf: Optional[bytes] = None
    pdf_filename: Optional[str] = None
    record: Optional[CertificationRecord] = None
    certification_id: Optional[str] = None
    file_id: Optional[str] = None
    email_sent: bool = False
    email_skipped: Optional[str] = None


class CocPipeline:
    """Creates a COC certification record with its PDF and notifies the customer."""

    description = "Certificate of conformance: fetch data, render PDF, record in CMS, email customer"

    def __init__(
            self,
            settings: Settings,
            coc_api: CocApiClient,
            renderer: PdfRenderer,
            cms: DirectusClient,
            mailer: Mailer,
            sinks: Iterable[EventSink] = (),
    ):
        self.settings = settings
        self.coc_api = coc_api
        self.renderer = renderer
        self.cms = cms
        self.mailer = mailer
        self.sinks = list(sinks)

    def build_flow(self, state: CocRunState) -> Flow:
        flow = Flow(PIPELINE_NAME, retry_policy=self.settings.retry_policy, sinks=self.sinks)

        @flow.task("fetch_coc_data")
        async def fetch_coc_data():
            state.coc_data = await self.coc_api.fetch(state.sscc)

        @flow.task("generate_pdf")
        async def generate_pdf():
            state.pdf, state.pdf_filename = await self.renderer.render(state.sscc)

        @flow.task("prepare_record", depends_on=["fetch_coc_data"])
        def build_record():
            state.record = prepare_record(state.coc_data)

        @flow.task("create_certification", depends_on=["prepare_record"])
        async def create_certification():
            state.certification_id = await self.cms.post_item(CERTIFICATION_COLLECTION, state.record)

        @flow.task("upload_pdf", depends_on=["create_certification", "generate_pdf"])
        async def upload_pdf():
            state.file_id = await self.cms.upload_file(
                state.pdf_filename, state.pdf, self.settings.coc_pdf_folder_id
            )
            await self.cms.patch_item(
                CERTIFICATION_COLLECTION, state.certification_id, {"primary_attachment": state.file_id}
            )

        @flow.task("send_email", depends_on=["upload_pdf"])
        async def send_email():
            if state.coc_data is None:
                raise ValueError("no COC data available")
            outcome = await self.mailer.send_coc_email(
                state.sscc,
                state.coc_data.send_emails,
                state.coc_data.email_addresses,
                state.pdf,
                state.pdf_filename,
            )
            state.email_sent = outcome.sent
            state.email_skipped = outcome.skipped

        return flow

    async def run(
            self,
            request: PipelineRequest,
            ctx: Optional[RunContext] = None,
            skip: Optional[List[str]] = None,
    ) -> PipelineResult:
        """
        Run the pipeline for one SSCC.

        Failures are reported in the result, never raised.

        Args:
            request: Pipeline input
            ctx: Cancellation/deadline context
            skip: Step names to mark done without running (default: request.skip_steps)

        Returns:
            PipelineResult
        """
        state = CocRunState(sscc=request.sscc)
        flow = self.build_flow(state)
        logger.info(f"coc pipeline started: sscc={request.sscc}")

        try:
            result = await flow.run(ctx, skip=request.skip_steps if skip is None else skip)
        except FlowError as e:
            logger.error(f"coc pipeline failed: sscc={request.sscc}, error={e}")
            return PipelineResult(success=False, error=str(e))

        logger.info(
            f"coc pipeline complete: sscc={request.sscc}, certification_id={state.certification_id}, "
            f"file_id={state.file_id}, email_sent={state.email_sent}"
        )
        return PipelineResult(
            success=True,
            run_id=result.run_id,
            certification_id=state.certification_id,
            file_id=state.file_id,
            email_sent=state.email_sent,
            email_skipped=state.email_skipped,
        )

    async def __call__(self, request: PipelineRequest, ctx: RunContext) -> PipelineResult:
        return await self.run(request, ctx)
