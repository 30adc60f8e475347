"""
Certificate PDF rendering.

The COC viewer is a web page; a headless-browser render service loads it and
prints it to PDF. This module only speaks HTTP to that service.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import httpx

from certflow.infra.clients.errors import PdfRenderError

logger = logging.getLogger(__name__)

# A4 in inches with ~10mm margins
A4_PRINT_OPTIONS: Dict[str, Any] = {
    "paperWidth": 8.27,
    "paperHeight": 11.69,
    "marginTop": 0.39,
    "marginBottom": 0.39,
    "marginLeft": 0.39,
    "marginRight": 0.39,
    "printBackground": True,
}

READY_SELECTOR = "#certificate"


def coc_pdf_filename(sscc: str) -> str:
    return f"COC-{sscc}.pdf"


class PdfRenderer:
    """Renders the COC viewer page for an SSCC into an A4 PDF."""

    def __init__(
            self,
            render_url: str,
            viewer_base_url: str,
            *,
            timeout: float = 60.0,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            render_url: Endpoint of the headless-browser render service
            viewer_base_url: Base URL of the COC viewer page
            timeout: Render request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.render_url = render_url
        self.viewer_base_url = viewer_base_url
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    def viewer_url(self, sscc: str) -> str:
        """Viewer URL with the `sscc` query parameter set (existing parameters kept)."""
        try:
            url = httpx.URL(self.viewer_base_url)
        except httpx.InvalidURL as e:
            raise PdfRenderError(f"invalid COC viewer URL: {e}") from e
        return str(url.copy_set_param("sscc", sscc))

    async def render(self, sscc: str) -> Tuple[bytes, str]:
        """
        Render the certificate of an SSCC.

        Returns:
            Tuple of (pdf bytes, filename)

        Raises:
            PdfRenderError: If the render service fails or returns an empty document
        """
        page_url = self.viewer_url(sscc)
        logger.info(f"Rendering COC viewer: sscc={sscc}, url={page_url}")

        payload = {"url": page_url, "waitForSelector": READY_SELECTOR, "pdf": A4_PRINT_OPTIONS}
        try:
            response = await self._client.post(self.render_url, json=payload)
        except httpx.HTTPError as e:
            raise PdfRenderError(f"generate PDF: {e}") from e

        if not response.is_success:
            raise PdfRenderError(
                f"render service returned status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        if not response.content:
            raise PdfRenderError("generated PDF is empty")

        filename = coc_pdf_filename(sscc)
        logger.info(f"PDF generated: sscc={sscc}, size_bytes={len(response.content)}, filename={filename}")
        return response.content, filename
