"""
Client for the certificate-of-conformance data API.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx
from pydantic import TypeAdapter, ValidationError

from certflow.domain.models import CocData, CocItem
from certflow.infra.clients.errors import CocApiError

logger = logging.getLogger(__name__)

_ITEMS = TypeAdapter(list[CocItem])


class CocApiClient:
    """Fetches the shipped items of an SSCC."""

    def __init__(
            self,
            api_url: str,
            api_key: Optional[str] = None,
            *,
            timeout: float = 30.0,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_url = api_url
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._client = httpx.AsyncClient(headers=headers, timeout=timeout, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch(self, sscc: str) -> CocData:
        """
        Fetch COC data for a shipping container.

        Args:
            sscc: Serial shipping container code

        Returns:
            The items shipped in the container

        Raises:
            CocApiError: If sscc is empty, the API fails, or returns no items
        """
        if not sscc:
            raise CocApiError("missing required 'sscc' parameter")

        logger.info(f"Fetching COC data: sscc={sscc}")
        try:
            response = await self._client.get(self.api_url, params={"sscc": sscc})
        except httpx.HTTPError as e:
            raise CocApiError(f"API request failed: {e}") from e

        if response.status_code != httpx.codes.OK:
            raise CocApiError(
                f"API returned status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )

        try:
            items = _ITEMS.validate_json(response.content)
        except ValidationError as e:
            raise CocApiError(f"decoding response: {e}", status_code=response.status_code) from e

        if not items:
            raise CocApiError(f"empty response from API for SSCC: {sscc}")

        logger.info(f"Fetched COC data: sscc={sscc}, items={len(items)}")
        return CocData(sscc=sscc, items=items)
