"""
Directus CMS REST client.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import BaseModel

from certflow.infra.clients.errors import CmsError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class DirectusClient:
    """
    Minimal async client for the Directus items and files APIs.

    Example:
        ```python
        async with DirectusClient(base_url, api_key) as cms:
            record_id = await cms.post_item("certification", record)
        ```
    """

    def __init__(
            self,
            base_url: str,
            api_key: str,
            *,
            timeout: float = DEFAULT_TIMEOUT,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the client.

        Args:
            base_url: Directus base URL, e.g. https://cms.example.com
            api_key: Static token sent as Bearer authorization
            timeout: Per-request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> DirectusClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ================================================================
    #                   ITEMS
    # ================================================================

    async def post_item(self, collection: str, item: BaseModel | Dict[str, Any]) -> str:
        """
        Create an item in a collection.

        Args:
            collection: Collection name
            item: Item payload (pydantic model or dict)

        Returns:
            ID of the created item

        Raises:
            CmsError: On transport errors, non-2xx responses or malformed bodies
        """
        payload = item.model_dump() if isinstance(item, BaseModel) else item
        response = await self._request("POST", f"/items/{collection}", json=payload)
        item_id = self._data_id(response)
        logger.info(f"Directus item created: collection={collection}, id={item_id}")
        return item_id

    async def patch_item(self, collection: str, item_id: str, updates: Dict[str, Any]) -> None:
        """
        Update fields of an existing item.

        Raises:
            CmsError: On transport errors or non-2xx responses
        """
        await self._request("PATCH", f"/items/{collection}/{item_id}", json=updates)
        logger.info(f"Directus item updated: collection={collection}, id={item_id}, fields={sorted(updates)}")

    # ================================================================
    #                   FILES
    # ================================================================

    async def upload_file(self, filename: str, content: bytes, folder_id: Optional[str] = None) -> str:
        """
        Upload a file as multipart form data.

        Args:
            filename: Name stored in Directus
            content: File bytes
            folder_id: Optional target folder

        Returns:
            ID of the uploaded file

        Raises:
            CmsError: On transport errors, non-2xx responses or malformed bodies
        """
        data = {"folder": folder_id} if folder_id else None
        files = {"file": (filename, content, "application/pdf")}
        response = await self._request("POST", "/files", data=data, files=files)
        file_id = self._data_id(response)
        logger.info(f"Directus file uploaded: filename={filename}, id={file_id}, size_bytes={len(content)}")
        return file_id

    # ================================================================
    #                   INTERNAL HELPERS
    # ================================================================

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise CmsError(f"{method} {path} failed: {e}") from e
        if not response.is_success:
            raise CmsError(
                f"directus returned status {response.status_code}: {response.text}",
                status_code=response.status_code,
                body=response.text,
            )
        return response

    @staticmethod
    def _data_id(response: httpx.Response) -> str:
        try:
            item_id = response.json()["data"]["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise CmsError(f"decode response: {e}", status_code=response.status_code, body=response.text) from e
        return str(item_id)
