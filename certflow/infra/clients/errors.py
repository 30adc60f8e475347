"""Error types raised by outbound integration clients."""
from typing import Optional


class IntegrationError(Exception):
    """Base error for calls to external services."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class CmsError(IntegrationError):
    """Raised when the Directus CMS rejects or fails a request."""


class CocApiError(IntegrationError):
    """Raised when COC data cannot be fetched."""


class PdfRenderError(IntegrationError):
    """Raised when the certificate PDF cannot be rendered."""


class EmailError(IntegrationError):
    """Raised when the notification email cannot be sent."""
