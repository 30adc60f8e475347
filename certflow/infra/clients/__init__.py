from certflow.infra.clients.coc_api import CocApiClient
from certflow.infra.clients.directus import DirectusClient
from certflow.infra.clients.errors import (
    CmsError,
    CocApiError,
    EmailError,
    IntegrationError,
    PdfRenderError,
)
from certflow.infra.clients.mailer import EmailOutcome, Mailer, SmtpConfig
from certflow.infra.clients.pdf import PdfRenderer

__all__ = [
    "CocApiClient",
    "DirectusClient",
    "PdfRenderer",
    "Mailer",
    "SmtpConfig",
    "EmailOutcome",
    "IntegrationError",
    "CmsError",
    "CocApiError",
    "PdfRenderError",
    "EmailError",
]
