"""
SMTP mailer for COC notifications.
"""
from __future__ import annotations

import asyncio
import logging
import re
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Callable, List, Optional, Sequence

from certflow.infra.clients.errors import EmailError

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")

EMAIL_DISABLED_REASON = "send_coc_emails not set to 1"


@dataclass(frozen=True)
class SmtpConfig:
    host: str
    port: int
    user: str
    password: Optional[str]
    from_address: str


@dataclass
class EmailOutcome:
    sent: bool
    skipped: Optional[str] = None
    recipients: Optional[List[str]] = None


def valid_recipients(addresses: Sequence[str]) -> List[str]:
    """Trimmed addresses that look like email addresses; others are logged and dropped."""
    valid: List[str] = []
    for address in addresses:
        address = address.strip()
        if EMAIL_PATTERN.match(address):
            valid.append(address)
        else:
            logger.warning(f"Skipping invalid email: email={address!r}")
    return valid


def build_coc_message(from_address: str, recipients: Sequence[str], sscc: str, pdf: bytes, filename: str) -> EmailMessage:
    message = EmailMessage()
    message["From"] = from_address
    message["To"] = ", ".join(recipients)
    message["Subject"] = f"Certificate of Conformance - SSCC {sscc}"
    message.set_content(
        f"Please find attached the Certificate of Conformance for SSCC: {sscc}\n\nThis is an automated message."
    )
    message.add_attachment(pdf, maintype="application", subtype="pdf", filename=filename)
    return message


class Mailer:
    """
    Sends mail through an SMTP relay with STARTTLS.

    `smtplib` is blocking, so sends run in a worker thread.
    """

    def __init__(self, config: SmtpConfig, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP):
        self.config = config
        self._smtp_factory = smtp_factory

    async def send(self, message: EmailMessage) -> None:
        """
        Send a prepared message.

        Raises:
            EmailError: If the SMTP exchange fails
        """
        try:
            await asyncio.to_thread(self._send_blocking, message)
        except (smtplib.SMTPException, OSError) as e:
            raise EmailError(f"SMTP send failed: {e}") from e

    def _send_blocking(self, message: EmailMessage) -> None:
        with self._smtp_factory(self.config.host, self.config.port, timeout=30) as smtp:
            smtp.starttls()
            if self.config.password:
                smtp.login(self.config.user, self.config.password)
            smtp.send_message(message)

    async def send_coc_email(
            self,
            sscc: str,
            send_enabled: bool,
            addresses: Sequence[str],
            pdf: bytes,
            filename: str,
    ) -> EmailOutcome:
        """
        Send the certificate to the shipment's notification recipients.

        Args:
            sscc: Shipping container code (used in subject and body)
            send_enabled: Whether the customer opted in to COC emails
            addresses: Candidate recipient addresses
            pdf: Certificate PDF bytes
            filename: Attachment filename

        Returns:
            EmailOutcome; `skipped` carries the reason when sending is disabled

        Raises:
            EmailError: If there are no (valid) recipients or the send fails
        """
        if not send_enabled:
            logger.info(f"Email sending disabled: sscc={sscc}")
            return EmailOutcome(sent=False, skipped=EMAIL_DISABLED_REASON)

        if not addresses:
            raise EmailError(f"no email recipients configured for SSCC: {sscc}")

        recipients = valid_recipients(addresses)
        if not recipients:
            raise EmailError(f"no valid email addresses for SSCC: {sscc}")

        logger.info(f"Sending COC email: sscc={sscc}, recipients={recipients}")
        message = build_coc_message(self.config.from_address, recipients, sscc, pdf, filename)
        await self.send(message)
        logger.info(f"Email sent: sscc={sscc}")
        return EmailOutcome(sent=True, recipients=recipients)
