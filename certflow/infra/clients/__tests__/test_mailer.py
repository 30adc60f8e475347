"""
Tests for the SMTP mailer with a fake SMTP connection.
"""
import smtplib

import pytest

from certflow.infra.clients import EmailError, Mailer, SmtpConfig
from certflow.infra.clients.mailer import EMAIL_DISABLED_REASON, valid_recipients


class FakeSMTP:
    """Records the SMTP exchange instead of opening a socket."""

    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.calls = []
        self.messages = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, user, password):
        self.calls.append(("login", user, password))

    def send_message(self, message):
        self.calls.append("send_message")
        self.messages.append(message)


class RefusingSMTP(FakeSMTP):
    def send_message(self, message):
        raise smtplib.SMTPRecipientsRefused({})


@pytest.fixture
def config() -> SmtpConfig:
    return SmtpConfig(host="smtp.example.com", port=587, user="resend", password="secret",
                      from_address="noreply@example.com")


@pytest.fixture(autouse=True)
def reset_fake():
    FakeSMTP.instances = []


@pytest.mark.asyncio
async def test_sends_message_with_attachment(config):
    mailer = Mailer(config, smtp_factory=FakeSMTP)

    outcome = await mailer.send_coc_email(
        "00012345", True, ["ops@example.com", " buyer@example.org "], b"%PDF", "COC-00012345.pdf",
    )

    assert outcome.sent
    assert outcome.recipients == ["ops@example.com", "buyer@example.org"]
    [smtp] = FakeSMTP.instances
    assert (smtp.host, smtp.port) == ("smtp.example.com", 587)
    assert smtp.calls == ["starttls", ("login", "resend", "secret"), "send_message"]

    [message] = smtp.messages
    assert message["Subject"] == "Certificate of Conformance - SSCC 00012345"
    assert message["To"] == "ops@example.com, buyer@example.org"
    assert message["From"] == "noreply@example.com"
    [attachment] = list(message.iter_attachments())
    assert attachment.get_filename() == "COC-00012345.pdf"
    assert attachment.get_content_type() == "application/pdf"
    assert attachment.get_content() == b"%PDF"
    body = message.get_body(preferencelist=("plain",)).get_content()
    assert "Certificate of Conformance for SSCC: 00012345" in body


@pytest.mark.asyncio
async def test_disabled_sending_is_skipped_not_failed(config):
    mailer = Mailer(config, smtp_factory=FakeSMTP)

    outcome = await mailer.send_coc_email("00012345", False, ["ops@example.com"], b"%PDF", "COC.pdf")

    assert not outcome.sent
    assert outcome.skipped == EMAIL_DISABLED_REASON
    assert FakeSMTP.instances == []


@pytest.mark.asyncio
async def test_no_recipients_is_an_error(config):
    mailer = Mailer(config, smtp_factory=FakeSMTP)

    with pytest.raises(EmailError, match="no email recipients"):
        await mailer.send_coc_email("00012345", True, [], b"%PDF", "COC.pdf")


@pytest.mark.asyncio
async def test_no_valid_recipients_is_an_error(config):
    mailer = Mailer(config, smtp_factory=FakeSMTP)

    with pytest.raises(EmailError, match="no valid email addresses"):
        await mailer.send_coc_email("00012345", True, ["not-an-address", "a@b"], b"%PDF", "COC.pdf")


@pytest.mark.asyncio
async def test_smtp_failure_wrapped(config):
    mailer = Mailer(config, smtp_factory=RefusingSMTP)

    with pytest.raises(EmailError, match="SMTP send failed"):
        await mailer.send_coc_email("00012345", True, ["ops@example.com"], b"%PDF", "COC.pdf")


def test_valid_recipients_drops_invalid_addresses():
    assert valid_recipients([" a.b+c@example.co.uk ", "bad@", "x@y.z", "ok@example.com"]) == [
        "a.b+c@example.co.uk",
        "ok@example.com",
    ]
