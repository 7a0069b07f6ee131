"""
Mail sender with retry logic.

Validates attachments, builds the message and submits it through an encrypted
SMTP session, retrying failed submissions with exponential backoff. Every
attachment handle and the transport session are released before returning.
"""

from __future__ import annotations

import itertools
import logging
import smtplib
import time
from collections.abc import Callable, Sequence
from contextlib import ExitStack
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate
from importlib.metadata import PackageNotFoundError, version

from .attachments import AttachmentHandle, validate_attachments
from .config import Settings, get_settings
from .errors import (
    AttachmentNotFoundError,
    DeliveryError,
    MissingConfigurationError,
)
from .models import DeliveryOutcome, SendRequest, SmtpConfig
from .transport import SmtpTransport

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 5
INITIAL_DELAY = 1  # seconds, doubled after every failed attempt

# Failures treated as retryable: authentication, TLS, network, server rejection
RETRYABLE_ERRORS = (smtplib.SMTPException, OSError)

try:
    __version__ = version("mailsend")
except PackageNotFoundError:  # running from a source checkout
    __version__ = "0.0.0"

MAILER = f"mailsend/{__version__}"


def _mask(value: str) -> str:
    return "set" if value else "not set"


def build_message(
    request: SendRequest, attachments: Sequence[AttachmentHandle] = ()
) -> MIMEMultipart:
    """
    Build the outgoing message.

    Args:
        request: Resolved send request
        attachments: Open attachment handles, attached in the given order

    Returns:
        MIME message ready for submission
    """
    msg = MIMEMultipart()
    msg["From"] = request.from_header
    msg["To"] = request.to
    msg["Subject"] = request.subject
    msg["Date"] = formatdate(localtime=True)
    msg["X-Mailer"] = MAILER

    subtype = "html" if request.is_html else "plain"
    msg.attach(MIMEText(request.body, subtype, "utf-8"))

    for handle in attachments:
        main_type, sub_type = handle.content_type.split("/", 1)
        part = MIMEBase(main_type, sub_type)
        part.set_payload(handle.read())
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=handle.filename)
        msg.attach(part)
        logger.debug("Attached %s (%s)", handle.filename, handle.content_type)

    return msg


class MailSender:
    """Sends one SendRequest per call through a fresh transport session."""

    def __init__(
        self,
        transport_factory: Callable[[SmtpConfig], SmtpTransport] = SmtpTransport,
        sleep: Callable[[float], None] = time.sleep,
        opener=open,
    ):
        self.transport_factory = transport_factory
        self.sleep = sleep
        self.opener = opener

    def _check_request(self, request: SendRequest) -> None:
        required = {
            "subject": request.subject,
            "body": request.body,
            "to": request.to,
            "SMTP_USER": request.smtp.username,
            "SMTP_PASS": request.smtp.password,
        }
        missing = [name for name, value in required.items() if not value]
        if missing:
            raise MissingConfigurationError(missing)

    def _deliver(
        self, transport: SmtpTransport, msg, from_addr: str, to_addrs: list[str]
    ) -> int:
        """Run the retry loop. Returns the number of attempts made."""
        delay = INITIAL_DELAY
        for attempt in itertools.count(1):
            try:
                transport.send_message(msg, from_addr, to_addrs)
                return attempt
            except RETRYABLE_ERRORS as exc:
                logger.warning(
                    "SMTP failure on attempt %d/%d: %s", attempt, MAX_ATTEMPTS, exc
                )
                if attempt >= MAX_ATTEMPTS:
                    raise DeliveryError(exc, attempt) from exc
                logger.info("Retrying in %s seconds", delay)
                self.sleep(delay)
                delay *= 2

    def send(self, request: SendRequest) -> DeliveryOutcome:
        """
        Send the request, retrying transport failures.

        Never raises for missing configuration, missing attachments or
        transport failures; those are reported through the returned outcome.

        Args:
            request: Resolved send request

        Returns:
            DeliveryOutcome describing how the call ended
        """
        logger.debug(
            "Send parameters - Subject: %s, HTML: %s, From: %s, To: %s, "
            "Attachments: %s, Server: %s:%s, Username: %s, Password: %s",
            request.subject,
            request.is_html,
            request.from_header,
            request.to,
            list(request.attachments),
            request.smtp.host,
            request.smtp.port,
            _mask(request.smtp.username),
            _mask(request.smtp.password),
        )

        try:
            self._check_request(request)
        except MissingConfigurationError as e:
            logger.error("%s", str(e))
            return DeliveryOutcome.missing_configuration(str(e))

        try:
            with ExitStack() as stack:
                logger.info("Validating %d attachment(s)", len(request.attachments))
                handles = stack.enter_context(
                    validate_attachments(request.attachments, opener=self.opener)
                )
                msg = build_message(request, handles)
                transport = stack.enter_context(self.transport_factory(request.smtp))
                attempts = self._deliver(
                    transport, msg, request.sender_address, [request.to]
                )
        except AttachmentNotFoundError as e:
            return DeliveryOutcome.attachment_not_found(e.path)
        except DeliveryError as e:
            logger.error(
                "Email to %s failed after %d attempts: %s",
                request.to,
                e.attempts,
                e.last_error,
            )
            return DeliveryOutcome.failed(str(e.last_error), e.attempts)

        logger.info("Email sent successfully to %s (attempt %d)", request.to, attempts)
        return DeliveryOutcome.sent(attempts)


def send(
    subject: str,
    body: str,
    is_html: bool = False,
    from_display_name: str | None = None,
    to: str | None = None,
    attachments: Sequence[str] = (),
    settings: Settings | None = None,
    sender: MailSender | None = None,
) -> DeliveryOutcome:
    """
    Send an email using settings from the environment for anything not given.

    Args:
        subject: Email subject
        body: Email body (HTML when is_html is true)
        is_html: Send the body as text/html instead of text/plain
        from_display_name: Sender display name, defaults to EMAIL_FROM_NAME or the host name
        to: Recipient address, defaults to EMAIL_TO
        attachments: File paths to attach, in order
        settings: Settings to use instead of reading the environment
        sender: MailSender to use instead of a default one

    Returns:
        DeliveryOutcome
    """
    settings = settings or get_settings()
    request = SendRequest(
        subject=subject,
        body=body,
        is_html=is_html,
        from_display_name=from_display_name or settings.display_name,
        from_address=settings.from_address,
        to=to or settings.email_to,
        attachments=tuple(attachments),
        smtp=settings.smtp_config(),
    )
    return (sender or MailSender()).send(request)
