"""
Value objects passed between the configuration layer, the CLI and the sender.
"""

from __future__ import annotations

from email.utils import formataddr
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class SmtpConfig(BaseModel):
    """Resolved SMTP endpoint and credentials."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = 587
    username: str = ""
    password: str = Field("", repr=False)
    # Per-attempt socket timeout in seconds; None leaves smtplib's default
    timeout: float | None = 30.0


class SendRequest(BaseModel):
    """A fully resolved request to send one email to one recipient."""

    model_config = ConfigDict(frozen=True)

    subject: str
    body: str
    is_html: bool = False
    from_display_name: str
    from_address: str = ""
    to: str = ""
    attachments: tuple[str, ...] = ()
    smtp: SmtpConfig

    @property
    def sender_address(self) -> str:
        return self.from_address or self.smtp.username

    @property
    def from_header(self) -> str:
        return formataddr((self.from_display_name, self.sender_address))


class DeliveryStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    MISSING_CONFIGURATION = "missing_configuration"
    ATTACHMENT_NOT_FOUND = "attachment_not_found"


class DeliveryOutcome(BaseModel):
    """Terminal result of one send call."""

    model_config = ConfigDict(frozen=True)

    status: DeliveryStatus
    reason: str = ""
    attempts: int = 0
    path: str | None = None

    @property
    def ok(self) -> bool:
        return self.status is DeliveryStatus.SENT

    @classmethod
    def sent(cls, attempts: int) -> DeliveryOutcome:
        return cls(status=DeliveryStatus.SENT, attempts=attempts)

    @classmethod
    def failed(cls, reason: str, attempts: int) -> DeliveryOutcome:
        return cls(status=DeliveryStatus.FAILED, reason=reason, attempts=attempts)

    @classmethod
    def missing_configuration(cls, reason: str) -> DeliveryOutcome:
        return cls(status=DeliveryStatus.MISSING_CONFIGURATION, reason=reason)

    @classmethod
    def attachment_not_found(cls, path: str) -> DeliveryOutcome:
        return cls(
            status=DeliveryStatus.ATTACHMENT_NOT_FOUND,
            reason=f"Attachment not found: {path}",
            path=path,
        )
