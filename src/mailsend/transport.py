"""
Encrypted SMTP transport session.

One SmtpTransport lives for the duration of one send call. The connection is
opened lazily on the first submission and dropped after any failure, so the
next attempt reconnects from scratch.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from email.message import Message

from .models import SmtpConfig

logger = logging.getLogger(__name__)

IMPLICIT_TLS_PORT = 465


class SmtpTransport:
    """SMTP session that always uses TLS (implicit on 465, STARTTLS otherwise)."""

    def __init__(self, config: SmtpConfig):
        self.config = config
        self._server: smtplib.SMTP | None = None
        self._closed = False

    def __enter__(self) -> SmtpTransport:
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    @property
    def closed(self) -> bool:
        return self._closed

    def _timeout_kwargs(self) -> dict:
        if self.config.timeout is None:
            return {}
        return {"timeout": self.config.timeout}

    def _connect(self) -> smtplib.SMTP:
        host, port = self.config.host, self.config.port
        context = ssl.create_default_context()

        logger.info("Attempting SMTP connection to %s:%s", host, port)
        if port == IMPLICIT_TLS_PORT:
            server = smtplib.SMTP_SSL(
                host, port, context=context, **self._timeout_kwargs()
            )
        else:
            server = smtplib.SMTP(host, port, **self._timeout_kwargs())
            try:
                server.ehlo()
                # Raises SMTPNotSupportedError when the server does not offer
                # STARTTLS; plaintext submission is never attempted.
                server.starttls(context=context)
                server.ehlo()
            except BaseException:
                _quietly_close(server)
                raise

        try:
            logger.debug("Authenticating as %s", self.config.username)
            server.login(self.config.username, self.config.password)
        except BaseException:
            _quietly_close(server)
            raise
        return server

    def send_message(self, msg: Message, from_addr: str, to_addrs: list[str]) -> None:
        """Submit msg with an explicit envelope, connecting first if needed."""
        if self._closed:
            raise RuntimeError("transport session is closed")
        try:
            if self._server is None:
                self._server = self._connect()
            self._server.send_message(msg, from_addr=from_addr, to_addrs=to_addrs)
        except BaseException:
            self._drop()
            raise

    def _drop(self) -> None:
        if self._server is not None:
            _quietly_close(self._server)
            self._server = None

    def close(self) -> None:
        """Release the session. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._server is not None:
            try:
                self._server.quit()
            except (smtplib.SMTPException, OSError) as e:
                logger.debug("SMTP QUIT failed, closing socket: %s", str(e))
                self._server.close()
            self._server = None


def _quietly_close(server: smtplib.SMTP) -> None:
    try:
        server.close()
    except OSError as e:
        logger.debug("Error closing SMTP connection: %s", str(e))
