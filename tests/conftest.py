"""
Shared fixtures: a fake SMTP transport, a recording sleep and file opener.
"""

import smtplib

import pytest

from mailsend.models import SendRequest, SmtpConfig


class TransportLog:
    """Records what every FakeTransport created during a test did."""

    def __init__(self, failures=()):
        # Each entry is raised on the matching attempt; None means success
        self.failures = list(failures)
        self.opened = 0
        self.closed = 0
        self.sent = []
        self.envelopes = []
        self.attempts = 0

    def factory(self, config):
        return FakeTransport(self, config)


class FakeTransport:
    def __init__(self, log, config):
        self.log = log
        self.config = config
        log.opened += 1

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    def send_message(self, msg, from_addr, to_addrs):
        self.log.attempts += 1
        if self.log.failures:
            failure = self.log.failures.pop(0)
            if failure is not None:
                raise failure
        self.log.sent.append(msg)
        self.log.envelopes.append((from_addr, list(to_addrs)))

    def close(self):
        self.log.closed += 1


class RecordingOpener:
    """open() replacement that keeps every file object it hands out."""

    def __init__(self):
        self.files = []

    def __call__(self, path, mode="r"):
        f = open(path, mode)
        self.files.append(f)
        return f

    @property
    def all_closed(self):
        return all(f.closed for f in self.files)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def opener():
    return RecordingOpener()


@pytest.fixture
def smtp_config():
    return SmtpConfig(
        host="smtp.example.com", port=587, username="user@example.com", password="secret"
    )


@pytest.fixture
def make_request(smtp_config):
    def _make(**overrides):
        fields = {
            "subject": "Test",
            "body": "Test content",
            "from_display_name": "build-host",
            "to": "r@example.com",
            "smtp": smtp_config,
        }
        fields.update(overrides)
        return SendRequest(**fields)

    return _make


@pytest.fixture
def always_failing():
    return TransportLog(failures=[smtplib.SMTPServerDisconnected("gone")] * 10)


@pytest.fixture
def make_log():
    return TransportLog
