"""
Pytest test suite for the mail sender retry loop and resource cleanup.
"""

import smtplib

import pytest

from mailsend.models import DeliveryStatus, SmtpConfig
from mailsend.sender import MAX_ATTEMPTS, MailSender


def make_sender(log, sleeps, opener=open):
    return MailSender(transport_factory=log.factory, sleep=sleeps.append, opener=opener)


def test_send_succeeds_on_first_attempt(make_log, make_request, sleeps):
    log = make_log()
    outcome = make_sender(log, sleeps).send(make_request())

    assert outcome.ok
    assert outcome.status is DeliveryStatus.SENT
    assert outcome.attempts == 1
    assert len(log.sent) == 1
    assert sleeps == []
    assert log.opened == log.closed == 1


@pytest.mark.parametrize(
    "overrides, missing",
    [
        ({"to": ""}, "to"),
        ({"subject": ""}, "subject"),
        ({"body": ""}, "body"),
        ({"smtp": SmtpConfig(host="h", username="", password="p")}, "SMTP_USER"),
        ({"smtp": SmtpConfig(host="h", username="u", password="")}, "SMTP_PASS"),
    ],
)
def test_missing_configuration_makes_no_network_calls(
    make_log, make_request, sleeps, overrides, missing
):
    log = make_log()
    outcome = make_sender(log, sleeps).send(make_request(**overrides))

    assert outcome.status is DeliveryStatus.MISSING_CONFIGURATION
    assert missing in outcome.reason
    assert log.opened == 0
    assert log.attempts == 0
    assert sleeps == []


def test_always_failing_transport_exhausts_attempts(make_request, sleeps, always_failing):
    outcome = make_sender(always_failing, sleeps).send(make_request())

    assert outcome.status is DeliveryStatus.FAILED
    assert outcome.attempts == MAX_ATTEMPTS == 5
    assert always_failing.attempts == 5
    assert sleeps == [1, 2, 4, 8]
    assert "gone" in outcome.reason
    assert always_failing.opened == always_failing.closed == 1


def test_fail_twice_then_succeed(make_log, make_request, sleeps):
    log = make_log(
        failures=[smtplib.SMTPServerDisconnected("x"), ConnectionRefusedError("y"), None]
    )
    outcome = make_sender(log, sleeps).send(make_request())

    assert outcome.ok
    assert outcome.attempts == 3
    assert log.attempts == 3
    assert sleeps == [1, 2]
    assert len(log.sent) == 1


def test_authentication_failure_is_retried(make_log, make_request, sleeps):
    log = make_log(
        failures=[smtplib.SMTPAuthenticationError(535, b"bad credentials")] * 5
    )
    outcome = make_sender(log, sleeps).send(make_request())

    assert outcome.status is DeliveryStatus.FAILED
    assert log.attempts == 5
    assert "bad credentials" in outcome.reason


def test_identical_sends_are_not_deduplicated(make_log, make_request, sleeps):
    log = make_log()
    sender = make_sender(log, sleeps)
    request = make_request()

    assert sender.send(request).ok
    assert sender.send(request).ok
    assert len(log.sent) == 2
    assert log.opened == log.closed == 2


def test_missing_attachment_reported_without_transmission(make_log, make_request, sleeps, opener, tmp_path):
    present = tmp_path / "present.txt"
    present.write_text("data")
    log = make_log()

    outcome = make_sender(log, sleeps, opener).send(
        make_request(
            subject="Report",
            body="see attached",
            attachments=(str(present), "./missing.pdf", "./also-missing.pdf"),
        )
    )

    assert outcome.status is DeliveryStatus.ATTACHMENT_NOT_FOUND
    assert outcome.path == "./missing.pdf"
    assert log.opened == 0
    assert log.sent == []
    assert len(opener.files) == 1
    assert opener.all_closed


@pytest.mark.parametrize("failures", [[None], [OSError("down")] * 5])
def test_handles_and_session_released_on_delivery_paths(
    make_log, make_request, sleeps, opener, tmp_path, failures
):
    paths = []
    for name in ("a.txt", "b.csv"):
        p = tmp_path / name
        p.write_text(name)
        paths.append(str(p))
    log = make_log(failures=failures)

    make_sender(log, sleeps, opener).send(make_request(attachments=tuple(paths)))

    assert len(opener.files) == 2
    assert opener.all_closed
    assert log.opened == log.closed == 1


def test_unexpected_transport_fault_propagates_after_cleanup(make_log, make_request, sleeps, opener, tmp_path):
    p = tmp_path / "a.txt"
    p.write_text("a")
    log = make_log(failures=[ValueError("bug")])

    with pytest.raises(ValueError):
        make_sender(log, sleeps, opener).send(make_request(attachments=(str(p),)))

    assert opener.all_closed
    assert log.opened == log.closed == 1
    assert sleeps == []


def test_credentials_are_not_logged(make_log, make_request, sleeps, caplog):
    caplog.set_level("DEBUG", logger="mailsend")
    make_sender(make_log(), sleeps).send(make_request())

    assert "secret" not in caplog.text
    assert "Password: set" in caplog.text


def test_failed_attempts_logged_as_warnings(make_request, sleeps, always_failing, caplog):
    caplog.set_level("INFO", logger="mailsend")
    make_sender(always_failing, sleeps).send(make_request())

    warnings = [r for r in caplog.records if r.levelname == "WARNING"]
    errors = [r for r in caplog.records if r.levelname == "ERROR"]
    assert len(warnings) == 5
    assert len(errors) == 1


def test_envelope_uses_sender_address_not_from_header(make_log, make_request, sleeps):
    log = make_log()
    request = make_request(from_display_name="Doe, John", from_address="bot@example.com")

    outcome = make_sender(log, sleeps).send(request)

    assert outcome.ok
    assert log.envelopes == [("bot@example.com", ["r@example.com"])]
