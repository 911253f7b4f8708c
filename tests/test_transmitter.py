"""Tests for SMTP submission, against an in-memory SMTP double."""

from __future__ import annotations

import logging
import smtplib
import threading

import pytest

from aurora_email.exceptions import TransmitCancelled, TransmitError
from aurora_email.models import EmailMessage, MailServerConfig
from aurora_email.transmitter import SmtpTransmitter, parse_endpoint


class FakeSMTP:
    """Just enough of smtplib.SMTP to observe one session."""

    instances: list["FakeSMTP"] = []
    starttls_offered = True
    login_error: Exception | None = None
    rcpt_code = 250
    cancel_after: tuple[threading.Event, int] | None = None

    def __init__(self, host, port, **kwargs) -> None:
        self.host = host
        self.port = port
        self.kwargs = kwargs
        self.commands: list[str] = []
        self.payload: list[bytes] = []
        self.replies: list[tuple[int, bytes]] = []
        self.tls = False
        self.closed = False
        self.quit_called = False
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        if not self.closed:
            self.quit()

    def ehlo(self):
        self.commands.append("EHLO")
        return 250, b"ok"

    def has_extn(self, name):
        return name == "starttls" and self.starttls_offered

    def starttls(self, context=None):
        self.commands.append("STARTTLS")
        self.tls = True
        return 220, b"go ahead"

    def login(self, user, password):
        self.commands.append(f"AUTH {user}")
        if self.login_error is not None:
            raise self.login_error
        return 235, b"authenticated"

    def mail(self, sender):
        self.commands.append(f"MAIL FROM:{sender}")
        return 250, b"ok"

    def rcpt(self, recipient):
        self.commands.append(f"RCPT TO:{recipient}")
        return self.rcpt_code, b"recipient"

    def putcmd(self, cmd, args=""):
        self.commands.append(cmd.upper())
        self.replies.append((354, b"end data with <CR><LF>.<CR><LF>"))

    def send(self, data):
        if self.closed:
            raise smtplib.SMTPServerDisconnected("please run connect() first")
        self.payload.append(data)
        if data == b".\r\n":
            self.replies.append((250, b"queued"))
        if self.cancel_after is not None:
            event, count = self.cancel_after
            if len(self.payload) >= count:
                event.set()

    def getreply(self):
        return self.replies.pop(0)

    def close(self):
        self.closed = True

    def quit(self):
        self.quit_called = True
        self.closed = True


class FakeSMTPSSL(FakeSMTP):
    def __init__(self, host, port, context=None, **kwargs) -> None:
        super().__init__(host, port, **kwargs)
        self.tls = True


@pytest.fixture(autouse=True)
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(smtplib, "SMTP_SSL", FakeSMTPSSL)


@pytest.fixture
def message() -> EmailMessage:
    return EmailMessage(
        sender="aurora@example.com",
        recipient="alice@example.com",
        login="alice",
        code="482193",
        message_id="0b8a3c54-2f1e-4d7a-8c9b-1e2f3a4b5c6d",
    )


def server(host: str = "smtps://mail.example.com") -> MailServerConfig:
    return MailServerConfig(host=host, username="aurora@example.com", password="s3cret")


@pytest.mark.parametrize(
    ("host", "hostname", "port", "implicit_tls"),
    [
        ("smtps://mail.example.com", "mail.example.com", 465, True),
        ("smtps://mail.example.com:2465", "mail.example.com", 2465, True),
        ("smtp://mail.example.com", "mail.example.com", 587, False),
        ("smtp://mail.example.com:25", "mail.example.com", 25, False),
        ("mail.example.com", "mail.example.com", 587, False),
        ("mail.example.com:2525", "mail.example.com", 2525, False),
    ],
)
def test_parse_endpoint(host, hostname, port, implicit_tls):
    endpoint = parse_endpoint(host)

    assert (endpoint.hostname, endpoint.port, endpoint.implicit_tls) == (hostname, port, implicit_tls)


@pytest.mark.parametrize("host", ["http://mail.example.com", "smtp://", "smtp://host:notaport"])
def test_parse_endpoint_rejects_bad_hosts(host):
    with pytest.raises(TransmitError):
        parse_endpoint(host)


def test_send_over_implicit_tls_streams_all_lines(message):
    SmtpTransmitter().send(message, server())

    smtp = FakeSMTP.instances[0]
    assert isinstance(smtp, FakeSMTPSSL)
    assert (smtp.host, smtp.port) == ("mail.example.com", 465)
    assert smtp.commands == [
        "AUTH aurora@example.com",
        "MAIL FROM:aurora@example.com",
        "RCPT TO:alice@example.com",
        "DATA",
    ]
    assert len(smtp.payload) == 10
    assert smtp.payload[-1] == b".\r\n"
    body = b"".join(smtp.payload[:-1]).decode()
    assert body.startswith("Date: Mon, 29 Nov 2010 21:54:29 +1100\r\n")
    assert body.endswith("Your authentication code is 482193.\r\n")
    assert smtp.quit_called


def test_send_with_starttls(message):
    SmtpTransmitter(timeout=5).send(message, server("smtp://mail.example.com"))

    smtp = FakeSMTP.instances[0]
    assert smtp.kwargs == {"timeout": 5}
    assert smtp.commands[:3] == ["EHLO", "STARTTLS", "EHLO"]
    assert smtp.tls


def test_no_timeout_by_default(message):
    SmtpTransmitter().send(message, server("smtp://mail.example.com"))

    assert FakeSMTP.instances[0].kwargs == {}


def test_missing_starttls_fails_when_tls_required(message, monkeypatch):
    monkeypatch.setattr(FakeSMTP, "starttls_offered", False)

    with pytest.raises(TransmitError) as excinfo:
        SmtpTransmitter().send(message, server("smtp://mail.example.com"))

    assert excinfo.value.notice == "[ERROR] Email transmission failure"
    smtp = FakeSMTP.instances[0]
    assert not any(cmd.startswith("AUTH") for cmd in smtp.commands)
    assert smtp.closed


def test_authentication_failure_wraps_cause(message, monkeypatch):
    monkeypatch.setattr(
        FakeSMTP, "login_error", smtplib.SMTPAuthenticationError(535, b"bad credentials")
    )

    with pytest.raises(TransmitError) as excinfo:
        SmtpTransmitter().send(message, server())

    assert isinstance(excinfo.value.__cause__, smtplib.SMTPAuthenticationError)
    assert FakeSMTP.instances[0].closed
    assert len(FakeSMTP.instances) == 1


def test_refused_recipient(message, monkeypatch):
    monkeypatch.setattr(FakeSMTP, "rcpt_code", 550)

    with pytest.raises(TransmitError) as excinfo:
        SmtpTransmitter().send(message, server())

    assert isinstance(excinfo.value.__cause__, smtplib.SMTPRecipientsRefused)
    assert FakeSMTP.instances[0].payload == []


def test_connection_failure(message, monkeypatch):
    def refuse(*args, **kwargs):
        raise ConnectionRefusedError("connection refused")

    monkeypatch.setattr(smtplib, "SMTP_SSL", refuse)

    with pytest.raises(TransmitError) as excinfo:
        SmtpTransmitter().send(message, server())

    assert isinstance(excinfo.value.__cause__, ConnectionRefusedError)


def test_cancel_before_connect(message):
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(TransmitCancelled):
        SmtpTransmitter().send(message, server(), cancel=cancel)

    assert FakeSMTP.instances == []


def test_cancel_mid_stream_drops_connection_without_terminator(message, monkeypatch):
    cancel = threading.Event()
    monkeypatch.setattr(FakeSMTP, "cancel_after", (cancel, 3))

    with pytest.raises(TransmitCancelled):
        SmtpTransmitter().send(message, server(), cancel=cancel)

    smtp = FakeSMTP.instances[0]
    assert len(smtp.payload) == 3
    assert b".\r\n" not in smtp.payload
    assert smtp.closed
    assert not smtp.quit_called


def test_leading_dot_is_stuffed(monkeypatch):
    dotted = EmailMessage(
        sender="aurora@example.com",
        recipient="alice@example.com",
        login="alice",
        code="1",
        message_id="id",
    )
    monkeypatch.setattr(
        "aurora_email.transmitter.compose_lines",
        lambda message: (line for line in [".hidden\r\n", "plain\r\n"]),
    )

    SmtpTransmitter().send(dotted, server())

    assert FakeSMTP.instances[0].payload == [b"..hidden\r\n", b"plain\r\n", b".\r\n"]


def test_debug_log_masks_the_code(message, caplog):
    caplog.set_level(logging.DEBUG, logger="aurora_email.transmitter")

    SmtpTransmitter().send(message, server())

    assert "Your authentication code is ******." in caplog.text
    assert "482193" not in caplog.text
    assert "To: alice@example.com" in caplog.text
