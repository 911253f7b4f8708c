"""SMTP submission of the notification email."""

from __future__ import annotations

import logging
import smtplib
import ssl
import threading
from dataclasses import dataclass, replace
from typing import Iterator, Optional
from urllib.parse import urlsplit

from .composer import compose_lines, render_message
from .exceptions import TransmitCancelled, TransmitError
from .models import EmailMessage, MailServerConfig

logger = logging.getLogger(__name__)

SMTPS_PORT = 465
SUBMISSION_PORT = 587


@dataclass
class SmtpEndpoint:
    hostname: str
    port: int
    implicit_tls: bool


def parse_endpoint(host: str) -> SmtpEndpoint:
    """Accept ``smtps://host[:port]``, ``smtp://host[:port]`` or a bare ``host[:port]``."""
    target = host.strip()
    if "://" not in target:
        target = f"smtp://{target}"
    parts = urlsplit(target)
    scheme = parts.scheme.lower()
    if scheme not in ("smtp", "smtps"):
        raise TransmitError(
            "[ERROR] Email transmission failure", f"unsupported mail server scheme {scheme!r}"
        )
    try:
        port = parts.port
    except ValueError as exc:
        raise TransmitError("[ERROR] Email transmission failure", str(exc)) from exc
    if not parts.hostname:
        raise TransmitError(
            "[ERROR] Email transmission failure", f"no hostname in mail server {host!r}"
        )
    implicit_tls = scheme == "smtps"
    default_port = SMTPS_PORT if implicit_tls else SUBMISSION_PORT
    return SmtpEndpoint(hostname=parts.hostname, port=port or default_port, implicit_tls=implicit_tls)


class SmtpTransmitter:
    """Deliver one message over one authenticated, encrypted connection."""

    def __init__(self, timeout: float | None = None) -> None:
        self.timeout = timeout

    def send(
        self,
        message: EmailMessage,
        server: MailServerConfig,
        cancel: Optional[threading.Event] = None,
    ) -> None:
        """Send ``message``; any failure is raised as :class:`TransmitError`. No retries."""
        endpoint = parse_endpoint(server.host)
        lines = compose_lines(message)
        logger.info(
            "Sending validation code for %s to %s via %s:%s",
            message.login,
            message.recipient,
            endpoint.hostname,
            endpoint.port,
        )
        if logger.isEnabledFor(logging.DEBUG):
            masked = replace(message, code="*" * len(message.code))
            logger.debug("Outgoing message:\n%s", render_message(masked))
        try:
            self._check_cancel(cancel)
            with self._connect(endpoint) as smtp:
                self._secure(smtp, endpoint, server)
                smtp.login(server.username, server.password)
                self._submit(smtp, message, lines, cancel)
        except TransmitError:
            raise
        except (smtplib.SMTPException, ssl.SSLError, OSError) as exc:
            logger.error("Email transmission to %s failed: %s", message.recipient, exc)
            raise TransmitError("[ERROR] Email transmission failure", str(exc)) from exc
        finally:
            lines.close()
        logger.info("Validation code for %s delivered to the mail server", message.login)

    def _connect(self, endpoint: SmtpEndpoint) -> smtplib.SMTP:
        kwargs = {} if self.timeout is None else {"timeout": self.timeout}
        if endpoint.implicit_tls:
            return smtplib.SMTP_SSL(
                endpoint.hostname,
                endpoint.port,
                context=ssl.create_default_context(),
                **kwargs,
            )
        return smtplib.SMTP(endpoint.hostname, endpoint.port, **kwargs)

    @staticmethod
    def _secure(smtp: smtplib.SMTP, endpoint: SmtpEndpoint, server: MailServerConfig) -> None:
        if endpoint.implicit_tls:
            return
        smtp.ehlo()
        if not smtp.has_extn("starttls"):
            if server.require_tls:
                raise TransmitError(
                    "[ERROR] Email transmission failure",
                    f"{endpoint.hostname} does not offer STARTTLS",
                )
            logger.warning("%s does not offer STARTTLS; sending in clear", endpoint.hostname)
            return
        smtp.starttls(context=ssl.create_default_context())
        smtp.ehlo()

    def _submit(
        self,
        smtp: smtplib.SMTP,
        message: EmailMessage,
        lines: Iterator[str],
        cancel: Optional[threading.Event],
    ) -> None:
        code, resp = smtp.mail(message.sender)
        if code != 250:
            raise smtplib.SMTPSenderRefused(code, resp, message.sender)
        code, resp = smtp.rcpt(message.recipient)
        if code not in (250, 251):
            raise smtplib.SMTPRecipientsRefused({message.recipient: (code, resp)})

        smtp.putcmd("data")
        code, resp = smtp.getreply()
        if code != 354:
            raise smtplib.SMTPDataError(code, resp)

        for line in lines:
            if cancel is not None and cancel.is_set():
                # Dropping the socket mid-DATA leaves nothing committed on the server.
                smtp.close()
                self._check_cancel(cancel)
            smtp.send(_dot_stuff(line).encode("utf-8"))

        smtp.send(b".\r\n")
        code, resp = smtp.getreply()
        if code != 250:
            raise smtplib.SMTPDataError(code, resp)

    @staticmethod
    def _check_cancel(cancel: Optional[threading.Event]) -> None:
        if cancel is not None and cancel.is_set():
            logger.warning("Email transmission cancelled")
            raise TransmitCancelled("[ERROR] Email transmission failure", "cancelled")


def _dot_stuff(line: str) -> str:
    return "." + line if line.startswith(".") else line
