"""Line-by-line rendering of the notification email."""

from __future__ import annotations

from typing import Iterator

from .models import EmailMessage

CRLF = "\r\n"
# Kept verbatim; the header has never carried the send time.
DATE_HEADER = "Date: Mon, 29 Nov 2010 21:54:29 +1100"
SENDER_DISPLAY_SUFFIX = "(PAM Aurora)"


def compose_lines(message: EmailMessage) -> Iterator[str]:
    """Yield the nine CRLF-terminated lines of ``message``, once.

    The generator is single use: once exhausted it only raises
    ``StopIteration``. Closing it part way stops further lines.
    """
    yield DATE_HEADER + CRLF
    yield f"To: {message.recipient}{CRLF}"
    yield f"From: {message.sender} {SENDER_DISPLAY_SUFFIX}{CRLF}"
    yield f"Message-ID: {message.message_id}{CRLF}"
    yield f"Subject: {message.subject}{CRLF}"
    yield CRLF
    yield f"Hi {message.login},{CRLF}"
    yield CRLF
    yield f"Your authentication code is {message.code}.{CRLF}"


def render_message(message: EmailMessage) -> str:
    """Return the whole header and body document."""
    return "".join(compose_lines(message))
