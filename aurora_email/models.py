"""Typed containers shared across the authentication flow."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from .exceptions import AuroraAuthError

MAX_EMAIL_LENGTH = 320
DEFAULT_CODE_LENGTH = 8
MESSAGE_SUBJECT = "Your validation code"


class SessionStatus(str, Enum):
    """Progress of one authentication attempt; each state is entered at most once."""

    START = "start"
    CONFIG_LOADED = "config_loaded"
    IDENTIFIED = "identified"
    CODE_GENERATED = "code_generated"
    EMAIL_SENT = "email_sent"
    EMAIL_FAILED = "email_failed"
    BYPASS_GRANTED = "bypass_granted"
    PROMPT_PENDING = "prompt_pending"
    VERIFIED = "verified"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.BYPASS_GRANTED, SessionStatus.VERIFIED, SessionStatus.REJECTED)


class Verdict(str, Enum):
    """What the host framework is told."""

    SUCCESS = "success"
    AUTH_ERROR = "auth_error"
    CONVERSATION_ERROR = "conversation_error"
    IDENTITY_ERROR = "identity_error"


@dataclass
class AuthSession:
    """State of a single attempt. Never persisted."""

    code_length: int = DEFAULT_CODE_LENGTH
    bypass_allowed: bool = False
    login: str = ""
    email_address: str = ""
    generated_code: str = ""
    status: SessionStatus = SessionStatus.START
    error: Optional[AuroraAuthError] = None


@dataclass
class EmailMessage:
    """The single notification sent for a session."""

    sender: str
    recipient: str
    login: str
    code: str
    message_id: str
    subject: str = MESSAGE_SUBJECT


@dataclass
class MailServerConfig:
    """Submission server credentials, built for one send."""

    host: str
    username: str
    password: str = field(repr=False)
    require_tls: bool = True


@dataclass
class Reply:
    """A user response collected by the conversation collaborator."""

    text: Optional[str]


@dataclass
class AuthOutcome:
    """Final result of :meth:`AuthSessionController.authenticate`."""

    verdict: Verdict
    status: SessionStatus
    error: Optional[AuroraAuthError] = None
    passthrough_code: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.verdict is Verdict.SUCCESS

    @property
    def error_kind(self) -> str | None:
        return self.error.kind if self.error is not None else None
