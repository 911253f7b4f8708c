"""Orchestration of one email second-factor attempt."""

from __future__ import annotations

import hmac
import logging
import threading
import uuid
from typing import Callable, Optional

from .codegen import generate_code
from .collaborators import Conversation, Identity, RandomSource, SystemRandomSource
from .config import SettingsProvider
from .directory import DirectoryStore
from .exceptions import (
    AuroraAuthError,
    ConversationError,
    IdentityError,
    TransmitError,
    VerificationError,
)
from .models import (
    AuthOutcome,
    AuthSession,
    EmailMessage,
    Reply,
    SessionStatus,
    Verdict,
)
from .transmitter import SmtpTransmitter

logger = logging.getLogger(__name__)

TRANSITIONS = {
    SessionStatus.START: {SessionStatus.CONFIG_LOADED},
    SessionStatus.CONFIG_LOADED: {SessionStatus.IDENTIFIED},
    SessionStatus.IDENTIFIED: {SessionStatus.CODE_GENERATED},
    SessionStatus.CODE_GENERATED: {SessionStatus.EMAIL_SENT, SessionStatus.EMAIL_FAILED},
    SessionStatus.EMAIL_FAILED: {SessionStatus.BYPASS_GRANTED},
    SessionStatus.EMAIL_SENT: {SessionStatus.PROMPT_PENDING},
    SessionStatus.PROMPT_PENDING: {SessionStatus.VERIFIED},
}

BANNER_WIDTH = 80


def build_prompt(login: str) -> str:
    """The boxed greeting shown when asking for the code."""
    border = "#" * BANNER_WIDTH
    blank = "#" + " " * (BANNER_WIDTH - 2) + "#"
    lines = [
        "",
        border,
        blank,
        f"#    Hi {login:<70} #",
        _banner_line("You've just received by email a generated code."),
        _banner_line("This code is only valid for the current authentication."),
        _banner_line("To finish your authentication, thank you to enter this code."),
        blank,
        border,
        "",
        "Please type the code: ",
    ]
    return "\n".join(lines)


def _banner_line(text: str) -> str:
    return f"#    {text:<{BANNER_WIDTH - 6}}#"


class AuthSessionController:
    """Run the configured attempt: settings, login, code, email, prompt, verdict.

    Every collaborator is injected so the flow can be exercised without a
    mail server or a terminal. A controller may run several attempts; each
    :meth:`authenticate` call builds its own :class:`AuthSession`.
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        identity: Identity,
        conversation: Conversation,
        *,
        random_source: Optional[RandomSource] = None,
        transmitter: Optional[SmtpTransmitter] = None,
        directory_factory: Callable[..., DirectoryStore] = DirectoryStore,
        message_id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
        cancel: Optional[threading.Event] = None,
    ) -> None:
        self.settings_provider = settings_provider
        self.identity = identity
        self.conversation = conversation
        self.random_source = random_source or SystemRandomSource()
        self.transmitter = transmitter
        self.directory_factory = directory_factory
        self.message_id_factory = message_id_factory
        self.cancel = cancel

    def authenticate(self, disallow_null: bool = False) -> AuthOutcome:
        session = AuthSession()
        try:
            return self._run(session, disallow_null)
        except IdentityError as exc:
            self._reject(session, exc)
            return AuthOutcome(Verdict.IDENTITY_ERROR, session.status, exc, passthrough_code=exc.code)
        except ConversationError as exc:
            self._reject(session, exc)
            return AuthOutcome(Verdict.CONVERSATION_ERROR, session.status, exc)
        except AuroraAuthError as exc:
            self._reject(session, exc)
            return AuthOutcome(Verdict.AUTH_ERROR, session.status, exc)

    def _run(self, session: AuthSession, disallow_null: bool) -> AuthOutcome:
        settings = self.settings_provider.load()
        session.code_length = settings.code_length
        session.bypass_allowed = settings.permit_bypass
        self._advance(session, SessionStatus.CONFIG_LOADED)

        session.login = self.identity.get_login()
        self._advance(session, SessionStatus.IDENTIFIED)

        session.generated_code = generate_code(session.code_length, self.random_source)
        self._advance(session, SessionStatus.CODE_GENERATED)

        session.email_address = self.directory_factory(settings.directory_path).lookup(session.login)
        message = EmailMessage(
            sender=settings.mail_server_user,
            recipient=session.email_address,
            login=session.login,
            code=session.generated_code,
            message_id=self.message_id_factory(),
        )
        transmitter = self.transmitter or SmtpTransmitter(timeout=settings.smtp_timeout)
        try:
            transmitter.send(message, settings.mail_server(), cancel=self.cancel)
        except TransmitError as exc:
            self._advance(session, SessionStatus.EMAIL_FAILED)
            self._notify(exc.notice)
            if session.bypass_allowed:
                logger.warning(
                    "Code delivery for %s failed; bypass permitted, skipping second factor",
                    session.login,
                )
                self._advance(session, SessionStatus.BYPASS_GRANTED)
                return AuthOutcome(Verdict.SUCCESS, session.status)
            raise TransmitError("[ERROR] Unable to send the code", exc.detail) from exc
        self._advance(session, SessionStatus.EMAIL_SENT)

        self._advance(session, SessionStatus.PROMPT_PENDING)
        reply = self.conversation.prompt(build_prompt(session.login))
        if reply is None:
            raise ConversationError("[ERROR] Unable to converse with PAM", "no response")
        self._verify(session, reply, disallow_null)

        self._advance(session, SessionStatus.VERIFIED)
        logger.info("Second factor verified for %s", session.login)
        return AuthOutcome(Verdict.SUCCESS, session.status)

    @staticmethod
    def _verify(session: AuthSession, reply: Reply, disallow_null: bool) -> None:
        if reply.text is None and disallow_null:
            raise VerificationError("[ERROR] Unable to get the response", "empty response")
        if reply.text is None or not hmac.compare_digest(
            reply.text.encode("utf-8", "surrogatepass"), session.generated_code.encode("utf-8")
        ):
            raise VerificationError("Wrong code, please try again", "code mismatch")

    @staticmethod
    def _advance(session: AuthSession, status: SessionStatus) -> None:
        allowed = TRANSITIONS.get(session.status, set())
        if status not in allowed:
            raise RuntimeError(f"invalid session transition {session.status.value} -> {status.value}")
        logger.debug("Session %s -> %s", session.status.value, status.value)
        session.status = status

    def _reject(self, session: AuthSession, exc: AuroraAuthError) -> None:
        logger.warning(
            "Authentication rejected for %s at %s: %s (%s)",
            session.login or "<unknown>",
            session.status.value,
            exc.kind,
            exc,
        )
        session.status = SessionStatus.REJECTED
        session.error = exc
        self._notify(exc.notice)

    def _notify(self, text: str) -> None:
        try:
            self.conversation.notify_error(text)
        except ConversationError as exc:
            logger.warning("Could not show notice %r: %s", text, exc)
