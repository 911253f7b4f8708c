"""Error taxonomy for the email second factor."""

from __future__ import annotations

from enum import Enum


class AuroraAuthError(Exception):
    """Base class; ``notice`` is the text shown to the user being authenticated."""

    kind = "auth_error"

    def __init__(self, notice: str, detail: str | None = None) -> None:
        super().__init__(detail or notice)
        self.notice = notice
        self.detail = detail


class ConfigError(AuroraAuthError):
    kind = "config_error"


class DirectoryFailure(str, Enum):
    NOT_FOUND = "not_found"
    TOO_LONG = "too_long"
    STORE_UNAVAILABLE = "store_unavailable"


class DirectoryError(AuroraAuthError):
    kind = "directory_error"

    def __init__(self, reason: DirectoryFailure, notice: str, detail: str | None = None) -> None:
        super().__init__(notice, detail)
        self.reason = reason


class RandomnessError(AuroraAuthError):
    kind = "randomness_error"


class TransmitError(AuroraAuthError):
    kind = "transmit_error"


class TransmitCancelled(TransmitError):
    """The caller aborted the send before the message was committed."""


class ConversationError(AuroraAuthError):
    kind = "conversation_error"


class VerificationError(AuroraAuthError):
    kind = "verification_error"


class IdentityError(AuroraAuthError):
    """The identity collaborator failed; ``code`` is handed back to the host untouched."""

    kind = "identity_error"

    def __init__(self, code: int, detail: str | None = None) -> None:
        super().__init__("[ERROR] Unable to get username", detail)
        self.code = code
