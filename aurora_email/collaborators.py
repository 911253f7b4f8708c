"""Interfaces of the collaborators the controller talks to."""

from __future__ import annotations

import os
from typing import Optional, Protocol

from .models import Reply


class Identity(Protocol):
    def get_login(self) -> str:
        """Return the login being authenticated or raise ``IdentityError``."""


class Conversation(Protocol):
    def notify_error(self, text: str) -> None:
        """Show an error notice to the user."""

    def prompt(self, text: str) -> Optional[Reply]:
        """Prompt with visible echo; ``None`` means no response was collected."""


class RandomSource(Protocol):
    def read(self, size: int) -> bytes:
        ...


class SystemRandomSource:
    """Operating system entropy (``/dev/urandom`` or platform equivalent)."""

    def read(self, size: int) -> bytes:
        return os.urandom(size)
