"""Shared fixtures and collaborator fakes."""

from __future__ import annotations

from pathlib import Path

import pytest

from aurora_email.config import SettingsProvider
from aurora_email.directory import DirectoryStore
from aurora_email.exceptions import ConversationError, IdentityError, TransmitError
from aurora_email.models import Reply


class FixedRandomSource:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.calls = 0

    def read(self, size: int) -> bytes:
        self.calls += 1
        return self.data[:size]


class BrokenRandomSource:
    def read(self, size: int) -> bytes:
        raise OSError("entropy source unavailable")


class FakeIdentity:
    def __init__(self, login: str = "alice", error_code: int | None = None) -> None:
        self.login = login
        self.error_code = error_code

    def get_login(self) -> str:
        if self.error_code is not None:
            raise IdentityError(self.error_code, "no user")
        return self.login


class FakeConversation:
    """Records notices and prompts; replies from a preset answer."""

    NO_REPLY = object()

    def __init__(self, answer=NO_REPLY, fail_prompt: bool = False) -> None:
        self.answer = answer
        self.fail_prompt = fail_prompt
        self.notices: list[str] = []
        self.prompts: list[str] = []

    def notify_error(self, text: str) -> None:
        self.notices.append(text)

    def prompt(self, text: str):
        self.prompts.append(text)
        if self.fail_prompt:
            raise ConversationError("[ERROR] Unable to converse with PAM", "broken pipe")
        if self.answer is self.NO_REPLY:
            return None
        return Reply(text=self.answer)


class FakeTransmitter:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent = []

    def send(self, message, server, cancel=None) -> None:
        self.sent.append((message, server))
        if self.fail:
            raise TransmitError("[ERROR] Email transmission failure", "connection refused")


def code_bytes(value: int) -> bytes:
    return value.to_bytes(4, "little")


def write_settings(path: Path, **overrides) -> Path:
    values = {
        "mail_server_host": "smtps://mail.example.com",
        "mail_server_user": "aurora@example.com",
        "mail_server_pass": "s3cret",
    }
    values.update({key: str(value) for key, value in overrides.items()})
    body = "\n".join(f"{key}={value}" for key, value in values.items() if value != "None")
    path.write_text(body + "\n", encoding="utf-8")
    return path


@pytest.fixture
def directory(tmp_path) -> DirectoryStore:
    store = DirectoryStore(tmp_path / "directory.db")
    store.assign("alice", "alice@example.com")
    return store


@pytest.fixture
def settings_file(tmp_path, directory) -> Path:
    return write_settings(
        tmp_path / "email.conf",
        code_length=6,
        permit_bypass="false",
        directory_path=directory.db_path,
    )


@pytest.fixture
def provider(settings_file) -> SettingsProvider:
    return SettingsProvider(settings_file)
