"""Entry points for pam_python.

pam_python loads a single file, so the stack points at the
``scripts/pam_aurora_email.py`` shim, which re-exports these hooks::

    auth required pam_python.so /usr/lib/aurora/pam_aurora_email.py config=/etc/aurora/email.conf
"""

from __future__ import annotations

import logging
from typing import Optional

from .config import DEFAULT_CONFIG_PATH, SettingsProvider
from .exceptions import ConversationError, IdentityError
from .models import AuthOutcome, Reply, Verdict
from .session import AuthSessionController

logger = logging.getLogger(__name__)


class PamIdentity:
    """Login lookup through the PAM handle."""

    def __init__(self, pamh) -> None:
        self.pamh = pamh

    def get_login(self) -> str:
        try:
            login = self.pamh.get_user("login: ")
        except self.pamh.exception as exc:
            raise IdentityError(exc.pam_result, str(exc)) from exc
        if not login:
            raise IdentityError(self.pamh.PAM_USER_UNKNOWN, "empty login")
        return login


class PamConversation:
    """Notices and prompts through the application's PAM conversation function."""

    def __init__(self, pamh) -> None:
        self.pamh = pamh

    def notify_error(self, text: str) -> None:
        self._converse(self.pamh.PAM_ERROR_MSG, text)

    def prompt(self, text: str) -> Optional[Reply]:
        response = self._converse(self.pamh.PAM_PROMPT_ECHO_ON, text)
        if response is None:
            return None
        return Reply(text=response.resp)

    def _converse(self, style: int, text: str):
        try:
            return self.pamh.conversation(self.pamh.Message(style, text))
        except self.pamh.exception as exc:
            raise ConversationError("[ERROR] Unable to converse with PAM", str(exc)) from exc


def parse_module_args(argv) -> dict[str, str]:
    """``key=value`` module arguments; argv[0] is the module path."""
    options: dict[str, str] = {}
    for arg in list(argv)[1:]:
        key, sep, value = arg.partition("=")
        if sep:
            options[key.strip()] = value.strip()
    return options


def to_pam_code(pamh, outcome: AuthOutcome) -> int:
    if outcome.verdict is Verdict.SUCCESS:
        return pamh.PAM_SUCCESS
    if outcome.verdict is Verdict.IDENTITY_ERROR and outcome.passthrough_code is not None:
        return outcome.passthrough_code
    if outcome.verdict is Verdict.CONVERSATION_ERROR:
        return pamh.PAM_CONV_ERR
    return pamh.PAM_AUTH_ERR


def pam_sm_authenticate(pamh, flags, argv):
    options = parse_module_args(argv)
    controller = AuthSessionController(
        SettingsProvider(options.get("config", DEFAULT_CONFIG_PATH)),
        PamIdentity(pamh),
        PamConversation(pamh),
    )
    outcome = controller.authenticate(
        disallow_null=bool(flags & pamh.PAM_DISALLOW_NULL_AUTHTOK)
    )
    logger.debug("pam_sm_authenticate finished with %s", outcome.verdict.value)
    return to_pam_code(pamh, outcome)


def pam_sm_setcred(pamh, flags, argv):
    return pamh.PAM_SUCCESS


def pam_sm_acct_mgmt(pamh, flags, argv):
    return pamh.PAM_AUTH_ERR
