"""Run the email second factor on a terminal and maintain the directory."""

from __future__ import annotations

import argparse
import getpass
import logging
import sys
from pathlib import Path
from typing import Optional

# Ensure project root is on sys.path when running as a script
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from aurora_email.config import DEFAULT_CONFIG_PATH, DEFAULT_DIRECTORY_PATH, SettingsProvider
from aurora_email.directory import DirectoryStore
from aurora_email.exceptions import ConfigError, DirectoryError
from aurora_email.models import Reply
from aurora_email.session import AuthSessionController


class TerminalIdentity:
    """Login given on the command line, else the user running the script."""

    def __init__(self, login: str | None) -> None:
        self.login = login

    def get_login(self) -> str:
        return self.login or getpass.getuser()


class TerminalConversation:
    """Notices on stderr, prompts through ``input``."""

    def notify_error(self, text: str) -> None:
        print(text, file=sys.stderr)

    def prompt(self, text: str) -> Optional[Reply]:
        try:
            return Reply(text=input(text))
        except EOFError:
            return None


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Email one-time code second factor.")
    parser.add_argument(
        "--config", type=Path, default=DEFAULT_CONFIG_PATH, help="Settings file (key=value)"
    )
    parser.add_argument("--log-level", help="Override the log_level setting")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Run one authentication attempt")
    login.add_argument("--user", help="Login to authenticate (defaults to the current user)")
    login.add_argument(
        "--disallow-null",
        action="store_true",
        help="Reject an empty response with a dedicated notice",
    )

    assign = sub.add_parser("assign", help="Set the notification address of a login")
    assign.add_argument("login")
    assign.add_argument("email")
    assign.add_argument("--directory", type=Path, help="Directory database path")

    remove = sub.add_parser("remove", help="Delete a login from the directory")
    remove.add_argument("login")
    remove.add_argument("--directory", type=Path, help="Directory database path")
    return parser


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def resolve_directory(args: argparse.Namespace, provider: SettingsProvider) -> Path:
    if args.directory:
        return args.directory
    try:
        return provider.load().directory_path
    except ConfigError:
        return DEFAULT_DIRECTORY_PATH


def resolve_log_level(args: argparse.Namespace, provider: SettingsProvider) -> str:
    if args.log_level:
        return args.log_level
    try:
        return provider.load().log_level
    except ConfigError:
        return "INFO"


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    provider = SettingsProvider(args.config)
    configure_logging(resolve_log_level(args, provider))

    if args.command == "login":
        controller = AuthSessionController(
            provider, TerminalIdentity(args.user), TerminalConversation()
        )
        outcome = controller.authenticate(disallow_null=args.disallow_null)
        logging.info(
            "Authentication finished: verdict=%s status=%s error=%s",
            outcome.verdict.value,
            outcome.status.value,
            outcome.error_kind,
        )
        return 0 if outcome.succeeded else 1

    store = DirectoryStore(resolve_directory(args, provider))
    if args.command == "assign":
        try:
            store.assign(args.login, args.email)
        except DirectoryError as exc:
            print(exc.notice, file=sys.stderr)
            return 1
        return 0

    if not store.remove(args.login):
        print(f"{args.login} is not in the directory", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
