"""SQLite-backed directory mapping logins to notification addresses."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path

import sqlite_utils
from sqlite_utils.db import NotFoundError

from .exceptions import DirectoryError, DirectoryFailure
from .models import MAX_EMAIL_LENGTH

logger = logging.getLogger(__name__)


class DirectoryStore:
    """Read logins from the ``emails`` table; write access is for administration only."""

    TABLE = "emails"

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)

    def lookup(self, login: str) -> str:
        """Return the stored address for ``login`` or raise :class:`DirectoryError`."""
        if not self.db_path.is_file():
            logger.error("Directory %s does not exist", self.db_path)
            raise DirectoryError(
                DirectoryFailure.STORE_UNAVAILABLE, "[ERROR] Unable to open directory"
            )

        db = None
        try:
            db = self._open()
            table = db[self.TABLE]
            if not table.exists():
                raise self._not_found(login)
            row = table.get(login)
        except NotFoundError:
            raise self._not_found(login) from None
        except sqlite3.DatabaseError as exc:
            logger.error("Directory %s is unreadable: %s", self.db_path, exc)
            raise DirectoryError(
                DirectoryFailure.STORE_UNAVAILABLE, "[ERROR] Unable to read directory", str(exc)
            ) from exc
        finally:
            if db is not None:
                db.close()

        stored = row.get("email")
        if not isinstance(stored, str):
            raise self._not_found(login)
        if len(stored) > MAX_EMAIL_LENGTH:
            logger.warning(
                "Directory address for %s is %s characters long", login, len(stored)
            )
            raise DirectoryError(
                DirectoryFailure.TOO_LONG, "[ERROR] Email address too long (max 320 chars)"
            )
        return stored

    def assign(self, login: str, email: str) -> None:
        """Create or replace the record for ``login``."""
        if len(email) > MAX_EMAIL_LENGTH:
            raise DirectoryError(
                DirectoryFailure.TOO_LONG, "[ERROR] Email address too long (max 320 chars)"
            )
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        db = self._open()
        try:
            self._ensure_schema(db)
            db[self.TABLE].upsert({"login": login, "email": email}, pk="login")
        finally:
            db.close()
        logger.info("Directory entry for %s set", login)

    def remove(self, login: str) -> bool:
        """Delete the record for ``login``; return whether one existed."""
        if not self.db_path.is_file():
            return False
        db = self._open()
        try:
            table = db[self.TABLE]
            if not table.exists():
                return False
            try:
                table.delete(login)
            except NotFoundError:
                return False
        finally:
            db.close()
        logger.info("Directory entry for %s removed", login)
        return True

    def _open(self) -> sqlite_utils.Database:
        return sqlite_utils.Database(str(self.db_path))

    def _ensure_schema(self, db: sqlite_utils.Database) -> None:
        db[self.TABLE].create(
            {"login": str, "email": str},
            pk="login",
            if_not_exists=True,
        )

    def _not_found(self, login: str) -> DirectoryError:
        logger.info("No directory entry for %s", login)
        return DirectoryError(DirectoryFailure.NOT_FOUND, "[ERROR] Email not found in directory")
