"""
Session/identity. Binds at most one account as active. Not a security boundary:
there are no passwords, login by username either creates the account or
reattaches the existing one.
"""

import re
import sqlite3
from typing import Optional

from app.config import AppConfig
from app.core.database import Database
from app.core.exceptions import InvalidSelection, NotAuthenticated
from app.core.logger import get_logger
from app.core.models import Account
from app.core.money import to_cents

logger = get_logger("session")

USERNAME_RE = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
MAX_EMAIL_LENGTH = 254


class Session:
    def __init__(self, db: Database, config: AppConfig, account_id: Optional[str] = None):
        self.db = db
        self.config = config
        self.account_id = None
        if account_id and db.get_account(account_id):
            self.account_id = account_id

    @property
    def is_authenticated(self) -> bool:
        return self.account_id is not None

    def require_account_id(self) -> str:
        if not self.is_authenticated:
            raise NotAuthenticated()
        return self.account_id

    def current_account(self) -> Account:
        row = self.db.get_account(self.require_account_id())
        if row is None:
            # Account vanished underneath the session
            self.account_id = None
            raise NotAuthenticated()
        return Account.from_row(row)

    def login(self, username: str, email: str = "") -> Account:
        """
        Create the account on first login, seeded with the starting bonus,
        or reattach the existing one.
        """
        username = (username or "").strip()
        email = (email or "").strip()
        if not USERNAME_RE.match(username):
            raise InvalidSelection(
                "Username must be 3-20 characters: letters, numbers and underscores"
            )
        if len(email) > MAX_EMAIL_LENGTH:
            raise InvalidSelection("Email is too long")

        existing = self.db.get_account_by_username(username)
        if existing:
            row = self.db.touch_account(existing["id"], email or existing["email"])
            logger.info(f"Account reattached: {username}")
        else:
            try:
                row = self.db.create_account(
                    username, email, to_cents(self.config.economy.starting_balance)
                )
            except sqlite3.IntegrityError:
                # Lost a race with a concurrent first login under the same name
                row = self.db.get_account_by_username(username)

        self.account_id = row["id"]
        return Account.from_row(row)

    def logout(self):
        """Drop the active binding. The account and its history stay."""
        if self.account_id:
            logger.info("Logged out", extra={"account_id": self.account_id})
        self.account_id = None
