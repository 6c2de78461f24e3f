import json
import secrets
from typing import Optional

import bcrypt
from itsdangerous import BadSignature, SignatureExpired, TimestampSigner

from app.core.logger import get_logger

logger = get_logger("security")

SESSION_COOKIE = "session"


class SessionSigner:
    """Signs and reads the session cookie. The cookie only names the active account."""

    def __init__(self, secret_key: str, max_age_seconds: int):
        self.signer = TimestampSigner(secret_key)
        self.max_age_seconds = max_age_seconds

    def sign(self, account_id: str, username: str) -> str:
        payload = json.dumps({"account_id": account_id, "username": username})
        return self.signer.sign(payload.encode("utf-8")).decode("utf-8")

    def read(self, cookie: Optional[str]) -> Optional[dict]:
        if not cookie:
            return None
        try:
            raw = self.signer.unsign(cookie, max_age=self.max_age_seconds)
            data = json.loads(raw)
        except SignatureExpired:
            logger.info("Expired session cookie")
            return None
        except (BadSignature, ValueError):
            logger.warning("Rejected tampered session cookie")
            return None
        if not isinstance(data, dict) or not data.get("account_id"):
            return None
        return data


def verify_settlement_key(key: Optional[str], key_hash: str) -> bool:
    """Check the results-feed key against its bcrypt hash. No hash configured means no access."""
    if not key or not key_hash:
        return False
    try:
        return bcrypt.checkpw(key.encode("utf-8"), key_hash.encode("utf-8"))
    except ValueError:
        logger.error("Configured settlement key hash is not a valid bcrypt hash")
        return False


def new_secret_key() -> str:
    return secrets.token_urlsafe(32)
