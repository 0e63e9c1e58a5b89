"""
Session cookie helpers.

The session is a small JSON document (workspace access token plus the
workspace profile) encrypted with Fernet, so the browser can hold it but
never read or alter it.
"""

import base64
import hashlib
import json
import logging
import os
from typing import Any, Optional

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)

SESSION_SECRET = os.getenv("SESSION_SECRET", "change-me-in-production-please")
SESSION_COOKIE_NAME = os.getenv("SESSION_COOKIE_NAME", "timesheet_session")
SESSION_MAX_AGE_HOURS = int(os.getenv("SESSION_MAX_AGE_HOURS", "168"))
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "false").lower() in ("1", "true", "yes")


def _fernet(secret: Optional[str] = None) -> Fernet:
    digest = hashlib.sha256((secret or SESSION_SECRET).encode("utf-8")).digest()
    return Fernet(base64.urlsafe_b64encode(digest))


def encode_session(data: dict[str, Any], secret: Optional[str] = None) -> str:
    payload = json.dumps(data, separators=(",", ":"), default=str).encode("utf-8")
    return _fernet(secret).encrypt(payload).decode("ascii")


def decode_session(
    token: Optional[str],
    secret: Optional[str] = None,
    max_age_seconds: Optional[int] = None,
) -> Optional[dict[str, Any]]:
    """Decrypt a session cookie. Returns None when missing, tampered or expired."""
    if not token:
        return None

    ttl = max_age_seconds if max_age_seconds is not None else SESSION_MAX_AGE_HOURS * 3600
    try:
        raw = _fernet(secret).decrypt(token.encode("ascii"), ttl=ttl)
    except (InvalidToken, UnicodeEncodeError):
        logger.info("Rejected invalid or expired session cookie")
        return None

    try:
        data = json.loads(raw)
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def session_cookie_kwargs() -> dict[str, Any]:
    return {
        "key": SESSION_COOKIE_NAME,
        "max_age": SESSION_MAX_AGE_HOURS * 3600,
        "httponly": True,
        "samesite": "lax",
        "secure": SESSION_COOKIE_SECURE,
        "path": "/",
    }
