# corgi_buddy/core/security.py
"""
Bearer tokens for Mini App sessions.

Tokens are issued after Telegram init-data verification and carry the
Telegram user id as `sub` plus the profile fields the bot greets users with.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional, Tuple

from jose import JWTError, jwt

from corgi_buddy.core.config import get_settings

MAX_FIRST_NAME = 64


def create_access_token(
    user_id: int,
    *,
    first_name: str,
    username: Optional[str] = None,
    expires_minutes: Optional[int] = None,
) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "first_name": first_name,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expires_minutes or settings.jwt_access_token_minutes)).timestamp()),
    }
    if username:
        payload["username"] = username
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])


def telegram_identity(payload: Dict[str, Any]) -> Tuple[int, str, Optional[str]]:
    """(user_id, first_name, username) from decoded claims; raises JWTError when the id is unusable."""
    raw_id = payload.get("sub") or payload.get("id")
    try:
        user_id = int(raw_id)
    except (TypeError, ValueError):
        raise JWTError("Token missing user id")
    if user_id <= 0:
        raise JWTError("Token user id must be positive")

    first_name = str(payload.get("first_name") or "Unknown")[:MAX_FIRST_NAME]
    username = payload.get("username") or None
    return user_id, first_name, username
