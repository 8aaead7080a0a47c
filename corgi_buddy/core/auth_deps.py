# corgi_buddy/core/auth_deps.py
from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError
from sqlalchemy.orm import Session

from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.core.security import decode_token, telegram_identity
from corgi_buddy.db.session import get_db
from corgi_buddy.models.user import User

bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    user_id: int
    first_name: str
    username: Optional[str] = None


def get_current_principal(
    request: Request,
    creds: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
) -> Principal:
    """Canonical authentication dependency. Claims are read by `telegram_identity`."""
    if creds is None:
        raise HTTPException(status_code=401, detail="Missing bearer token.")

    try:
        user_id, first_name, username = telegram_identity(decode_token(creds.credentials))
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token.")

    principal = Principal(user_id=user_id, first_name=first_name, username=username)
    request.state.principal = principal
    return principal


def get_current_user(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
) -> User:
    return container.users.get_or_create(
        db,
        user_id=principal.user_id,
        first_name=principal.first_name,
        username=principal.username,
    )


def require_admin_key(
    request: Request,
    container: ServiceContainer = Depends(get_container),
) -> None:
    expected = container.settings.admin_api_key
    if not expected:
        raise HTTPException(status_code=403, detail="Admin API is disabled.")
    if not hmac.compare_digest(request.headers.get("X-Admin-Key", ""), expected):
        raise HTTPException(status_code=401, detail="Invalid admin key.")
