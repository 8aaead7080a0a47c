# corgi_buddy/schemas/common.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel


def iso(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 in UTC; SQLite hands back naive datetimes that are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


class MessageResponse(BaseModel):
    success: bool = True
    message: str
