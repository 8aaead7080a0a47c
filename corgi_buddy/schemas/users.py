# corgi_buddy/schemas/users.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel

from corgi_buddy.models.user import User
from corgi_buddy.schemas.common import iso


class UserProfile(BaseModel):
    id: int
    telegramUsername: Optional[str] = None
    firstName: str
    tonWalletAddress: Optional[str] = None
    createdAt: Optional[str] = None
    updatedAt: Optional[str] = None

    @classmethod
    def from_model(cls, user: User) -> "UserProfile":
        return cls(
            id=user.id,
            telegramUsername=user.telegram_username,
            firstName=user.first_name,
            tonWalletAddress=user.ton_wallet_address,
            createdAt=iso(user.created_at),
            updatedAt=iso(user.updated_at),
        )


class UserSearchResponse(BaseModel):
    users: List[UserProfile]
