# corgi_buddy/schemas/buddy.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, Field

from corgi_buddy.models.buddy_pair import BuddyPair
from corgi_buddy.models.user import User
from corgi_buddy.schemas.common import iso
from corgi_buddy.schemas.users import UserProfile


class BuddyRequestIn(BaseModel):
    targetUserId: Optional[int] = Field(default=None, gt=0)
    username: Optional[str] = Field(default=None, min_length=1, max_length=64)


class BuddyPairIdIn(BaseModel):
    buddyPairId: int = Field(..., gt=0)


class BuddyCancelIn(BaseModel):
    buddyPairId: Optional[int] = Field(default=None, gt=0)


class BuddyPairOut(BaseModel):
    id: int
    buddy: Optional[UserProfile] = None
    status: str
    initiatedBy: int
    createdAt: Optional[str] = None
    confirmedAt: Optional[str] = None

    @classmethod
    def from_model(cls, pair: BuddyPair, buddy: Optional[User]) -> "BuddyPairOut":
        return cls(
            id=pair.id,
            buddy=UserProfile.from_model(buddy) if buddy else None,
            status=pair.status,
            initiatedBy=pair.initiated_by,
            createdAt=iso(pair.created_at),
            confirmedAt=iso(pair.confirmed_at),
        )


class BuddyStatusOut(BaseModel):
    status: str
    id: Optional[int] = None
    buddy: Optional[UserProfile] = None
    initiatedBy: Optional[int] = None
    isInitiator: bool = False
    createdAt: Optional[str] = None
    confirmedAt: Optional[str] = None
