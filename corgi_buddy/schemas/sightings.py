# corgi_buddy/schemas/sightings.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field, StrictInt

from corgi_buddy.models.corgi_sighting import CorgiSighting
from corgi_buddy.schemas.common import iso


class SightingCreateIn(BaseModel):
    corgiCount: StrictInt = Field(..., ge=1, le=100)


class SightingRespondIn(BaseModel):
    confirmed: bool


class SightingOut(BaseModel):
    id: int
    reporterId: int
    buddyId: int
    corgiCount: int
    status: str
    createdAt: Optional[str] = None
    respondedAt: Optional[str] = None

    @classmethod
    def from_model(cls, s: CorgiSighting) -> "SightingOut":
        return cls(
            id=s.id,
            reporterId=s.reporter_id,
            buddyId=s.buddy_id,
            corgiCount=s.corgi_count,
            status=s.status,
            createdAt=iso(s.created_at),
            respondedAt=iso(s.responded_at),
        )


class SightingConfirmOut(SightingOut):
    # coins; absent unless the reward transfer completed
    rewardEarned: Optional[int] = None
    settlementStatus: Optional[str] = None
    settlementError: Optional[str] = None


class SightingHistoryOut(BaseModel):
    sightings: List[SightingOut]
    totalRewards: str  # coins


class ConfirmationsOut(BaseModel):
    confirmations: List[SightingOut]
