# corgi_buddy/schemas/admin.py
from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from corgi_buddy.models.pending_reward import PendingReward
from corgi_buddy.schemas.common import iso


class SweepReportOut(BaseModel):
    transactions_completed: int
    transactions_failed: int
    transactions_unresolved: int
    rewards_processed: int
    rewards_failed: int
    sightings_settled: int
    sightings_failed: int
    permanently_failed_sightings: List[int]
    errors: int
    interrupted: bool


class PendingRewardOut(BaseModel):
    id: int
    userId: int
    sightingId: int
    amount: int
    status: str
    transactionId: Optional[int] = None
    createdAt: Optional[str] = None
    processedAt: Optional[str] = None

    @classmethod
    def from_model(cls, r: PendingReward) -> "PendingRewardOut":
        return cls(
            id=r.id,
            userId=r.user_id,
            sightingId=r.sighting_id,
            amount=r.amount,
            status=r.status,
            transactionId=r.transaction_id,
            createdAt=iso(r.created_at),
            processedAt=iso(r.processed_at),
        )


class PendingRewardListOut(BaseModel):
    rewards: List[PendingRewardOut]


class BankInitIn(BaseModel):
    walletAddress: str = Field(..., min_length=1, max_length=128)
    currentBalance: int = Field(..., ge=0)  # base units
