# corgi_buddy/schemas/wishes.py
from __future__ import annotations

from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from corgi_buddy.models.wish import Wish
from corgi_buddy.schemas.common import iso


class WishCreateIn(BaseModel):
    description: str
    proposedAmount: Decimal


class WishRespondIn(BaseModel):
    accepted: bool


class WishOut(BaseModel):
    id: int
    creatorId: int
    buddyId: int
    description: str
    proposedAmount: str
    status: str
    createdAt: Optional[str] = None
    acceptedAt: Optional[str] = None
    purchasedAt: Optional[str] = None
    purchasedBy: Optional[int] = None

    @classmethod
    def from_model(cls, w: Wish) -> "WishOut":
        return cls(
            id=w.id,
            creatorId=w.creator_id,
            buddyId=w.buddy_id,
            description=w.description,
            proposedAmount=f"{Decimal(w.proposed_amount):.2f}",
            status=w.status,
            createdAt=iso(w.created_at),
            acceptedAt=iso(w.accepted_at),
            purchasedAt=iso(w.purchased_at),
            purchasedBy=w.purchased_by,
        )


class WishListOut(BaseModel):
    wishes: List[WishOut]


class TonTransactionOut(BaseModel):
    to: str
    amount: str
    payload: str


class PurchaseOut(BaseModel):
    transactionId: int
    tonTransaction: TonTransactionOut


class MarketplaceQuery(BaseModel):
    limit: int = Field(default=50, ge=1, le=100)
    offset: int = Field(default=0, ge=0)
