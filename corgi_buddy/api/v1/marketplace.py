# corgi_buddy/api/v1/marketplace.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from corgi_buddy.core.auth_deps import get_current_user
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.db.session import get_db
from corgi_buddy.models.user import User
from corgi_buddy.schemas.wishes import MarketplaceQuery, PurchaseOut, TonTransactionOut, WishListOut, WishOut

router = APIRouter(prefix="/marketplace", tags=["marketplace"])


@router.get("", response_model=WishListOut)
async def list_marketplace(
    query: MarketplaceQuery = Depends(),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    wishes = container.wishes.marketplace(db, limit=query.limit, offset=query.offset)
    return WishListOut(wishes=[WishOut.from_model(w) for w in wishes])


@router.post("/{wish_id}/purchase", response_model=PurchaseOut, status_code=201)
async def purchase_wish(
    wish_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    # the creator is notified once the client confirms the transfer
    intent = container.wishes.purchase(db, wish_id=wish_id, purchaser_id=user.id)
    return PurchaseOut(
        transactionId=intent.transaction.id,
        tonTransaction=TonTransactionOut(**intent.ton_transaction),
    )
