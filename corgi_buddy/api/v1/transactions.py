# corgi_buddy/api/v1/transactions.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from corgi_buddy.core.auth_deps import get_current_user
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.core.ton import format_coins
from corgi_buddy.db.session import get_db
from corgi_buddy.models.enums import TransactionStatus
from corgi_buddy.models.user import User
from corgi_buddy.models.wish import Wish
from corgi_buddy.schemas.transactions import TransactionConfirmIn, TransactionListOut, TransactionOut

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=TransactionListOut)
async def list_transactions(
    type: Optional[str] = Query(None),
    limit: int = Query(20),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    txs = container.transactions.list_for_user(db, user=user, transaction_type=type, limit=limit)
    return TransactionListOut(transactions=[TransactionOut.from_model(t) for t in txs])


@router.post("/{tx_id}/confirm", response_model=TransactionOut)
async def confirm_transaction(
    tx_id: int,
    body: TransactionConfirmIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    tx = container.transactions.confirm(
        db,
        tx_id=tx_id,
        user=user,
        tx_hash=body.transactionHash,
        success=body.success,
    )

    if tx.status == TransactionStatus.completed.value and tx.related_entity_id is not None:
        wish = db.get(Wish, tx.related_entity_id)
        if wish is not None:
            background.add_task(
                container.notifications.notify_wish_purchased,
                wish.creator_id,
                user.first_name,
                wish.description,
                format_coins(tx.amount, container.settings.jetton_decimals),
            )

    return TransactionOut.from_model(tx)
