# corgi_buddy/api/v1/wallet.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from corgi_buddy.core.auth_deps import get_current_user
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.db.session import get_db
from corgi_buddy.models.user import User
from corgi_buddy.schemas.common import iso
from corgi_buddy.schemas.wallet import WalletConnectIn, WalletConnectOut, WalletStatusOut

router = APIRouter(prefix="/wallet", tags=["wallet"])


def _status_out(user: User) -> WalletStatusOut:
    return WalletStatusOut(
        connected=bool(user.ton_wallet_address),
        address=user.ton_wallet_address,
        updatedAt=iso(user.updated_at),
    )


@router.post("/connect", response_model=WalletConnectOut)
async def connect_wallet(
    body: WalletConnectIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.wallets.connect(db, user_id=user.id, address=body.walletAddress)
    return WalletConnectOut(
        **_status_out(result.user).model_dump(),
        pendingRewardsProcessed=result.pending_rewards.processed_count,
        pendingRewardsFailed=len(result.pending_rewards.failed),
    )


@router.post("/disconnect", response_model=WalletStatusOut)
async def disconnect_wallet(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    return _status_out(container.wallets.disconnect(db, user_id=user.id))


@router.get("/status", response_model=WalletStatusOut)
async def wallet_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    return _status_out(container.wallets.status(db, user_id=user.id))
