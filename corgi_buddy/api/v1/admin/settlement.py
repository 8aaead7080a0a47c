# corgi_buddy/api/v1/admin/settlement.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from corgi_buddy.core.auth_deps import require_admin_key
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.db.session import get_db
from corgi_buddy.schemas.admin import (
    BankInitIn,
    PendingRewardListOut,
    PendingRewardOut,
    SweepReportOut,
)
from corgi_buddy.schemas.bank import BankStatusOut

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin_key)])


@router.post("/reconcile", response_model=SweepReportOut)
async def run_reconciliation(
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    report = await container.reconciliation.run_sweep(db)
    return SweepReportOut(**report.to_dict())


@router.get("/pending-rewards", response_model=PendingRewardListOut)
async def list_pending_rewards(
    status: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    rewards = container.settlement.list_pending_rewards(db, status=status, limit=limit)
    return PendingRewardListOut(rewards=[PendingRewardOut.from_model(r) for r in rewards])


@router.post("/pending-rewards/{reward_id}/cancel", response_model=PendingRewardOut)
async def cancel_pending_reward(
    reward_id: int,
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    reward = container.settlement.cancel_pending_reward(db, reward_id=reward_id)
    return PendingRewardOut.from_model(reward)


@router.post("/bank/initialize", response_model=BankStatusOut)
async def initialize_bank(
    body: BankInitIn,
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    wallet = container.bank.initialize(
        db,
        wallet_address=body.walletAddress,
        current_balance=body.currentBalance,
    )
    return BankStatusOut.from_model(wallet)
