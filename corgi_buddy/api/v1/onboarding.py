# corgi_buddy/api/v1/onboarding.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from corgi_buddy.api.v1.buddy import buddy_status_out
from corgi_buddy.core.auth_deps import get_current_user
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.db.session import get_db
from corgi_buddy.models.user import User
from corgi_buddy.schemas.onboarding import OnboardingStateOut, OnboardingStatusOut, OnboardingWalletOut

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


@router.get("/status", response_model=OnboardingStatusOut)
async def onboarding_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    user, buddy_status, state = container.onboarding.status(db, user_id=user.id)
    return OnboardingStatusOut(
        onboarding=OnboardingStateOut(
            wallet_connected=state.wallet_connected,
            buddy_confirmed=state.buddy_confirmed,
            current_step=state.current_step.value,
        ),
        wallet=OnboardingWalletOut(address=user.ton_wallet_address) if user.ton_wallet_address else None,
        buddy=buddy_status_out(buddy_status) if buddy_status.pair is not None else None,
    )
