# corgi_buddy/api/v1/corgi.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from corgi_buddy.core.auth_deps import get_current_user
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.core.ton import format_coins
from corgi_buddy.db.session import get_db
from corgi_buddy.models.user import User
from corgi_buddy.schemas.sightings import (
    ConfirmationsOut,
    SightingConfirmOut,
    SightingCreateIn,
    SightingHistoryOut,
    SightingOut,
    SightingRespondIn,
)

router = APIRouter(prefix="/corgi", tags=["corgi"])


@router.post("/sightings", response_model=SightingOut, status_code=201)
async def report_sighting(
    body: SightingCreateIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    sighting = container.sightings.report(db, reporter_id=user.id, corgi_count=body.corgiCount)
    background.add_task(
        container.notifications.notify_new_sighting,
        sighting.buddy_id,
        user.first_name,
        sighting.corgi_count,
        sighting.id,
    )
    return SightingOut.from_model(sighting)


@router.get("/sightings", response_model=SightingHistoryOut)
async def sighting_history(
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    sightings = container.sightings.history(db, reporter_id=user.id, limit=limit)
    total = container.sightings.total_rewards(db, reporter_id=user.id)
    return SightingHistoryOut(
        sightings=[SightingOut.from_model(s) for s in sightings],
        totalRewards=format_coins(total, container.settings.jetton_decimals),
    )


@router.get("/confirmations", response_model=ConfirmationsOut)
async def pending_confirmations(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    sightings = container.sightings.pending_confirmations(db, buddy_id=user.id)
    return ConfirmationsOut(confirmations=[SightingOut.from_model(s) for s in sightings])


@router.post("/confirm/{sighting_id}", response_model=SightingConfirmOut, response_model_exclude_none=True)
async def confirm_sighting(
    sighting_id: int,
    body: SightingRespondIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    result = await container.sightings.respond(
        db,
        sighting_id=sighting_id,
        user_id=user.id,
        confirmed=body.confirmed,
    )
    sighting = result.sighting

    background.add_task(
        container.notifications.notify_sighting_response,
        sighting.reporter_id,
        user.first_name,
        body.confirmed,
        result.reward_coins,
    )

    out = SightingConfirmOut(**SightingOut.from_model(sighting).model_dump())
    out.rewardEarned = result.reward_coins
    if result.outcome is not None:
        out.settlementStatus = result.outcome.status.value
    if result.settlement_error is not None:
        out.settlementError = result.settlement_error.code
    return out
