# corgi_buddy/api/v1/buddy.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from corgi_buddy.core.auth_deps import get_current_user
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.db.session import get_db
from corgi_buddy.models.user import User
from corgi_buddy.schemas.buddy import BuddyCancelIn, BuddyPairIdIn, BuddyPairOut, BuddyRequestIn, BuddyStatusOut
from corgi_buddy.schemas.common import MessageResponse, iso
from corgi_buddy.schemas.users import UserProfile, UserSearchResponse

router = APIRouter(prefix="/buddy", tags=["buddy"])


@router.get("/search", response_model=UserSearchResponse)
async def search_users(
    username: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    users = container.users.search(db, query=username, exclude_user_id=user.id)
    return UserSearchResponse(users=[UserProfile.from_model(u) for u in users])


@router.post("/request", response_model=BuddyPairOut, status_code=201)
async def request_buddy(
    body: BuddyRequestIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    pair = container.buddies.request(
        db,
        requester_id=user.id,
        target_user_id=body.targetUserId,
        username=body.username,
    )
    target_id = pair.other(user.id)
    background.add_task(container.notifications.notify_buddy_request, target_id, user.first_name)
    return BuddyPairOut.from_model(pair, container.users.find(db, target_id))


@router.post("/accept", response_model=BuddyPairOut)
async def accept_buddy(
    body: BuddyPairIdIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    pair = container.buddies.accept(db, user_id=user.id, pair_id=body.buddyPairId)
    background.add_task(container.notifications.notify_buddy_confirmed, pair.initiated_by, user.first_name)
    return BuddyPairOut.from_model(pair, container.users.find(db, pair.other(user.id)))


@router.post("/reject", response_model=BuddyPairOut)
async def reject_buddy(
    body: BuddyPairIdIn,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    pair = container.buddies.reject(db, user_id=user.id, pair_id=body.buddyPairId)
    return BuddyPairOut.from_model(pair, container.users.find(db, pair.other(user.id)))


@router.post("/cancel", response_model=MessageResponse)
async def cancel_buddy(
    body: Optional[BuddyCancelIn] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    pair = container.buddies.cancel(db, user_id=user.id, pair_id=body.buddyPairId if body else None)
    return MessageResponse(message=f"Buddy request {pair.id} cancelled")


@router.post("/dissolve", response_model=BuddyPairOut)
async def dissolve_buddy(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    pair = container.buddies.dissolve(db, user_id=user.id)
    return BuddyPairOut.from_model(pair, container.users.find(db, pair.other(user.id)))


@router.get("/status", response_model=BuddyStatusOut)
async def buddy_status(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    status = container.buddies.status(db, user_id=user.id)
    return buddy_status_out(status)


def buddy_status_out(status) -> BuddyStatusOut:
    if status.pair is None:
        return BuddyStatusOut(status=status.status)
    return BuddyStatusOut(
        status=status.status,
        id=status.pair.id,
        buddy=UserProfile.from_model(status.buddy) if status.buddy else None,
        initiatedBy=status.pair.initiated_by,
        isInitiator=status.is_initiator,
        createdAt=iso(status.pair.created_at),
        confirmedAt=iso(status.pair.confirmed_at),
    )
