# corgi_buddy/api/v1/wishes.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.orm import Session

from corgi_buddy.core.auth_deps import get_current_user
from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.db.session import get_db
from corgi_buddy.models.user import User
from corgi_buddy.schemas.wishes import WishCreateIn, WishListOut, WishOut, WishRespondIn

router = APIRouter(prefix="/wishes", tags=["wishes"])


@router.post("", response_model=WishOut, status_code=201)
async def create_wish(
    body: WishCreateIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    wish = container.wishes.create(
        db,
        creator_id=user.id,
        description=body.description,
        proposed_amount=body.proposedAmount,
    )
    out = WishOut.from_model(wish)
    background.add_task(
        container.notifications.notify_wish_created,
        wish.buddy_id,
        user.first_name,
        wish.description,
        out.proposedAmount,
    )
    return out


@router.get("", response_model=WishListOut)
async def my_wishes(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    wishes = container.wishes.list_for_user(db, user_id=user.id)
    return WishListOut(wishes=[WishOut.from_model(w) for w in wishes])


@router.get("/pending", response_model=WishListOut)
async def pending_wishes(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    wishes = container.wishes.pending_for_buddy(db, user_id=user.id)
    return WishListOut(wishes=[WishOut.from_model(w) for w in wishes])


@router.post("/{wish_id}/respond", response_model=WishOut)
async def respond_to_wish(
    wish_id: int,
    body: WishRespondIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    container: ServiceContainer = Depends(get_container),
):
    wish = container.wishes.respond(db, wish_id=wish_id, user_id=user.id, accepted=body.accepted)
    background.add_task(
        container.notifications.notify_wish_responded,
        wish.creator_id,
        user.first_name,
        body.accepted,
        wish.description,
    )
    return WishOut.from_model(wish)
