# corgi_buddy/api/v1/telegram.py
"""
Bot webhook.

Only inline-button callbacks on sighting notifications are handled;
`approve:<id>` / `reject:<id>` run the same confirmation as the API.
"""
from __future__ import annotations

import hmac
import logging
from typing import Optional, Tuple

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from corgi_buddy.core.container import ServiceContainer, get_container
from corgi_buddy.core.errors import ServiceError
from corgi_buddy.db.session import get_db
from corgi_buddy.schemas.telegram import TelegramUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telegram", tags=["telegram"])

CALLBACK_ACTIONS = {"approve": True, "reject": False}


def parse_callback_data(data: Optional[str]) -> Optional[Tuple[bool, int]]:
    if not data or ":" not in data:
        return None
    action, _, raw_id = data.partition(":")
    if action not in CALLBACK_ACTIONS:
        return None
    try:
        sighting_id = int(raw_id)
    except ValueError:
        return None
    if sighting_id <= 0:
        return None
    return CALLBACK_ACTIONS[action], sighting_id


def _check_secret(request: Request, expected: Optional[str]) -> None:
    if not expected:
        return
    supplied = request.headers.get("X-Telegram-Bot-Api-Secret-Token", "")
    if not hmac.compare_digest(supplied, expected):
        raise HTTPException(status_code=401, detail="Invalid webhook secret.")


@router.post("/webhook")
async def telegram_webhook(
    update: TelegramUpdate,
    request: Request,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    container: ServiceContainer = Depends(get_container),
):
    _check_secret(request, container.settings.telegram_webhook_secret)

    callback = update.callback_query
    if callback is None:
        return {"ok": True}

    notifications = container.notifications
    parsed = parse_callback_data(callback.data)
    if parsed is None:
        background.add_task(notifications.answer_callback_query, callback.id, "Unknown action")
        return {"ok": True}

    confirmed, sighting_id = parsed
    tg_user = callback.from_user
    user = container.users.get_or_create(
        db,
        user_id=tg_user.id,
        first_name=tg_user.first_name or "Unknown",
        username=tg_user.username,
    )

    try:
        result = await container.sightings.respond(
            db,
            sighting_id=sighting_id,
            user_id=user.id,
            confirmed=confirmed,
        )
    except ServiceError as exc:
        logger.info("[telegram] callback sighting=%s rejected: %s", sighting_id, exc.message)
        background.add_task(notifications.answer_callback_query, callback.id, exc.message, show_alert=True)
        return {"ok": True}

    answer = "Sighting confirmed" if confirmed else "Sighting denied"
    if result.settlement_error is not None:
        answer += "; the reward will be retried"
    background.add_task(notifications.answer_callback_query, callback.id, answer)
    if callback.message is not None:
        background.add_task(notifications.clear_reply_markup, callback.message.chat.id, callback.message.message_id)
    background.add_task(
        notifications.notify_sighting_response,
        result.sighting.reporter_id,
        user.first_name,
        confirmed,
        result.reward_coins,
    )
    return {"ok": True}
