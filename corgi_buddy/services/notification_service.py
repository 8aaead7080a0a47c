# corgi_buddy/services/notification_service.py
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

logger = logging.getLogger(__name__)


class NotificationService:
    """
    Telegram Bot API sender. Best effort: every method returns False on
    failure and never raises.
    """

    def __init__(self, bot_token: Optional[str], *, api_url: str = "https://api.telegram.org", timeout_seconds: int = 10):
        self.base_url = f"{api_url.rstrip('/')}/bot{bot_token}" if bot_token else None
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)

    async def _call(self, method: str, payload: Dict[str, Any]) -> bool:
        if not self.base_url:
            logger.debug("[notify] bot token not configured; skipping %s", method)
            return False
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.post(f"{self.base_url}/{method}", json=payload) as response:
                    if response.status != 200:
                        logger.warning("[notify] %s returned HTTP %s", method, response.status)
                        return False
                    data = await response.json(content_type=None)
                    return bool(isinstance(data, dict) and data.get("ok"))
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.warning("[notify] %s failed: %s", method, exc)
            return False

    async def send_message(self, chat_id: int, text: str, *, reply_markup: Optional[Dict[str, Any]] = None) -> bool:
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": text,
            "disable_web_page_preview": True,
            "disable_notification": True,
        }
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self._call("sendMessage", payload)

    async def answer_callback_query(self, callback_id: str, text: str, *, show_alert: bool = False) -> bool:
        return await self._call(
            "answerCallbackQuery",
            {"callback_query_id": callback_id, "text": text, "show_alert": show_alert},
        )

    async def clear_reply_markup(self, chat_id: int, message_id: int) -> bool:
        return await self._call(
            "editMessageReplyMarkup",
            {"chat_id": chat_id, "message_id": message_id, "reply_markup": {"inline_keyboard": []}},
        )

    # ─────────────────────────────────────────────
    # Domain notifications
    # ─────────────────────────────────────────────

    async def notify_buddy_request(self, target_user_id: int, requester_name: str) -> bool:
        return await self.send_message(target_user_id, f"🤝 Buddy request: {requester_name} wants to be your buddy.")

    async def notify_buddy_confirmed(self, initiator_user_id: int, confirmer_name: str) -> bool:
        return await self.send_message(
            initiator_user_id, f"✅ Buddy confirmed: {confirmer_name} accepted your buddy request."
        )

    async def notify_new_sighting(self, buddy_user_id: int, reporter_name: str, corgi_count: int, sighting_id: int) -> bool:
        keyboard = {
            "inline_keyboard": [
                [
                    {"text": "✅ Approve", "callback_data": f"approve:{sighting_id}"},
                    {"text": "❌ Reject", "callback_data": f"reject:{sighting_id}"},
                ]
            ]
        }
        return await self.send_message(
            buddy_user_id,
            f"🐶 New corgi sighting from {reporter_name}: {corgi_count} corgi(s) to confirm.",
            reply_markup=keyboard,
        )

    async def notify_sighting_response(
        self, reporter_user_id: int, confirmer_name: str, confirmed: bool, reward_coins: Optional[int] = None
    ) -> bool:
        if confirmed:
            text = f"🎉 {confirmer_name} confirmed your corgi sighting."
            if reward_coins is not None:
                text += f" Reward: {reward_coins} Corgi coin(s)."
        else:
            text = f"❌ {confirmer_name} denied your corgi sighting."
        return await self.send_message(reporter_user_id, text)

    async def notify_wish_created(self, buddy_user_id: int, creator_name: str, description: str, amount: str) -> bool:
        return await self.send_message(
            buddy_user_id, f'📝 New wish from {creator_name}: "{description}" (proposed {amount} Corgi coins).'
        )

    async def notify_wish_responded(self, creator_user_id: int, buddy_name: str, accepted: bool, description: str) -> bool:
        verb = "accepted" if accepted else "rejected"
        mark = "✅" if accepted else "❌"
        return await self.send_message(creator_user_id, f'{mark} {buddy_name} {verb} your wish: "{description}"')

    async def notify_wish_purchased(self, creator_user_id: int, purchaser_name: str, description: str, amount: str) -> bool:
        return await self.send_message(
            creator_user_id,
            f'💸 Your wish "{description}" was purchased by {purchaser_name} for {amount} Corgi coins.',
        )
