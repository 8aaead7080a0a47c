# corgi_buddy/schemas/telegram.py
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TelegramUser(BaseModel):
    id: int
    is_bot: bool = False
    first_name: str = ""
    username: Optional[str] = None


class TelegramChat(BaseModel):
    id: int


class TelegramMessage(BaseModel):
    message_id: int
    chat: TelegramChat


class TelegramCallbackQuery(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    data: Optional[str] = None
    message: Optional[TelegramMessage] = None
    from_user: TelegramUser = Field(..., alias="from")


class TelegramUpdate(BaseModel):
    update_id: Optional[int] = None
    callback_query: Optional[TelegramCallbackQuery] = None
