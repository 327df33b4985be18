from __future__ import annotations

import logging
from dataclasses import dataclass

from telegram.error import TelegramError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BotInfo:
    id: int | None
    username: str
    first_name: str


FALLBACK_BOT_INFO = BotInfo(id=None, username="this_bot", first_name="Bot")


class BotInfoCache:
    """Caches getMe; keeps serving the last known value when Telegram is unreachable."""

    def __init__(self, bot) -> None:
        self._bot = bot
        self._info: BotInfo | None = None

    async def get(self, *, force_update: bool = False) -> BotInfo:
        if self._info is not None and not force_update:
            return self._info
        LOGGER.info("Fetching bot info from Telegram API")
        try:
            me = await self._bot.get_me()
        except TelegramError as exc:
            LOGGER.error("Error fetching bot info: %s", exc)
            return self._info or FALLBACK_BOT_INFO
        self._info = BotInfo(
            id=me.id,
            username=me.username or "UnknownBot",
            first_name=me.first_name,
        )
        LOGGER.info("Bot info fetched: id=%s username=%s", self._info.id, self._info.username)
        return self._info
