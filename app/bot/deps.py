"""Accessors for the shared services stored in application.bot_data."""

from __future__ import annotations

from datetime import datetime

from telegram.ext import ContextTypes

from app.core.week_parity import WeekReference
from app.infra.bot_info import BotInfoCache
from app.infra.config import Settings
from app.infra.fonts import FontProvider
from app.infra.state_store import StateStore
from app.infra.storage import ScheduleStorage


def get_settings(context: ContextTypes.DEFAULT_TYPE) -> Settings:
    return context.application.bot_data["settings"]


def get_storage(context: ContextTypes.DEFAULT_TYPE) -> ScheduleStorage:
    return context.application.bot_data["storage"]


def get_state_store(context: ContextTypes.DEFAULT_TYPE) -> StateStore:
    return context.application.bot_data["state_store"]


def get_week_reference(context: ContextTypes.DEFAULT_TYPE) -> WeekReference:
    return context.application.bot_data["week_reference"]


def get_bot_info_cache(context: ContextTypes.DEFAULT_TYPE) -> BotInfoCache:
    return context.application.bot_data["bot_info"]


def get_font_provider(context: ContextTypes.DEFAULT_TYPE) -> FontProvider:
    return context.application.bot_data["font_provider"]


def now(context: ContextTypes.DEFAULT_TYPE) -> datetime:
    """Current time in the bot's civil timezone; bot_data['clock'] overrides it."""
    clock = context.application.bot_data.get("clock")
    if clock is not None:
        return clock()
    return datetime.now(get_settings(context).tz)


def is_admin(context: ContextTypes.DEFAULT_TYPE, user_id: int | None) -> bool:
    return user_id is not None and user_id == get_settings(context).admin_chat_id
