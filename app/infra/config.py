from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from dotenv import load_dotenv

from app.core.jalali import PersianDate, parse_persian_date
from app.core.week_parity import Parity

LOGGER = logging.getLogger(__name__)

DEFAULT_DB_PATH = Path("data/bot.db")
DEFAULT_FONT_CACHE_PATH = Path("data/fonts/Vazirmatn-Regular.ttf")
DEFAULT_FONT_URL = "https://cdn.jsdelivr.net/gh/rastikerdar/vazirmatn@v33.003/fonts/ttf/Vazirmatn-Regular.ttf"
DEFAULT_TIMEZONE = "Asia/Tehran"
DEFAULT_REFERENCE_DATE = "1403/11/20"
DEFAULT_REFERENCE_PARITY = "odd"


@dataclass(frozen=True)
class Settings:
    bot_token: str
    admin_chat_id: int
    db_path: Path
    webhook_url: str | None
    webhook_listen: str
    webhook_port: int
    webhook_secret: str | None
    notify_on_startup: bool
    timezone: str
    reference_date: PersianDate
    reference_parity: Parity
    font_url: str
    font_cache_path: Path
    broadcast_batch_size: int
    broadcast_delay_seconds: float
    state_ttl_seconds: int
    broadcast_state_ttl_seconds: int
    pdf_footer: str = "@WeekStatusBot"

    @property
    def tz(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)


def load_settings() -> Settings:
    _load_dotenv()

    env = os.environ
    token = env.get("BOT_TOKEN")
    if not token:
        raise RuntimeError('Required environment variable "BOT_TOKEN" is missing')
    admin_raw = env.get("ADMIN_CHAT_ID")
    if not admin_raw or not admin_raw.strip():
        raise RuntimeError('Required environment variable "ADMIN_CHAT_ID" is missing')
    try:
        admin_chat_id = int(admin_raw.strip())
    except ValueError as exc:
        raise RuntimeError(f"ADMIN_CHAT_ID must be an integer, got {admin_raw!r}") from exc

    db_path = Path(env.get("BOT_DB_PATH", DEFAULT_DB_PATH))
    db_path.parent.mkdir(parents=True, exist_ok=True)

    timezone_name = env.get("BOT_TIMEZONE", DEFAULT_TIMEZONE).strip() or DEFAULT_TIMEZONE
    try:
        ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise RuntimeError(f"BOT_TIMEZONE is not a known timezone: {timezone_name!r}") from exc

    reference_raw = env.get("REFERENCE_PERSIAN_DATE", DEFAULT_REFERENCE_DATE)
    reference_date = parse_persian_date(reference_raw)
    if reference_date is None:
        raise RuntimeError(f"REFERENCE_PERSIAN_DATE is not a valid Persian date: {reference_raw!r}")
    parity_raw = env.get("REFERENCE_PARITY", DEFAULT_REFERENCE_PARITY)
    try:
        reference_parity = Parity.parse(parity_raw)
    except ValueError as exc:
        raise RuntimeError(f"REFERENCE_PARITY must be 'odd' or 'even', got {parity_raw!r}") from exc

    return Settings(
        bot_token=token,
        admin_chat_id=admin_chat_id,
        db_path=db_path,
        webhook_url=(env.get("WEBHOOK_URL") or "").strip() or None,
        webhook_listen=env.get("WEBHOOK_LISTEN", "0.0.0.0"),
        webhook_port=_parse_int_with_default(env.get("PORT"), 8000),
        webhook_secret=env.get("WEBHOOK_SECRET") or None,
        notify_on_startup=_parse_optional_bool(env.get("NOTIFY_ON_STARTUP")) is True,
        timezone=timezone_name,
        reference_date=reference_date,
        reference_parity=reference_parity,
        font_url=env.get("FONT_URL", DEFAULT_FONT_URL),
        font_cache_path=Path(env.get("FONT_CACHE_PATH", DEFAULT_FONT_CACHE_PATH)),
        broadcast_batch_size=max(1, _parse_int_with_default(env.get("BROADCAST_BATCH_SIZE"), 25)),
        broadcast_delay_seconds=_parse_optional_float(env.get("BROADCAST_DELAY_SECONDS"), 1.1),
        state_ttl_seconds=_parse_int_with_default(env.get("STATE_TTL_SECONDS"), 900),
        broadcast_state_ttl_seconds=_parse_int_with_default(env.get("BROADCAST_STATE_TTL_SECONDS"), 15 * 60),
        pdf_footer=env.get("PDF_FOOTER", "@WeekStatusBot"),
    )


def _load_dotenv() -> None:
    if load_dotenv():
        LOGGER.debug("Loaded environment overrides from .env")


def _parse_optional_float(value: str | None, default: float) -> float:
    if value is None:
        return default
    trimmed = value.strip()
    if not trimmed:
        return default
    return float(trimmed)


def _parse_optional_bool(value: str | None) -> bool | None:
    if value is None:
        return None
    trimmed = value.strip().lower()
    if not trimmed:
        return None
    return trimmed in {"1", "true", "yes", "on"}


def _parse_int_with_default(value: str | None, default: int) -> int:
    if value is None:
        return default
    trimmed = value.strip()
    if not trimmed:
        return default
    return int(trimmed)
