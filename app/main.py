from __future__ import annotations

import asyncio
import logging
import sys
import warnings
from urllib.parse import urlsplit

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    MessageHandler,
    TypeHandler,
    filters,
)
from telegram.warnings import PTBUserWarning

from app.bot import handlers
from app.core.week_parity import WeekReferenceError, build_week_reference
from app.infra.bot_info import BotInfoCache
from app.infra.config import Settings, load_settings
from app.infra.fonts import FontProvider, FontUnavailableError
from app.infra.logging_config import configure_logging
from app.infra.messaging import send_markdown
from app.infra.request_context import RequestContext, log_event
from app.infra.state_store import StateStore
from app.infra.storage import ScheduleStorage

LOGGER = logging.getLogger(__name__)


def _register_handlers(application: Application) -> None:
    application.add_handler(TypeHandler(Update, handlers.track_chat), group=-1)
    application.add_handler(CommandHandler("start", handlers.start))
    application.add_handler(CommandHandler("help", handlers.help_command))
    application.add_handler(CommandHandler("week", handlers.week_command))
    application.add_handler(CommandHandler("schedule", handlers.schedule_command))
    application.add_handler(CommandHandler("pdf", handlers.pdf_command))
    application.add_handler(CommandHandler("admin", handlers.admin_command))
    application.add_handler(CallbackQueryHandler(handlers.callback_router))
    application.add_handler(MessageHandler(filters.COMMAND, handlers.unknown_command))
    application.add_handler(
        MessageHandler(filters.ChatType.PRIVATE & ~filters.COMMAND, handlers.private_message)
    )


def build_application(settings: Settings) -> Application:
    try:
        week_reference = build_week_reference(settings.reference_date, settings.reference_parity)
    except WeekReferenceError as exc:
        LOGGER.critical("Invalid week reference: %s", exc)
        raise SystemExit(str(exc)) from exc

    warnings.filterwarnings("ignore", message="No JobQueue set up", category=PTBUserWarning)
    application = (
        Application.builder()
        .token(settings.bot_token)
        .post_init(_post_init)
        .post_shutdown(_post_shutdown)
        .build()
    )
    application.bot_data["settings"] = settings
    application.bot_data["storage"] = ScheduleStorage(settings.db_path)
    application.bot_data["state_store"] = StateStore(default_ttl_seconds=settings.state_ttl_seconds)
    application.bot_data["week_reference"] = week_reference
    application.bot_data["bot_info"] = BotInfoCache(application.bot)
    application.bot_data["font_provider"] = FontProvider(
        url=settings.font_url,
        cache_path=settings.font_cache_path,
    )

    _register_handlers(application)
    application.add_error_handler(handlers.error_handler)
    return application


async def _post_init(application: Application) -> None:
    settings: Settings = application.bot_data["settings"]
    font_provider: FontProvider = application.bot_data["font_provider"]
    try:
        await font_provider.get_path()
    except FontUnavailableError as exc:
        LOGGER.error("PDF font prefetch failed: %s", exc)
        try:
            await send_markdown(
                application.bot,
                settings.admin_chat_id,
                f"⚠️ دانلود فونت PDF در شروع ربات ناموفق بود:\n{exc}",
            )
        except TelegramError:
            LOGGER.exception("Failed to notify admin about the font failure")

    bot_info = await application.bot_data["bot_info"].get(force_update=True)
    mode = "webhook" if settings.webhook_url else "polling"
    LOGGER.info("Bot is running. ID: %s, Username: @%s, mode=%s", bot_info.id, bot_info.username, mode)
    if settings.notify_on_startup:
        username = bot_info.username.replace("_", "\\_")
        text = f"✅ *Bot Started!*\nID: `{bot_info.id}`\nUsername: @{username}\nMode: {mode}"
        try:
            await send_markdown(application.bot, settings.admin_chat_id, text)
        except TelegramError:
            LOGGER.exception("Failed to send startup notification")


async def _post_shutdown(application: Application) -> None:
    storage: ScheduleStorage | None = application.bot_data.get("storage")
    if storage is not None:
        storage.close()


def main() -> None:
    configure_logging()
    LOGGER.info("--- Bot Initializing ---")
    try:
        settings = load_settings()
    except (RuntimeError, ValueError) as exc:
        LOGGER.exception("Startup failed: %s", exc)
        raise SystemExit(str(exc)) from exc

    application = build_application(settings)
    startup_context = RequestContext(correlation_id="startup", route="startup")
    log_event(
        LOGGER,
        startup_context,
        component="startup",
        event="startup.check",
        status="ok",
        python_version=sys.version.split()[0],
        timezone=settings.timezone,
        reference_date=str(settings.reference_date),
        reference_parity=settings.reference_parity.value,
        webhook=bool(settings.webhook_url),
    )

    try:
        asyncio.get_event_loop()
    except RuntimeError:
        asyncio.set_event_loop(asyncio.new_event_loop())

    if settings.webhook_url:
        url_path = urlsplit(settings.webhook_url).path.strip("/")
        LOGGER.info("Starting webhook server on %s:%s", settings.webhook_listen, settings.webhook_port)
        application.run_webhook(
            listen=settings.webhook_listen,
            port=settings.webhook_port,
            url_path=url_path,
            webhook_url=settings.webhook_url,
            secret_token=settings.webhook_secret,
        )
    else:
        LOGGER.info("Starting long polling")
        application.run_polling()


if __name__ == "__main__":
    main()
