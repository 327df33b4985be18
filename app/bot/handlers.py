from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from functools import wraps

from telegram import Update
from telegram.constants import ChatType
from telegram.error import BadRequest
from telegram.ext import ContextTypes

from app.bot import keyboards, routing
from app.bot.broadcast import handle_broadcast_callback, handle_broadcast_content
from app.bot.deps import (
    get_bot_info_cache,
    get_state_store,
    get_storage,
    get_week_reference,
    is_admin,
    now,
)
from app.bot.schedule_flow import handle_lesson_details, handle_schedule_callback, send_schedule_pdf
from app.core.week_status import build_week_status_text
from app.infra.messaging import safe_edit_text, safe_send_text
from app.infra.request_context import log_request, set_status, start_request

LOGGER = logging.getLogger(__name__)

Handler = Callable[[Update, ContextTypes.DEFAULT_TYPE], Awaitable[None]]

ADMIN_ONLY_TEXT = "⛔️ این دستور مخصوص ادمین است."
CANCELLED_TEXT = "عملیات لغو شد."
SERVER_ERROR_TEXT = "⚠️ خطایی در پردازش درخواست رخ داد. لطفاً دوباره تلاش کنید."


def _is_private(update: Update) -> bool:
    chat = update.effective_chat
    return chat is not None and chat.type == ChatType.PRIVATE


def _route_name(update: Update) -> str:
    if update.callback_query:
        return f"callback:{update.callback_query.data or '-'}"
    message = update.effective_message
    text = message.text if message and message.text else ""
    command = routing.normalize_command(text)
    if command:
        return command
    return "text" if text else "non_text"


def _with_error_handling(handler: Handler) -> Handler:
    @wraps(handler)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        request_context = start_request(update, context, route=_route_name(update))
        try:
            LOGGER.info(
                "Route: user_id=%s chat_type=%s handler=%s route=%s",
                request_context.user_id,
                request_context.chat_type,
                handler.__name__,
                request_context.route,
            )
            await handler(update, context)
        except Exception as exc:
            set_status(context, "error")
            await _handle_exception(update, context, exc)
        finally:
            log_request(LOGGER, request_context)

    return wrapper


async def _handle_exception(update: Update, context: ContextTypes.DEFAULT_TYPE, error: Exception) -> None:
    try:
        await context.application.process_error(update, error)
    except Exception:
        LOGGER.exception("Failed to forward exception to error handler")


def _log_usage(update: Update, context: ContextTypes.DEFAULT_TYPE, command: str) -> None:
    user = update.effective_user
    chat = update.effective_chat
    if user is None or chat is None:
        return
    get_storage(context).log_usage(
        user_id=user.id,
        first_name=user.first_name,
        last_name=user.last_name,
        username=user.username,
        command=command,
        chat_type=chat.type,
        chat_id=chat.id,
        chat_title=chat.title,
    )


async def _bot_username(context: ContextTypes.DEFAULT_TYPE) -> str:
    info = await get_bot_info_cache(context).get()
    return info.username


async def _respond(update: Update, context: ContextTypes.DEFAULT_TYPE, text: str, reply_markup=None) -> None:
    """Edit the message when triggered by a button, otherwise send a new one."""
    if update.callback_query:
        await safe_edit_text(update, context, text, reply_markup=reply_markup)
    else:
        await safe_send_text(update, context, text, reply_markup=reply_markup)


# --- chat tracking ---


async def track_chat(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Record users and groups the bot sees; runs before every other handler."""
    user = update.effective_user
    chat = update.effective_chat
    if user is None or chat is None or user.is_bot:
        return
    storage = get_storage(context)
    if chat.type == ChatType.PRIVATE:
        storage.add_user(
            user_id=user.id,
            chat_id=chat.id,
            first_name=user.first_name,
            last_name=user.last_name,
            username=user.username,
        )
    elif update.effective_message is not None and update.callback_query is None:
        storage.add_group(chat_id=chat.id, chat_type=chat.type, title=chat.title)


# --- commands ---


@_with_error_handling
async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    user = update.effective_user
    _log_usage(update, context, "/start")
    if _is_private(update):
        text = (
            f"سلام {user.first_name}! 👋\n\n"
            "به ربات مدیریت برنامه هفتگی خوش آمدید.\n\n"
            "👇 از دکمه‌های زیر برای شروع استفاده کنید:"
        )
        await safe_send_text(update, context, text, reply_markup=keyboards.start_menu())
        return
    username = await _bot_username(context)
    text = (
        "سلام! 👋 من ربات وضعیت هفته هستم.\n"
        "برای دیدن وضعیت از /week استفاده کنید. "
        f"برای مدیریت برنامه شخصی، لطفاً در چت خصوصی با من (@{username}) صحبت کنید."
    )
    await safe_send_text(update, context, text)


def build_help_text(*, show_admin: bool) -> str:
    text = (
        "*راهنمای ربات برنامه هفتگی* 🔰\n\n"
        "*/week*: نمایش زوج/فرد بودن هفته و برنامه امروز شما.\n"
        "*/schedule*: مدیریت کامل برنامه هفتگی (افزودن، حذف، مشاهده).\n"
        "*/pdf*: دریافت فایل PDF زیبا از برنامه شما.\n"
        "*/help*: نمایش همین راهنما."
    )
    if show_admin:
        text += "\n\n*دستورات ادمین:*\n*/admin*: نمایش پنل مدیریت و آمار."
    return text


async def _show_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    show_admin = is_admin(context, update.effective_user.id) and _is_private(update)
    _log_usage(update, context, "callback:menu:help" if update.callback_query else "/help")
    await _respond(
        update,
        context,
        build_help_text(show_admin=show_admin),
        reply_markup=keyboards.help_menu(is_admin=show_admin),
    )


async def _show_week_status(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    _log_usage(update, context, "callback:menu:week_status" if update.callback_query else "/week")
    private = _is_private(update)
    schedule = get_storage(context).get_user_schedule(update.effective_user.id) if private else None
    text = build_week_status_text(now(context), get_week_reference(context), schedule)
    await _respond(update, context, text, reply_markup=keyboards.week_status_menu(private=private))


async def _show_schedule_menu(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    _log_usage(update, context, "callback:menu:schedule" if update.callback_query else "/schedule")
    if not _is_private(update):
        username = await _bot_username(context)
        set_status(context, "refused")
        await safe_send_text(
            update,
            context,
            f"⚠️ مدیریت برنامه فقط در چت خصوصی با من (@{username}) امکان‌پذیر است.",
        )
        return
    text = "📅 *مدیریت برنامه هفتگی*\n\nاز دکمه‌های زیر برای مدیریت برنامه خود استفاده کنید:"
    await _respond(update, context, text, reply_markup=keyboards.schedule_menu())


async def _show_admin_panel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    if not is_admin(context, update.effective_user.id) or not _is_private(update):
        set_status(context, "refused")
        await safe_send_text(update, context, ADMIN_ONLY_TEXT)
        return
    _log_usage(update, context, "callback:admin:panel" if update.callback_query else "/admin")
    storage = get_storage(context)
    users = storage.count_users()
    groups = storage.count_groups()
    text = (
        "👑 *پنل مدیریت*\n\n"
        f"👤 کاربران شناخته شده: *{users if users is not None else 'N/A'}*\n"
        f"👥 گروه‌های شناخته شده: *{groups if groups is not None else 'N/A'}*\n\n"
        "از طریق دکمه زیر می‌توانید پیام همگانی ارسال کنید."
    )
    await _respond(update, context, text, reply_markup=keyboards.admin_panel())


@_with_error_handling
async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _show_help(update, context)


@_with_error_handling
async def week_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _show_week_status(update, context)


@_with_error_handling
async def schedule_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _show_schedule_menu(update, context)


@_with_error_handling
async def pdf_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    _log_usage(update, context, "/pdf")
    if not _is_private(update):
        set_status(context, "refused")
        return
    await safe_send_text(update, context, "⏳ در حال آماده‌سازی PDF...")
    await send_schedule_pdf(update, context)


@_with_error_handling
async def admin_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    await _show_admin_panel(update, context)


@_with_error_handling
async def unknown_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    text = update.effective_message.text if update.effective_message else ""
    if not _is_private(update):
        return
    if routing.is_for_other_bot(text, await _bot_username(context)):
        return
    set_status(context, "refused")
    command = routing.normalize_command(text) or text
    await safe_send_text(update, context, f"❓ دستور `{command}` را متوجه نشدم.")


# --- callbacks ---


async def _answer(update: Update, text: str | None = None) -> None:
    try:
        await update.callback_query.answer(text=text)
    except BadRequest as exc:
        LOGGER.info("Callback answer rejected: %s", exc)


async def _menu_callback(update: Update, context: ContextTypes.DEFAULT_TYPE, route: routing.CallbackRoute) -> None:
    await _answer(update)
    views = {
        "help": _show_help,
        "week_status": _show_week_status,
        "schedule": _show_schedule_menu,
    }
    view = views.get(route.action)
    if view is None:
        LOGGER.warning("Unknown menu action: %s", route.action)
        return
    await view(update, context)


async def _schedule_callback(update: Update, context: ContextTypes.DEFAULT_TYPE, route: routing.CallbackRoute) -> None:
    await _answer(update)
    await handle_schedule_callback(update, context, route)


async def _pdf_callback(update: Update, context: ContextTypes.DEFAULT_TYPE, route: routing.CallbackRoute) -> None:
    if route.action != "export":
        await _answer(update)
        return
    await _answer(update, "⏳ در حال آماده‌سازی PDF...")
    await send_schedule_pdf(update, context)


async def _admin_callback(update: Update, context: ContextTypes.DEFAULT_TYPE, route: routing.CallbackRoute) -> None:
    await _answer(update)
    if route.action == "panel":
        await _show_admin_panel(update, context)


async def _broadcast_callback(update: Update, context: ContextTypes.DEFAULT_TYPE, route: routing.CallbackRoute) -> None:
    await _answer(update)
    await handle_broadcast_callback(update, context, route)


async def _cancel_callback(update: Update, context: ContextTypes.DEFAULT_TYPE, route: routing.CallbackRoute) -> None:
    await _answer(update)
    get_state_store(context).delete(update.effective_user.id)
    await safe_edit_text(update, context, CANCELLED_TEXT)


CALLBACK_HANDLERS: dict[str, Callable[[Update, ContextTypes.DEFAULT_TYPE, routing.CallbackRoute], Awaitable[None]]] = {
    "menu": _menu_callback,
    "schedule": _schedule_callback,
    "pdf": _pdf_callback,
    "admin": _admin_callback,
    "broadcast": _broadcast_callback,
    "cancel_action": _cancel_callback,
}


@_with_error_handling
async def callback_router(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    query = update.callback_query
    if query is None:
        return
    if query.message is None:
        await _answer(update)
        return
    user = update.effective_user
    LOGGER.info("Callback from %s: %s", user.username or user.id, query.data)
    route = routing.parse_callback_data(query.data)
    handler = CALLBACK_HANDLERS.get(route.main)
    if handler is None:
        LOGGER.warning("Unhandled callback query: %s", query.data)
        set_status(context, "refused")
        await _answer(update)
        return
    await handler(update, context, route)


# --- free text ---


@_with_error_handling
async def private_message(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Feed non-command private messages to the user's pending conversation step."""
    user = update.effective_user
    if user is None or user.is_bot:
        return
    state = get_state_store(context).get(user.id)
    if state is None:
        return
    if state.name == "broadcast_awaiting_content" and is_admin(context, user.id):
        await handle_broadcast_content(update, context, state)
    elif state.name == "awaiting_lesson_details":
        await handle_lesson_details(update, context, state)


async def error_handler(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    set_status(context, "error")
    LOGGER.exception("Unhandled exception", exc_info=context.error)
    if isinstance(update, Update) and update.effective_chat is not None:
        try:
            await safe_send_text(update, context, SERVER_ERROR_TEXT)
        except Exception:
            LOGGER.exception("Failed to notify user about the error")
