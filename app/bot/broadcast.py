"""Admin broadcast wizard and the background delivery job."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from telegram import Update
from telegram.error import TelegramError
from telegram.ext import ContextTypes

from app.bot import keyboards
from app.bot.deps import get_settings, get_state_store, get_storage, is_admin
from app.bot.routing import CallbackRoute
from app.infra.messaging import edit_markdown, safe_edit_text, send_markdown
from app.infra.request_context import set_status
from app.infra.state_store import ConversationState
from app.infra.storage import ScheduleStorage

LOGGER = logging.getLogger(__name__)

BROADCAST_METHODS = ("copy", "forward")
TARGET_DESCRIPTIONS = {
    "all_users": "همه کاربران",
    "all_groups": "همه گروه‌ها",
    "all_both": "همه کاربران و گروه‌ها",
}
NOT_ADMIN_TEXT = "⛔ این بخش فقط برای ادمین در دسترس است."
STALE_STEP_TEXT = "⚠️ این مرحله منقضی شده است. لطفاً ارسال همگانی را از ابتدا شروع کنید."

Sleep = Callable[[float], Awaitable[None]]


def target_kinds(target_type: str) -> list[str]:
    kinds = []
    if target_type in {"all_users", "all_both"}:
        kinds.append("users")
    if target_type in {"all_groups", "all_both"}:
        kinds.append("groups")
    return kinds


def collect_targets(storage: ScheduleStorage, target_type: str) -> list[int]:
    """Recipient chat ids for a target type, deduplicated in first-seen order."""
    targets: list[int] = []
    for kind in target_kinds(target_type):
        targets.extend(storage.get_target_ids(kind))
    return list(dict.fromkeys(targets))


def _method_text(method: str | None, *, short: bool = False) -> str:
    if method == "copy":
        return "کپی" if short else "کپی (از طرف ربات)"
    return "فوروارد"


def progress_text(done: int, total: int, success: int, fail: int) -> str:
    percent = round(done / total * 100) if total else 100
    return f"🚀 در حال ارسال... ({percent}٪)\n\n✅ موفق: {success}\n❌ ناموفق: {fail}"


def final_report_text(broadcast_id: int, total: int, success: int, fail: int) -> str:
    return (
        f"🏁 *گزارش نهایی ارسال همگانی #{broadcast_id}*\n\n"
        f"🎯 کل گیرندگان: {total}\n"
        f"✅ ارسال موفق: {success}\n"
        f"❌ ارسال ناموفق: {fail}"
    )


async def show_broadcast_menu(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    text = "📢 *منوی ارسال پیام همگانی*\n\nلطفا یکی از گزینه‌های زیر را انتخاب کنید:"
    await safe_edit_text(update, context, text, reply_markup=keyboards.broadcast_menu())


async def handle_broadcast_callback(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    route: CallbackRoute,
) -> None:
    user_id = update.effective_user.id
    if not is_admin(context, user_id):
        LOGGER.warning("Non-admin user %s tried broadcast action %s", user_id, route.action)
        set_status(context, "refused")
        await safe_edit_text(update, context, NOT_ADMIN_TEXT)
        return

    store = get_state_store(context)
    ttl = get_settings(context).broadcast_state_ttl_seconds
    action = route.action

    if action == "menu":
        await show_broadcast_menu(update, context)
        return

    if action == "start":
        store.set(user_id, ConversationState(name="broadcast_started"), ttl_seconds=ttl)
        await safe_edit_text(
            update,
            context,
            "⚙️ *مرحله ۱: نوع ارسال*\n\nمی‌خواهید پیام شما چگونه ارسال شود؟",
            reply_markup=keyboards.broadcast_method(),
        )
        return

    if action == "cancel":
        store.delete(user_id)
        await safe_edit_text(
            update,
            context,
            "عملیات ارسال همگانی لغو شد.",
            reply_markup=keyboards.back_to("admin:panel", keyboards.BACK_TO_ADMIN_LABEL),
        )
        return

    state = store.get(user_id)

    if action == "setMethod" and route.param(0) in BROADCAST_METHODS:
        if state is None or state.name != "broadcast_started":
            await _stale_step(update, context)
            return
        store.set(user_id, state.evolve(name="broadcast_method_selected", method=route.param(0)), ttl_seconds=ttl)
        await safe_edit_text(
            update,
            context,
            "🎯 *مرحله ۲: انتخاب گیرندگان*\n\nپیام به کدام گروه از مخاطبین ارسال شود؟",
            reply_markup=keyboards.broadcast_target(),
        )
        return

    if action == "setTarget" and route.param(0) in TARGET_DESCRIPTIONS:
        if state is None or state.name != "broadcast_method_selected":
            await _stale_step(update, context)
            return
        target_type = route.param(0)
        store.set(
            user_id,
            state.evolve(name="broadcast_awaiting_content", target_type=target_type),
            ttl_seconds=ttl,
        )
        text = (
            "✅ *مرحله ۳: ارسال محتوا*\n\n"
            f"شما در حال ارسال پیام به صورت *{_method_text(state.method)}* "
            f"به *{TARGET_DESCRIPTIONS[target_type]}* هستید.\n\n"
            "اکنون، لطفا پیامی که می‌خواهید ارسال شود را بفرستید (متن، عکس، ویدیو، فایل و...)."
        )
        await safe_edit_text(update, context, text, reply_markup=keyboards.broadcast_cancel())
        return

    if action == "confirm_send":
        if state is None or state.name != "broadcast_awaiting_confirmation":
            await _stale_step(update, context)
            return
        store.delete(user_id)
        await safe_edit_text(update, context, "✅ تایید شد! فرایند ارسال در پس‌زمینه آغاز می‌شود...")
        context.application.create_task(
            execute_broadcast(
                context.bot,
                get_storage(context),
                state,
                admin_id=user_id,
                batch_size=get_settings(context).broadcast_batch_size,
                delay_seconds=get_settings(context).broadcast_delay_seconds,
            ),
            update=update,
        )
        return

    LOGGER.warning("Unknown broadcast action: %s %s", action, route.params)
    set_status(context, "refused")
    await _stale_step(update, context)


async def _stale_step(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    set_status(context, "refused")
    await safe_edit_text(
        update,
        context,
        STALE_STEP_TEXT,
        reply_markup=keyboards.back_to("broadcast:menu"),
    )


async def handle_broadcast_content(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    state: ConversationState,
) -> None:
    """Store the admin's message as broadcast content and ask for confirmation."""
    message = update.effective_message
    user_id = update.effective_user.id
    get_state_store(context).set(
        user_id,
        state.evolve(
            name="broadcast_awaiting_confirmation",
            content_message_id=message.message_id,
            content_chat_id=message.chat_id,
        ),
        ttl_seconds=get_settings(context).broadcast_state_ttl_seconds,
    )
    text = (
        "🔍 *پیش‌نمایش و تایید نهایی*\n\n"
        f"شما در حال ارسال پیام بالا به صورت *{_method_text(state.method, short=True)}* "
        f"به *{TARGET_DESCRIPTIONS.get(state.target_type or '', '-')}* هستید.\n\n"
        "*آیا برای ارسال نهایی تایید می‌کنید؟*"
    )
    await send_markdown(
        context.bot,
        message.chat_id,
        text,
        reply_markup=keyboards.broadcast_confirm(),
        reply_to_message_id=message.message_id,
    )


async def _deliver(bot, method: str, target_id: int, from_chat_id: int, message_id: int) -> int:
    if method == "copy":
        sent = await bot.copy_message(chat_id=target_id, from_chat_id=from_chat_id, message_id=message_id)
    else:
        sent = await bot.forward_message(chat_id=target_id, from_chat_id=from_chat_id, message_id=message_id)
    return sent.message_id


async def execute_broadcast(
    bot,
    storage: ScheduleStorage,
    state: ConversationState,
    *,
    admin_id: int,
    batch_size: int = 25,
    delay_seconds: float = 1.1,
    sleep: Sleep = asyncio.sleep,
) -> tuple[int, int] | None:
    """Deliver the stored content to every target; returns (success, fail) or None when aborted."""
    LOGGER.info(
        "Executing broadcast: method=%s target=%s content=%s/%s",
        state.method,
        state.target_type,
        state.content_chat_id,
        state.content_message_id,
    )
    targets = collect_targets(storage, state.target_type or "")
    if not targets:
        await send_markdown(bot, admin_id, "⚠️ هیچ گیرنده‌ای برای ارسال یافت نشد. عملیات لغو شد.")
        return None

    broadcast = storage.create_broadcast(
        admin_message_id=state.content_message_id,
        admin_chat_id=state.content_chat_id,
        method=state.method,
        target_description=TARGET_DESCRIPTIONS.get(state.target_type or "", "-"),
    )
    if broadcast is None:
        await send_markdown(bot, admin_id, "❌ خطای سیستمی: امکان ثبت عملیات در دیتابیس وجود ندارد.")
        return None

    try:
        report = await send_markdown(bot, admin_id, f"🚀 در حال ارسال پیام به {len(targets)} گیرنده... (۰٪)")
    except TelegramError:
        LOGGER.exception("Broadcast %s aborted: progress message to admin %s failed", broadcast.id, admin_id)
        storage.update_broadcast(broadcast.id, status="failed")
        return None
    storage.update_broadcast(broadcast.id, status="sending", final_report_message_id=report.message_id)

    success = fail = 0
    total = len(targets)
    for position, target_id in enumerate(targets, start=1):
        try:
            sent_id = await _deliver(bot, state.method, target_id, state.content_chat_id, state.content_message_id)
        except TelegramError as exc:
            fail += 1
            LOGGER.info("Broadcast %s to %s failed: %s", broadcast.id, target_id, exc)
            storage.log_broadcast_message(broadcast.id, target_id, None, "failed", str(exc))
        else:
            success += 1
            storage.log_broadcast_message(broadcast.id, target_id, sent_id, "sent")

        if position % batch_size == 0 or position == total:
            try:
                await edit_markdown(bot, admin_id, report.message_id, progress_text(position, total, success, fail))
            except TelegramError as exc:
                LOGGER.warning("Could not edit broadcast progress message: %s", exc)
            if position < total:
                await sleep(delay_seconds)

    status = "completed" if fail == 0 else "completed_with_errors"
    storage.update_broadcast(broadcast.id, status=status, success_count=success, fail_count=fail)
    LOGGER.info("Broadcast %s finished: status=%s success=%s fail=%s", broadcast.id, status, success, fail)
    try:
        await edit_markdown(bot, admin_id, report.message_id, final_report_text(broadcast.id, total, success, fail))
    except TelegramError as exc:
        LOGGER.warning("Could not edit final broadcast report: %s", exc)
    return success, fail
