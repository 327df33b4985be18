"""Schedule viewing, lesson entry, deletion and PDF export flows."""

from __future__ import annotations

import asyncio
import io
import logging

from fpdf.errors import FPDFException
from telegram import InputFile, Update
from telegram.ext import ContextTypes

from app.bot import keyboards
from app.bot.deps import get_font_provider, get_settings, get_state_store, get_storage
from app.bot.routing import CallbackRoute, build_callback_data
from app.core.schedule import (
    is_day_key,
    is_week_type,
    parity_for_week_type,
    parse_lesson_details,
    persian_day_label,
)
from app.core.schedule_pdf import render_schedule_pdf
from app.core.week_status import build_full_schedule_text
from app.infra.fonts import FontUnavailableError
from app.infra.messaging import safe_edit_text, safe_send_text
from app.infra.request_context import set_status
from app.infra.state_store import ConversationState
from app.infra.storage import StorageError

LOGGER = logging.getLogger(__name__)

INVALID_FORMAT_TEXT = "⚠️ فرمت وارد شده نامعتبر است."
SAVE_FAILED_TEXT = "⚠️ ذخیره درس با خطا مواجه شد. لطفاً دوباره تلاش کنید."
DELETE_FAILED_TEXT = "⚠️ حذف با خطا مواجه شد. لطفاً دوباره تلاش کنید."
INVALID_BUTTON_TEXT = "⚠️ این دکمه معتبر نیست. لطفاً از منو دوباره شروع کنید."
PDF_FAILED_TEXT = "⚠️ متاسفانه در تولید PDF خطایی رخ داد. لطفاً مطمئن شوید فونت در دسترس است و دوباره تلاش کنید."
LESSON_FORMAT_HELP = (
    "اطلاعات درس را در یک پیام با فرمت زیر ارسال کنید:\n"
    "`نام درس - ساعت شروع - ساعت پایان - محل برگزاری`\n\n"
    "*مثال:*\n`ریاضی مهندسی - 08:00 - 10:00 - کلاس ۱۰۱`"
)
_DELETE_KIND_LABELS = {"lesson": "درس", "day": "روز", "week": "هفته"}


def _week_label(week_type: str) -> str:
    return parity_for_week_type(week_type).label


def _full_name(user) -> str:
    name = f"{user.first_name or ''} {user.last_name or ''}".strip()
    return name or f"User {user.id}"


async def show_full_schedule(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    user = update.effective_user
    schedule = get_storage(context).get_user_schedule(user.id)
    await safe_edit_text(update, context, build_full_schedule_text(schedule), reply_markup=keyboards.back_to_schedule_menu())


async def handle_schedule_callback(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    route: CallbackRoute,
) -> None:
    if route.action == "view" and route.param(0) == "full":
        await show_full_schedule(update, context)
    elif route.action == "set":
        await _handle_set(update, context, route)
    elif route.action == "delete":
        await _handle_delete(update, context, route)
    else:
        await _reject(update, context, route)


async def _reject(update: Update, context: ContextTypes.DEFAULT_TYPE, route: CallbackRoute) -> None:
    LOGGER.warning("Invalid schedule callback: action=%s params=%s", route.action, route.params)
    set_status(context, "refused")
    await safe_edit_text(update, context, INVALID_BUTTON_TEXT, reply_markup=keyboards.back_to_schedule_menu())


async def _handle_set(update: Update, context: ContextTypes.DEFAULT_TYPE, route: CallbackRoute) -> None:
    step = route.param(0)
    week_type = route.param(1)
    day = route.param(2)
    if step == "select_week":
        await safe_edit_text(
            update,
            context,
            "برنامه کدام هفته را می‌خواهید تنظیم کنید؟",
            reply_markup=keyboards.select_week("schedule:set:select_day", "menu:schedule"),
        )
    elif step == "select_day" and is_week_type(week_type):
        await safe_edit_text(
            update,
            context,
            f"کدام روز از هفته *{_week_label(week_type)}*؟",
            reply_markup=keyboards.select_day(
                build_callback_data("schedule", "set", "ask_details", week_type),
                "schedule:set:select_week",
            ),
        )
    elif step == "ask_details" and is_week_type(week_type) and is_day_key(day):
        get_state_store(context).set(
            update.effective_user.id,
            ConversationState(name="awaiting_lesson_details", week_type=week_type, day=day),
        )
        text = f"➕ *افزودن درس به {persian_day_label(day)} (هفته {_week_label(week_type)})*\n\n{LESSON_FORMAT_HELP}"
        await safe_edit_text(update, context, text, reply_markup=keyboards.cancel_action())
    else:
        await _reject(update, context, route)


async def _handle_delete(update: Update, context: ContextTypes.DEFAULT_TYPE, route: CallbackRoute) -> None:
    step = route.param(0)
    user_id = update.effective_user.id
    storage = get_storage(context)
    back_to_delete = keyboards.back_to("schedule:delete:main")

    if step == "main":
        await safe_edit_text(
            update,
            context,
            "کدام بخش از برنامه را می‌خواهید حذف کنید؟",
            reply_markup=keyboards.delete_menu(),
        )
        return

    if step == "select_week" and route.param(1) in _DELETE_KIND_LABELS:
        kind = route.param(1)
        prefix = "schedule:delete:confirm_week" if kind == "week" else f"schedule:delete:select_day:{kind}"
        await safe_edit_text(
            update,
            context,
            f"حذف *{_DELETE_KIND_LABELS[kind]}* از کدام هفته؟",
            reply_markup=keyboards.select_week(prefix, "schedule:delete:main"),
        )
        return

    if step == "select_day" and route.param(1) in {"lesson", "day"} and is_week_type(route.param(2)):
        kind, week_type = route.param(1), route.param(2)
        next_step = "select_lesson" if kind == "lesson" else "execute_day"
        await safe_edit_text(
            update,
            context,
            f"حذف {_DELETE_KIND_LABELS[kind]} از کدام روز هفته *{_week_label(week_type)}*؟",
            reply_markup=keyboards.select_day(
                build_callback_data("schedule", "delete", next_step, week_type),
                f"schedule:delete:select_week:{kind}",
            ),
        )
        return

    if step == "select_lesson" and is_week_type(route.param(1)) and is_day_key(route.param(2)):
        week_type, day = route.param(1), route.param(2)
        lessons = storage.get_user_schedule(user_id).for_week(week_type).get(day, [])
        if not lessons:
            await safe_edit_text(
                update,
                context,
                f"در {persian_day_label(day)} هفته *{_week_label(week_type)}* درسی ثبت نشده است.",
                reply_markup=back_to_delete,
            )
            return
        await safe_edit_text(
            update,
            context,
            f"کدام درس از {persian_day_label(day)} هفته *{_week_label(week_type)}* حذف شود؟",
            reply_markup=keyboards.select_lesson(
                lessons,
                build_callback_data("schedule", "delete", "execute_lesson", week_type, day),
                f"schedule:delete:select_day:lesson:{week_type}",
            ),
        )
        return

    if step == "execute_lesson" and is_week_type(route.param(1)) and is_day_key(route.param(2)):
        week_type, day = route.param(1), route.param(2)
        try:
            index = int(route.param(3, ""))
        except ValueError:
            await _reject(update, context, route)
            return
        try:
            deleted = storage.delete_lesson(user_id, week_type, day, index)
        except StorageError:
            LOGGER.exception("Lesson deletion failed for user %s", user_id)
            await safe_edit_text(update, context, DELETE_FAILED_TEXT, reply_markup=back_to_delete)
            return
        text = "✅ درس با موفقیت حذف شد." if deleted else "⚠️ این درس پیدا نشد؛ احتمالاً قبلاً حذف شده است."
        await safe_edit_text(update, context, text, reply_markup=back_to_delete)
        return

    if step == "execute_day" and is_week_type(route.param(1)) and is_day_key(route.param(2)):
        week_type, day = route.param(1), route.param(2)
        try:
            deleted = storage.delete_day(user_id, week_type, day)
        except StorageError:
            LOGGER.exception("Day deletion failed for user %s", user_id)
            await safe_edit_text(update, context, DELETE_FAILED_TEXT, reply_markup=back_to_delete)
            return
        if deleted:
            text = f"✅ تمام درس‌های {persian_day_label(day)} هفته *{_week_label(week_type)}* حذف شد."
        else:
            text = f"در {persian_day_label(day)} هفته *{_week_label(week_type)}* درسی برای حذف وجود ندارد."
        await safe_edit_text(update, context, text, reply_markup=back_to_delete)
        return

    if step == "confirm_week" and is_week_type(route.param(1)):
        week_type = route.param(1)
        await safe_edit_text(
            update,
            context,
            f"❓ آیا از حذف *تمام برنامه* هفته *{_week_label(week_type)}* مطمئن هستید؟",
            reply_markup=keyboards.confirm_week_delete(week_type),
        )
        return

    if step == "execute_week" and is_week_type(route.param(1)):
        week_type = route.param(1)
        try:
            storage.delete_week(user_id, week_type)
        except StorageError:
            LOGGER.exception("Week deletion failed for user %s", user_id)
            await safe_edit_text(update, context, DELETE_FAILED_TEXT, reply_markup=back_to_delete)
            return
        await safe_edit_text(
            update,
            context,
            f"✅ برنامه هفته *{_week_label(week_type)}* با موفقیت حذف شد.",
            reply_markup=back_to_delete,
        )
        return

    await _reject(update, context, route)


async def handle_lesson_details(
    update: Update,
    context: ContextTypes.DEFAULT_TYPE,
    state: ConversationState,
) -> None:
    user_id = update.effective_user.id
    get_state_store(context).delete(user_id)
    text = update.effective_message.text if update.effective_message else None
    lesson = parse_lesson_details(text)
    if lesson is None or not is_week_type(state.week_type) or not is_day_key(state.day):
        set_status(context, "refused")
        await safe_send_text(update, context, INVALID_FORMAT_TEXT)
        return
    try:
        get_storage(context).save_lesson(user_id, state.week_type, state.day, lesson)
    except StorageError:
        LOGGER.exception("Saving lesson failed for user %s", user_id)
        set_status(context, "error")
        await safe_send_text(update, context, SAVE_FAILED_TEXT)
        return
    await safe_send_text(
        update,
        context,
        f"✅ درس *{lesson.lesson}* با موفقیت اضافه شد!",
        reply_markup=keyboards.back_to_schedule_menu(),
    )


async def send_schedule_pdf(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    user = update.effective_user
    chat = update.effective_chat
    full_name = _full_name(user)
    LOGGER.info("PDF export requested by user %s", user.id)
    try:
        font_path = await get_font_provider(context).get_path()
        schedule = get_storage(context).get_user_schedule(user.id)
        pdf_bytes = await asyncio.to_thread(
            render_schedule_pdf,
            schedule,
            full_name=full_name,
            font_path=font_path,
            footer_text=get_settings(context).pdf_footer,
        )
    except (FontUnavailableError, FPDFException, OSError):
        LOGGER.exception("PDF generation failed for user %s", user.id)
        set_status(context, "error")
        await safe_send_text(update, context, PDF_FAILED_TEXT)
        return
    filename = f"schedule_{user.username or user.id}.pdf"
    await context.bot.send_document(
        chat_id=chat.id,
        document=InputFile(io.BytesIO(pdf_bytes), filename=filename),
        caption=f"📅 برنامه هفتگی شما - {full_name}",
        reply_markup=keyboards.pdf_caption_menu(),
    )
    LOGGER.info("PDF sent to user %s (%d bytes)", user.id, len(pdf_bytes))
