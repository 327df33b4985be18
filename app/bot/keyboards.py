from __future__ import annotations

from telegram import InlineKeyboardButton, InlineKeyboardMarkup

from app.bot.routing import build_callback_data
from app.core.schedule import DAY_KEYS, PERSIAN_WEEKDAYS, Lesson
from app.core.week_parity import Parity

BACK_LABEL = "↩️ بازگشت"
BACK_TO_MENU_LABEL = "↩️ بازگشت به منو"
BACK_TO_MAIN_MENU_LABEL = "↩️ بازگشت به منوی اصلی"
BACK_TO_ADMIN_LABEL = "↩️ بازگشت به پنل ادمین"
CANCEL_LABEL = "❌ لغو"

WEEK_STATUS_BUTTON = InlineKeyboardButton("🔄 وضعیت هفته و برنامه امروز", callback_data="menu:week_status")
FULL_SCHEDULE_BUTTON = InlineKeyboardButton("📅 مشاهده برنامه کامل", callback_data="schedule:view:full")
EDIT_SCHEDULE_BUTTON = InlineKeyboardButton("⚙️ تنظیم/ویرایش برنامه", callback_data="menu:schedule")
PDF_BUTTON = InlineKeyboardButton("📤 دریافت PDF برنامه", callback_data="pdf:export")
HELP_BUTTON = InlineKeyboardButton("ℹ️ راهنما", callback_data="menu:help")
ADMIN_PANEL_BUTTON = InlineKeyboardButton("👑 پنل مدیریت", callback_data="admin:panel")


def _single(label: str, callback_data: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup([[InlineKeyboardButton(label, callback_data=callback_data)]])


def week_button(parity: Parity, callback_data: str) -> InlineKeyboardButton:
    return InlineKeyboardButton(f"هفته {parity.label} {parity.emoji}", callback_data=callback_data)


def start_menu() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [WEEK_STATUS_BUTTON],
            [FULL_SCHEDULE_BUTTON],
            [EDIT_SCHEDULE_BUTTON],
            [PDF_BUTTON],
            [HELP_BUTTON],
        ]
    )


def help_menu(*, is_admin: bool) -> InlineKeyboardMarkup:
    rows = [[WEEK_STATUS_BUTTON], [FULL_SCHEDULE_BUTTON], [EDIT_SCHEDULE_BUTTON], [PDF_BUTTON]]
    if is_admin:
        rows.append([ADMIN_PANEL_BUTTON])
    return InlineKeyboardMarkup(rows)


def week_status_menu(*, private: bool) -> InlineKeyboardMarkup:
    refresh = InlineKeyboardButton("🔄 بروزرسانی", callback_data="menu:week_status")
    if not private:
        return InlineKeyboardMarkup([[refresh]])
    return InlineKeyboardMarkup(
        [
            [refresh],
            [
                InlineKeyboardButton("📅 مشاهده کامل", callback_data="schedule:view:full"),
                InlineKeyboardButton("⚙️ تنظیم برنامه", callback_data="menu:schedule"),
            ],
            [InlineKeyboardButton(BACK_TO_MENU_LABEL, callback_data="menu:help")],
        ]
    )


def schedule_menu() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [
                InlineKeyboardButton("➕ افزودن درس", callback_data="schedule:set:select_week"),
                InlineKeyboardButton("🗑️ حذف درس", callback_data="schedule:delete:main"),
            ],
            [FULL_SCHEDULE_BUTTON],
            [InlineKeyboardButton("📤 خروجی PDF", callback_data="pdf:export")],
            [InlineKeyboardButton(BACK_TO_MAIN_MENU_LABEL, callback_data="menu:help")],
        ]
    )


def back_to_schedule_menu() -> InlineKeyboardMarkup:
    return _single(BACK_LABEL, "menu:schedule")


def back_to(callback_data: str, label: str = BACK_LABEL) -> InlineKeyboardMarkup:
    return _single(label, callback_data)


def cancel_action() -> InlineKeyboardMarkup:
    return _single(CANCEL_LABEL, "cancel_action")


def select_week(prefix: str, back_callback: str) -> InlineKeyboardMarkup:
    """Odd/even choice; each button's data is '<prefix>:<week_type>'."""
    return InlineKeyboardMarkup(
        [
            [
                week_button(Parity.ODD, build_callback_data(prefix, "odd")),
                week_button(Parity.EVEN, build_callback_data(prefix, "even")),
            ],
            [InlineKeyboardButton(BACK_LABEL, callback_data=back_callback)],
        ]
    )


def select_day(prefix: str, back_callback: str) -> InlineKeyboardMarkup:
    """School-day choice; each button's data is '<prefix>:<day_key>'."""
    buttons = [
        InlineKeyboardButton(label, callback_data=build_callback_data(prefix, day_key))
        for day_key, label in zip(DAY_KEYS, PERSIAN_WEEKDAYS)
    ]
    return InlineKeyboardMarkup(
        [
            buttons[:3],
            buttons[3:],
            [InlineKeyboardButton(BACK_LABEL, callback_data=back_callback)],
        ]
    )


def select_lesson(lessons: list[Lesson], prefix: str, back_callback: str) -> InlineKeyboardMarkup:
    rows = [
        [
            InlineKeyboardButton(
                f"🗑️ {lesson.lesson} ({lesson.start_time}-{lesson.end_time})",
                callback_data=build_callback_data(prefix, index),
            )
        ]
        for index, lesson in enumerate(lessons)
    ]
    rows.append([InlineKeyboardButton(BACK_LABEL, callback_data=back_callback)])
    return InlineKeyboardMarkup(rows)


def delete_menu() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("🗑️ حذف یک درس خاص", callback_data="schedule:delete:select_week:lesson")],
            [InlineKeyboardButton("🗑️ حذف کل یک روز", callback_data="schedule:delete:select_week:day")],
            [InlineKeyboardButton("🗑️ حذف کل یک هفته", callback_data="schedule:delete:select_week:week")],
            [InlineKeyboardButton(BACK_LABEL, callback_data="menu:schedule")],
        ]
    )


def confirm_week_delete(week_type: str) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("✅ بله، حذف کن", callback_data=f"schedule:delete:execute_week:{week_type}")],
            [InlineKeyboardButton("❌ نه، بازگشت", callback_data="schedule:delete:main")],
        ]
    )


def pdf_caption_menu() -> InlineKeyboardMarkup:
    return _single(BACK_TO_MENU_LABEL, "menu:schedule")


def admin_panel() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("📢 ارسال پیام همگانی (Broadcast)", callback_data="broadcast:menu")],
            [InlineKeyboardButton(BACK_TO_MAIN_MENU_LABEL, callback_data="menu:help")],
        ]
    )


def broadcast_menu() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("➕ ایجاد پیام جدید", callback_data="broadcast:start")],
            [InlineKeyboardButton(BACK_TO_ADMIN_LABEL, callback_data="admin:panel")],
        ]
    )


def broadcast_method() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("✨ ارسال به عنوان کپی (از طرف ربات)", callback_data="broadcast:setMethod:copy")],
            [InlineKeyboardButton("↪️ فوروارد از طرف شما", callback_data="broadcast:setMethod:forward")],
            [InlineKeyboardButton(CANCEL_LABEL, callback_data="broadcast:cancel")],
        ]
    )


def broadcast_target() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("👤 فقط کاربران", callback_data="broadcast:setTarget:all_users")],
            [InlineKeyboardButton("👥 فقط گروه‌ها", callback_data="broadcast:setTarget:all_groups")],
            [InlineKeyboardButton("👤+👥 کاربران و گروه‌ها", callback_data="broadcast:setTarget:all_both")],
            [InlineKeyboardButton(CANCEL_LABEL, callback_data="broadcast:cancel")],
        ]
    )


def broadcast_cancel() -> InlineKeyboardMarkup:
    return _single(CANCEL_LABEL, "broadcast:cancel")


def broadcast_confirm() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton("✅ تایید و ارسال", callback_data="broadcast:confirm_send")],
            [InlineKeyboardButton(CANCEL_LABEL, callback_data="broadcast:cancel")],
        ]
    )
