from __future__ import annotations

import asyncio
from pathlib import Path

from conftest import make_update

from app.bot import handlers, schedule_flow
from app.core.schedule import Lesson
from app.infra.fonts import FontUnavailableError
from app.infra.request_context import get_request_context
from app.infra.state_store import ConversationState


class FakeFontProvider:
    def __init__(self, error: Exception | None = None) -> None:
        self._error = error

    async def get_path(self) -> Path:
        if self._error is not None:
            raise self._error
        return Path("/fonts/Vazirmatn-Regular.ttf")


def _click(bot_env, data: str, user_id: int = 1):
    update = make_update(user_id=user_id, callback_data=data)
    asyncio.run(handlers.callback_router(update, bot_env.context))
    return update


def _lessons(bot_env, week_type: str, day: str) -> list[Lesson]:
    return bot_env.storage.get_user_schedule(1).for_week(week_type).get(day, [])


def test_set_flow_saves_lesson_from_next_message(bot_env) -> None:
    _click(bot_env, "schedule:set:select_week")
    _click(bot_env, "schedule:set:select_day:odd")
    _click(bot_env, "schedule:set:ask_details:odd:saturday")

    assert bot_env.state_store.get(1) == ConversationState(
        name="awaiting_lesson_details", week_type="odd", day="saturday"
    )
    assert "شنبه" in bot_env.bot.edited[-1]["text"]

    asyncio.run(handlers.private_message(make_update(text="ریاضی - 08:00 - 10:00 - کلاس ۱۰۱"), bot_env.context))

    assert bot_env.bot.sent[-1]["text"] == "✅ درس *ریاضی* با موفقیت اضافه شد!"
    assert _lessons(bot_env, "odd", "saturday") == [Lesson("ریاضی", "08:00", "10:00", "کلاس ۱۰۱")]
    assert bot_env.state_store.get(1) is None


def test_invalid_lesson_details_clear_state(bot_env) -> None:
    bot_env.state_store.set(1, ConversationState(name="awaiting_lesson_details", week_type="even", day="monday"))

    asyncio.run(handlers.private_message(make_update(text="ریاضی ساعت هشت"), bot_env.context))

    assert bot_env.bot.sent[-1]["text"] == schedule_flow.INVALID_FORMAT_TEXT
    assert bot_env.state_store.get(1) is None
    assert _lessons(bot_env, "even", "monday") == []


def test_set_flow_rejects_unknown_day(bot_env) -> None:
    _click(bot_env, "schedule:set:ask_details:odd:friday")

    assert bot_env.bot.edited[-1]["text"] == schedule_flow.INVALID_BUTTON_TEXT
    assert bot_env.state_store.get(1) is None


def test_view_full_schedule(bot_env) -> None:
    bot_env.storage.save_lesson(1, "even", "tuesday", Lesson("فیزیک", "10:00", "12:00", "آز ۲"))

    _click(bot_env, "schedule:view:full")

    text = bot_env.bot.edited[-1]["text"]
    assert "*فیزیک*" in text
    assert "سه‌شنبه" in text


def test_delete_single_lesson(bot_env) -> None:
    bot_env.storage.save_lesson(1, "odd", "sunday", Lesson("شیمی", "08:00", "10:00", "۱"))
    bot_env.storage.save_lesson(1, "odd", "sunday", Lesson("زبان", "10:00", "12:00", "۲"))

    _click(bot_env, "schedule:delete:select_lesson:odd:sunday")
    buttons = [b.callback_data for row in bot_env.bot.edited[-1]["reply_markup"].inline_keyboard for b in row]
    assert "schedule:delete:execute_lesson:odd:sunday:0" in buttons

    _click(bot_env, "schedule:delete:execute_lesson:odd:sunday:0")

    assert bot_env.bot.edited[-1]["text"] == "✅ درس با موفقیت حذف شد."
    assert [lesson.lesson for lesson in _lessons(bot_env, "odd", "sunday")] == ["زبان"]


def test_delete_missing_lesson_index(bot_env) -> None:
    _click(bot_env, "schedule:delete:execute_lesson:odd:sunday:5")

    assert "پیدا نشد" in bot_env.bot.edited[-1]["text"]


def test_delete_lesson_with_non_numeric_index_is_rejected(bot_env) -> None:
    _click(bot_env, "schedule:delete:execute_lesson:odd:sunday:x")

    assert bot_env.bot.edited[-1]["text"] == schedule_flow.INVALID_BUTTON_TEXT


def test_select_lesson_on_empty_day(bot_env) -> None:
    _click(bot_env, "schedule:delete:select_lesson:even:wednesday")

    assert "درسی ثبت نشده است" in bot_env.bot.edited[-1]["text"]


def test_delete_whole_day(bot_env) -> None:
    bot_env.storage.save_lesson(1, "even", "monday", Lesson("ادبیات", "08:00", "09:30", "۳"))

    _click(bot_env, "schedule:delete:execute_day:even:monday")

    assert bot_env.bot.edited[-1]["text"].startswith("✅ تمام درس‌های دوشنبه")
    assert _lessons(bot_env, "even", "monday") == []


def test_delete_whole_week_after_confirmation(bot_env) -> None:
    bot_env.storage.save_lesson(1, "odd", "sunday", Lesson("شیمی", "08:00", "10:00", "۱"))
    bot_env.storage.save_lesson(1, "even", "sunday", Lesson("فیزیک", "08:00", "10:00", "۲"))

    _click(bot_env, "schedule:delete:confirm_week:odd")
    assert "مطمئن هستید" in bot_env.bot.edited[-1]["text"]
    _click(bot_env, "schedule:delete:execute_week:odd")

    assert bot_env.bot.edited[-1]["text"] == "✅ برنامه هفته *فرد* با موفقیت حذف شد."
    assert _lessons(bot_env, "odd", "sunday") == []
    assert len(_lessons(bot_env, "even", "sunday")) == 1


def test_unknown_schedule_action_is_rejected(bot_env) -> None:
    _click(bot_env, "schedule:rename:odd")

    assert bot_env.bot.edited[-1]["text"] == schedule_flow.INVALID_BUTTON_TEXT
    assert get_request_context(bot_env.context).status == "refused"


def test_pdf_export_sends_document(bot_env, monkeypatch) -> None:
    calls = []

    def fake_render(schedule, *, full_name, font_path, footer_text):
        calls.append((full_name, font_path, footer_text))
        return b"%PDF-1.4 fake"

    monkeypatch.setattr(schedule_flow, "render_schedule_pdf", fake_render)
    bot_env.context.application.bot_data["font_provider"] = FakeFontProvider()

    update = _click(bot_env, "pdf:export")

    assert update.callback_query.answers == ["⏳ در حال آماده‌سازی PDF..."]
    assert calls == [("Sara", Path("/fonts/Vazirmatn-Regular.ttf"), "@WeekStatusBot")]
    document = bot_env.bot.documents[-1]
    assert document["chat_id"] == 1
    assert document["caption"] == "📅 برنامه هفتگی شما - Sara"
    assert document["document"].filename == "schedule_sara.pdf"


def test_pdf_export_reports_missing_font(bot_env) -> None:
    bot_env.context.application.bot_data["font_provider"] = FakeFontProvider(FontUnavailableError("offline"))

    asyncio.run(handlers.pdf_command(make_update(text="/pdf"), bot_env.context))

    assert bot_env.bot.sent[-1]["text"] == schedule_flow.PDF_FAILED_TEXT
    assert bot_env.bot.documents == []
