from __future__ import annotations

import logging
from datetime import datetime

import jdatetime

from app.core.jalali import persian_month_name
from app.core.schedule import (
    PERSIAN_WEEKDAYS,
    PERSIAN_WEEKDAYS_FULL,
    DAY_KEYS,
    Lesson,
    UserSchedule,
    WeekSchedule,
    today_day_key,
    weekday_index,
)
from app.core.week_parity import Parity, WeekReference, current_week_parity

LOGGER = logging.getLogger(__name__)

DATE_ERROR_TEXT = "📅 (خطا در نمایش تاریخ شمسی)"


def format_persian_today(now: datetime) -> str:
    try:
        jalali = jdatetime.date.fromgregorian(date=now.date())
    except (ValueError, OverflowError):
        LOGGER.exception("Failed to convert %s to Jalali", now)
        return DATE_ERROR_TEXT
    weekday = PERSIAN_WEEKDAYS_FULL[weekday_index(now)]
    month = persian_month_name(jalali.month)
    return f"📅 امروز {weekday} {jalali.day} {month} سال {jalali.year} است"


def format_lesson_line(lesson: Lesson, *, bullet: str = "•") -> str:
    return f"{bullet} *{lesson.lesson}* ({lesson.start_time} - {lesson.end_time}) در *{lesson.location}*"


def build_week_status_text(
    now: datetime,
    reference: WeekReference,
    schedule: UserSchedule | None = None,
) -> str:
    """Today's date, current/next week parity and, when a schedule is given, today's lessons."""
    parity = current_week_parity(now, reference)
    upcoming = parity.opposite()
    lines = [
        format_persian_today(now),
        "",
        f"{parity.emoji} هفته فعلی: *{parity.label}*",
        f"{upcoming.emoji} هفته بعدی: *{upcoming.label}*",
        "",
    ]
    if schedule is None:
        return "\n".join(lines).rstrip()

    day_label = PERSIAN_WEEKDAYS_FULL[weekday_index(now)]
    day_key = today_day_key(now)
    if day_key is None:
        lines.append(f"🥳 امروز {day_label} است! آخر هفته خوبی داشته باشید.")
        return "\n".join(lines)

    lessons = schedule.for_parity(parity).get(day_key, [])
    if lessons:
        lines.append(f"*برنامه امروز ({day_label}):*")
        lines.extend(format_lesson_line(lesson) for lesson in lessons)
    else:
        lines.append(f"🗓️ شما برای امروز ({day_label}) در هفته *{parity.label}* برنامه‌ای ندارید.")
    return "\n".join(lines)


def format_week_block(parity: Parity, week: WeekSchedule) -> str:
    lines = [f"*--- هفته {parity.label} {parity.emoji} ---*"]
    has_content = False
    for day_key, day_label in zip(DAY_KEYS, PERSIAN_WEEKDAYS):
        lessons = week.get(day_key, [])
        if not lessons:
            continue
        has_content = True
        lines.append("")
        lines.append(f"*{day_label}:*")
        lines.extend(format_lesson_line(lesson, bullet=" •") for lesson in lessons)
    if not has_content:
        lines.append("_برنامه‌ای برای این هفته تنظیم نشده است._")
    return "\n".join(lines)


def build_full_schedule_text(schedule: UserSchedule) -> str:
    if schedule.is_empty():
        return "شما هنوز هیچ برنامه‌ای تنظیم نکرده‌اید."
    odd_text = format_week_block(Parity.ODD, schedule.odd)
    even_text = format_week_block(Parity.EVEN, schedule.even)
    return f"*برنامه کامل هفتگی شما* 📅\n\n{odd_text}\n\n{even_text}"
