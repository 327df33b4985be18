from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Literal

from app.core.week_parity import Parity

WeekType = Literal["odd", "even"]

DAY_KEYS: tuple[str, ...] = ("saturday", "sunday", "monday", "tuesday", "wednesday")
PERSIAN_WEEKDAYS: tuple[str, ...] = ("شنبه", "یکشنبه", "دوشنبه", "سه‌شنبه", "چهارشنبه")
PERSIAN_WEEKDAYS_FULL: tuple[str, ...] = (
    "شنبه",
    "یکشنبه",
    "دوشنبه",
    "سه‌شنبه",
    "چهارشنبه",
    "پنج‌شنبه",
    "جمعه",
)
WEEK_TYPES: tuple[WeekType, ...] = ("odd", "even")

SCHEDULE_TIME_RE = re.compile(r"^(?:[01]\d|2[0-3]|[89]):[0-5]\d$")
UNKNOWN_TIME_SORT_KEY = 9999
FIELD_MAX_LENGTH = 255


@dataclass(frozen=True)
class Lesson:
    lesson: str
    start_time: str
    end_time: str
    location: str

    def to_dict(self) -> dict[str, str]:
        return {
            "lesson": self.lesson,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "location": self.location,
        }

    @classmethod
    def from_dict(cls, raw: Any) -> Lesson | None:
        if not isinstance(raw, dict):
            return None
        values = [raw.get(key) for key in ("lesson", "start_time", "end_time", "location")]
        if not all(isinstance(value, str) for value in values):
            return None
        return cls(*values)


WeekSchedule = dict[str, list[Lesson]]


def empty_week() -> WeekSchedule:
    return {day: [] for day in DAY_KEYS}


@dataclass
class UserSchedule:
    odd: WeekSchedule = field(default_factory=empty_week)
    even: WeekSchedule = field(default_factory=empty_week)

    def for_week(self, week_type: WeekType) -> WeekSchedule:
        return self.odd if week_type == "odd" else self.even

    def for_parity(self, parity: Parity) -> WeekSchedule:
        return self.for_week(week_type_for_parity(parity))

    def is_empty(self) -> bool:
        return not any(self.odd.values()) and not any(self.even.values())


def week_type_for_parity(parity: Parity) -> WeekType:
    return "odd" if parity is Parity.ODD else "even"


def parity_for_week_type(week_type: str) -> Parity:
    return Parity.ODD if week_type == "odd" else Parity.EVEN


def is_week_type(value: str | None) -> bool:
    return value in WEEK_TYPES


def is_day_key(value: str | None) -> bool:
    return value in DAY_KEYS


def persian_day_label(day_key: str) -> str:
    return PERSIAN_WEEKDAYS[DAY_KEYS.index(day_key)]


def parse_time(value: str | None) -> int | None:
    """Minutes since midnight for 'HH:MM' (or 'H:MM' for 8 and 9), else None."""
    if not value or not SCHEDULE_TIME_RE.match(value):
        return None
    hours_raw, minutes_raw = value.split(":")
    hours, minutes = int(hours_raw), int(minutes_raw)
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        return None
    return hours * 60 + minutes


def _sort_key(lesson: Lesson) -> int:
    minutes = parse_time(lesson.start_time)
    return UNKNOWN_TIME_SORT_KEY if minutes is None else minutes


def sort_lessons(lessons: list[Lesson]) -> list[Lesson]:
    return sorted(lessons, key=_sort_key)


def parse_lesson_details(text: str | None) -> Lesson | None:
    """Parse 'name - start - end - location' as typed by the user."""
    parts = [part.strip() for part in (text or "").split("-")]
    if len(parts) != 4:
        return None
    name, start, end, location = parts
    if not name or not location:
        return None
    if not SCHEDULE_TIME_RE.match(start) or not SCHEDULE_TIME_RE.match(end):
        return None
    return Lesson(
        lesson=name[:FIELD_MAX_LENGTH],
        start_time=start,
        end_time=end,
        location=location[:FIELD_MAX_LENGTH],
    )


def clean_week_schedule(raw: Any) -> WeekSchedule:
    cleaned = empty_week()
    if not isinstance(raw, dict):
        return cleaned
    for day in DAY_KEYS:
        entries = raw.get(day)
        if not isinstance(entries, list):
            continue
        lessons = [lesson for lesson in (Lesson.from_dict(entry) for entry in entries) if lesson]
        cleaned[day] = sort_lessons(lessons)
    return cleaned


def week_to_dict(week: WeekSchedule) -> dict[str, list[dict[str, str]]]:
    return {day: [lesson.to_dict() for lesson in lessons] for day, lessons in week.items() if lessons}


def add_lesson(week: WeekSchedule, day: str, lesson: Lesson) -> WeekSchedule:
    updated = {key: list(value) for key, value in week.items()}
    updated[day] = sort_lessons([*updated.get(day, []), lesson])
    return updated


def remove_lesson(week: WeekSchedule, day: str, index: int) -> tuple[WeekSchedule, Lesson | None]:
    lessons = list(week.get(day, []))
    if index < 0 or index >= len(lessons):
        return week, None
    removed = lessons.pop(index)
    updated = {key: list(value) for key, value in week.items()}
    updated[day] = lessons
    return updated, removed


def clear_day(week: WeekSchedule, day: str) -> tuple[WeekSchedule, bool]:
    if not week.get(day):
        return week, False
    updated = {key: list(value) for key, value in week.items()}
    updated[day] = []
    return updated, True


def weekday_index(value: date | datetime) -> int:
    """Saturday-first weekday index: Saturday=0 .. Friday=6."""
    return (value.weekday() + 2) % 7


def today_day_key(value: date | datetime) -> str | None:
    index = weekday_index(value)
    if index < len(DAY_KEYS):
        return DAY_KEYS[index]
    return None
