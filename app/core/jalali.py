"""Jalali (Persian) calendar helpers.

to_gregorian() is the civil 33-year-cycle conversion done in pure integer
arithmetic. parse_persian_date() turns free-form user text (ASCII, Persian
or Arabic-Indic digits) into a validated PersianDate. Both return None on
invalid input and never raise.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date

LOGGER = logging.getLogger(__name__)

MIN_PARSE_YEAR = 1300
MAX_PARSE_YEAR = 1500

# Leap years of the 33-year cycle (year % 33).
LEAP_REMAINDERS = frozenset({1, 5, 9, 13, 17, 22, 26, 30})

PERSIAN_MONTHS = (
    "فروردین",
    "اردیبهشت",
    "خرداد",
    "تیر",
    "مرداد",
    "شهریور",
    "مهر",
    "آبان",
    "آذر",
    "دی",
    "بهمن",
    "اسفند",
)
INVALID_MONTH_NAME = "نامعتبر"

_DIGITS = str.maketrans("۰۱۲۳۴۵۶۷۸۹٠١٢٣٤٥٦٧٨٩", "01234567890123456789")
_SANITIZE_RE = re.compile(r"[^0-9/\-.]")
_EIGHT_DIGITS_RE = re.compile(r"^[0-9]{8}$")


@dataclass(frozen=True)
class PersianDate:
    year: int
    month: int
    day: int

    def __str__(self) -> str:
        return f"{self.year}/{self.month:02d}/{self.day:02d}"


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def is_leap_year(year: int) -> bool:
    return year % 33 in LEAP_REMAINDERS


def days_in_month(year: int, month: int) -> int:
    if month <= 6:
        return 31
    if month <= 11:
        return 30
    return 30 if is_leap_year(year) else 29


def is_valid_persian_date(year: object, month: object, day: object) -> bool:
    if not (_is_int(year) and _is_int(month) and _is_int(day)):
        return False
    if year < MIN_PARSE_YEAR or year > MAX_PARSE_YEAR:
        return False
    if month < 1 or month > 12 or day < 1:
        return False
    return day <= days_in_month(year, month)


def to_gregorian(year: int, month: int, day: int) -> date | None:
    if not (_is_int(year) and _is_int(month) and _is_int(day)):
        LOGGER.error("to_gregorian: non-integer input %r/%r/%r", year, month, day)
        return None
    if not (1 <= month <= 12 and 1 <= day <= 31):
        LOGGER.error("to_gregorian: month/day out of range %s/%s/%s", year, month, day)
        return None
    jy = year
    if jy <= 979:
        gy = 621
    else:
        gy = 1600
        jy -= 979
    if month < 7:
        month_days = (month - 1) * 31
    else:
        month_days = (month - 7) * 30 + 186
    days = 365 * jy + (jy // 33) * 8 + ((jy % 33) + 3) // 4 + 78 + day + month_days

    gy += 400 * (days // 146097)
    days %= 146097
    if days > 36524:
        days -= 1
        gy += 100 * (days // 36524)
        days %= 36524
        if days >= 365:
            days += 1
    gy += 4 * (days // 1461)
    days %= 1461
    if days > 365:
        gy += (days - 1) // 365
        days = (days - 1) % 365
    gd = days + 1

    leap = (gy % 4 == 0 and gy % 100 != 0) or gy % 400 == 0
    month_lengths = (0, 31, 29 if leap else 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31)
    gm = 0
    while gm < 13 and gd > month_lengths[gm]:
        gd -= month_lengths[gm]
        gm += 1
    try:
        return date(gy, gm, gd)
    except (ValueError, OverflowError):
        LOGGER.error("to_gregorian(%s, %s, %s) produced out-of-range %s-%s-%s", year, month, day, gy, gm, gd)
        return None


def normalize_digits(text: str) -> str:
    return text.translate(_DIGITS)


def parse_persian_date(text: str | None) -> PersianDate | None:
    if not text or not isinstance(text, str):
        return None
    cleaned = _SANITIZE_RE.sub("", normalize_digits(text))

    if "/" in cleaned:
        parts = cleaned.split("/")
    elif "-" in cleaned:
        parts = cleaned.split("-")
    elif _EIGHT_DIGITS_RE.match(cleaned):
        parts = [cleaned[:4], cleaned[4:6], cleaned[6:8]]
    else:
        return None

    if len(parts) != 3:
        return None
    try:
        year, month, day = (int(part) for part in parts)
    except ValueError:
        return None

    if year < MIN_PARSE_YEAR:
        return None
    if not is_valid_persian_date(year, month, day):
        return None
    return PersianDate(year=year, month=month, day=day)


def persian_month_name(month: int) -> str:
    if _is_int(month) and 1 <= month <= 12:
        return PERSIAN_MONTHS[month - 1]
    return INVALID_MONTH_NAME
