"""Odd/even week calculation relative to a configured reference week.

The reference is materialized once at startup via build_week_reference();
current_week_parity() is a pure function of (now, reference).
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta

from app.core.jalali import PersianDate, is_valid_persian_date, to_gregorian

LOGGER = logging.getLogger(__name__)


class WeekReferenceError(RuntimeError):
    """The configured reference week cannot be materialized."""


class Parity(enum.Enum):
    ODD = "odd"
    EVEN = "even"

    @property
    def label(self) -> str:
        return "فرد" if self is Parity.ODD else "زوج"

    @property
    def emoji(self) -> str:
        return "🟣" if self is Parity.ODD else "🟢"

    def opposite(self) -> Parity:
        return Parity.EVEN if self is Parity.ODD else Parity.ODD

    @classmethod
    def parse(cls, value: str) -> Parity:
        """Accept 'odd'/'even' or the Persian labels; raise ValueError otherwise."""
        normalized = (value or "").strip().lower()
        for parity in cls:
            if normalized in {parity.value, parity.label}:
                return parity
        raise ValueError(f"Unknown week parity: {value!r}")


@dataclass(frozen=True)
class WeekReference:
    reference_date: date
    parity: Parity


def _as_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def start_of_week(value: date | datetime) -> date:
    """Most recent Saturday at or before the given civil day."""
    day = _as_date(value)
    # date.weekday(): Monday=0 .. Sunday=6; shift to Sunday=0.
    sunday_index = (day.weekday() + 1) % 7
    return day - timedelta(days=(sunday_index + 1) % 7)


def weeks_between(start: date | datetime, end: date | datetime) -> int:
    days_difference = (start_of_week(end) - start_of_week(start)).days
    return days_difference // 7


def current_week_parity(now: date | datetime, reference: WeekReference) -> Parity:
    weeks_passed = weeks_between(reference.reference_date, now)
    if weeks_passed % 2 == 0:
        return reference.parity
    return reference.parity.opposite()


def build_week_reference(persian_date: PersianDate, parity: Parity) -> WeekReference:
    if not is_valid_persian_date(persian_date.year, persian_date.month, persian_date.day):
        raise WeekReferenceError(f"Reference date {persian_date} is not a valid Persian date")
    gregorian = to_gregorian(persian_date.year, persian_date.month, persian_date.day)
    if gregorian is None:
        raise WeekReferenceError(f"Reference date {persian_date} could not be converted to Gregorian")
    LOGGER.info(
        "Reference Gregorian date %s for Persian %s (%s)",
        gregorian.isoformat(),
        persian_date,
        parity.value,
    )
    return WeekReference(reference_date=gregorian, parity=parity)
