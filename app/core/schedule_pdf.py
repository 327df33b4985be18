"""Weekly schedule rendered as a landscape A4 PDF, one page per week type.

Persian text is shaped with fpdf2's HarfBuzz engine (uharfbuzz) in RTL
direction, so the day column sits on the right edge of the table.
"""

from __future__ import annotations

import logging
from pathlib import Path

from fpdf import FPDF
from fpdf.enums import TextEmphasis, XPos, YPos
from fpdf.fonts import FontFace

from app.core.schedule import DAY_KEYS, PERSIAN_WEEKDAYS, UserSchedule, WeekSchedule, parse_time
from app.core.week_parity import Parity

LOGGER = logging.getLogger(__name__)

FONT_FAMILY = "Vazir"
EMPTY_CELL = "-"
DEFAULT_FOOTER = "@WeekStatusBot"

# (title, start, end), first class first.
TIME_SLOTS: tuple[tuple[str, str, str], ...] = (
    ("کلاس اول", "08:00", "10:00"),
    ("کلاس دوم", "10:00", "12:00"),
    ("کلاس سوم", "13:00", "15:00"),
    ("کلاس چهارم", "15:00", "17:00"),
    ("کلاس پنجم", "17:00", "19:00"),
)
_DAY_COLUMN_WIDTH = 25
_SLOT_COLUMN_WIDTH = 50


def slot_index(start_time: str) -> int | None:
    """Index into TIME_SLOTS for a lesson start time, None when it fits no slot."""
    minutes = parse_time(start_time)
    if minutes is None:
        return None
    for index, (_title, start, end) in enumerate(TIME_SLOTS):
        if parse_time(start) <= minutes < parse_time(end):
            return index
    return None


def _clean(text: str | None) -> str:
    value = (text or "").strip()
    return value or EMPTY_CELL


def build_header_row() -> list[str]:
    slots = [f"{title}\n{start} - {end}" for title, start, end in TIME_SLOTS]
    return [*reversed(slots), "روز"]


def build_week_rows(week: WeekSchedule) -> list[list[str]]:
    """Table body in visual (right-to-left) column order: last slot first, day last."""
    rows: list[list[str]] = []
    for day_key, day_label in zip(DAY_KEYS, PERSIAN_WEEKDAYS):
        cells: list[str] = [EMPTY_CELL] * len(TIME_SLOTS)
        for lesson in week.get(day_key, []):
            index = slot_index(lesson.start_time)
            if index is None:
                LOGGER.debug("Lesson %r at %s fits no PDF slot", lesson.lesson, lesson.start_time)
                continue
            text = f"{_clean(lesson.lesson)}\n{_clean(lesson.location)}"
            cells[index] = text if cells[index] == EMPTY_CELL else f"{cells[index]}\n---\n{text}"
        rows.append([*reversed(cells), day_label])
    return rows


class SchedulePDF(FPDF):
    def __init__(self, *, font_path: Path, footer_text: str = DEFAULT_FOOTER) -> None:
        super().__init__(orientation="L", unit="mm", format="A4")
        self._footer_text = footer_text
        self.add_font(FONT_FAMILY, fname=str(font_path))
        self.set_text_shaping(use_shaping_engine=True, direction="rtl")
        self.set_auto_page_break(auto=True, margin=12)

    def footer(self) -> None:
        self.set_y(-10)
        self.set_font(FONT_FAMILY, size=8)
        self.cell(0, 5, self._footer_text, align="R")


def _render_week_page(pdf: SchedulePDF, *, parity: Parity, full_name: str, week: WeekSchedule) -> None:
    pdf.add_page()
    pdf.set_font(FONT_FAMILY, size=18)
    pdf.cell(0, 10, "برنامه هفتگی", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font(FONT_FAMILY, size=12)
    pdf.cell(0, 8, f"نام: {full_name}", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.set_font(FONT_FAMILY, size=14)
    pdf.cell(0, 10, f"هفته {parity.label}", align="C", new_x=XPos.LMARGIN, new_y=YPos.NEXT)
    pdf.ln(4)

    pdf.set_font(FONT_FAMILY, size=9)
    col_widths = (*([_SLOT_COLUMN_WIDTH] * len(TIME_SLOTS)), _DAY_COLUMN_WIDTH)
    headings_style = FontFace(emphasis=TextEmphasis.NONE, fill_color=(220, 220, 220))
    with pdf.table(
        col_widths=col_widths,
        width=sum(col_widths),
        text_align="CENTER",
        headings_style=headings_style,
        line_height=6,
    ) as table:
        for row_cells in [build_header_row(), *build_week_rows(week)]:
            row = table.row()
            for cell in row_cells:
                row.cell(cell)


def render_schedule_pdf(
    schedule: UserSchedule,
    *,
    full_name: str,
    font_path: Path,
    footer_text: str = DEFAULT_FOOTER,
) -> bytes:
    pdf = SchedulePDF(font_path=font_path, footer_text=footer_text)
    for parity in (Parity.ODD, Parity.EVEN):
        _render_week_page(pdf, parity=parity, full_name=full_name, week=schedule.for_parity(parity))
    return bytes(pdf.output())
