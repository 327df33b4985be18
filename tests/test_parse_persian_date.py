from __future__ import annotations

import pytest

from app.core.jalali import PersianDate, days_in_month, parse_persian_date


@pytest.mark.parametrize(
    "text",
    [
        "1403/11/20",
        "۱۴۰۳/۱۱/۲۰",
        "١٤٠٣/١١/٢٠",
        "14031120",
        "1403-11-20",
        " 1403 / 11 / 20 ",
        "تاریخ: 1403/11/20",
    ],
)
def test_parse_supported_forms(text) -> None:
    assert parse_persian_date(text) == PersianDate(1403, 11, 20)


@pytest.mark.parametrize(
    "text",
    [
        "1403/13/01",
        "1403/07/31",
        "1402/12/30",
        "1403/00/10",
        "20/11/1403",
        "1299/01/01",
        "1403/11",
        "1403/11/20/1",
        "1403.11.20",
        "140311200",
        "abc",
        "",
        "//",
    ],
)
def test_parse_rejects_invalid_text(text) -> None:
    assert parse_persian_date(text) is None


def test_parse_non_string_is_invalid() -> None:
    assert parse_persian_date(None) is None
    assert parse_persian_date(14031120) is None  # type: ignore[arg-type]


def test_parse_leap_esfand() -> None:
    assert parse_persian_date("1403/12/30") == PersianDate(1403, 12, 30)


@pytest.mark.parametrize(
    "text",
    ["1403/1/1", "۱۴۰۳-۰۶-۳۱", "99999999", "1403//20", "--", "1403/-1/20", "0/0/0", "x1403y/z11/20w"],
)
def test_parse_never_returns_out_of_range_triple(text) -> None:
    result = parse_persian_date(text)

    if result is not None:
        assert 1 <= result.month <= 12
        assert 1 <= result.day <= days_in_month(result.year, result.month)
