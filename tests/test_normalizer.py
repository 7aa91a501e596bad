from datetime import date

import pytest

from caixafacil.core.normalizer import parse_date, parse_value


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("1.234,56", 1234.56),
        ("R$ 1.234,56", 1234.56),
        ("R$1.500,00", 1500.0),
        ("-1.500,00", -1500.0),
        ("12,5", 12.5),
        ("1.234.567,89", 1234567.89),
        ("  300  ", 300.0),
    ],
)
def test_parse_value_brazilian_format(raw, expected):
    assert parse_value(raw) == pytest.approx(expected)


@pytest.mark.parametrize("raw", ["", None, "abc", "R$", "--"])
def test_parse_value_non_numeric_is_zero(raw):
    assert parse_value(raw) == 0.0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("05/03/2024", "2024-03-05"),
        ("5/3/2024", "2024-03-05"),
        ("05-03-24", "2024-03-05"),
        ("31/12/99", "2099-12-31"),
        ("2024-03-05", "2024-03-05"),
        (" 05/03/2024 ", "2024-03-05"),
    ],
)
def test_parse_date_day_month_year(raw, expected):
    assert parse_date(raw) == expected


def test_parse_date_empty_is_none():
    assert parse_date("") is None
    assert parse_date("   ") is None
    assert parse_date(None) is None


def test_parse_date_unparseable_falls_back_to_today():
    today = date(2024, 7, 1)
    assert parse_date("ontem", today=today) == "2024-07-01"
    assert parse_date("32/13/2024", today=today) == "2024-07-01"


def test_parse_date_strict_mode_returns_none():
    assert parse_date("ontem", strict=True) is None
    assert parse_date("05/03/2024", strict=True) == "2024-03-05"


@pytest.mark.parametrize(
    "raw",
    ["05/03/2024 10:30", "05/03/2024 10:30:15", "2024-03-05T10:30:00Z", "2024-03-05 08:00:00-03:00"],
)
def test_parse_date_ignores_time_of_day(raw):
    assert parse_date(raw, today=date(2030, 1, 1)) == "2024-03-05"
