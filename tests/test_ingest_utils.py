from datetime import date, datetime, timedelta, timezone

import pytest

from bankfeed.ingest.utils import collapse_whitespace, parse_float_safely, to_civil_date


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ("12.50", 12.5),
        ("  7", 7.0),
        ("-3.25", -3.25),
        ("+4", 4.0),
        (".5", 0.5),
        ("1e3", 1000.0),
        ("12.50 CR", 12.5),
        ("1,234.50", 1.0),
    ],
)
def test_parse_float_safely_reads_numeric_prefix(text, expected):
    assert parse_float_safely(text) == expected


@pytest.mark.parametrize("text", ["", None, "n/a", "-", "abc12", "1e999", "   "])
def test_parse_float_safely_is_total(text):
    assert parse_float_safely(text) == 0.0


def test_parse_float_safely_remove_commas():
    assert parse_float_safely("1,234.50", remove_commas=True) == 1234.5
    assert parse_float_safely("12,000,000", remove_commas=True) == 12000000.0
    assert parse_float_safely(",", remove_commas=True) == 0.0


def test_collapse_whitespace():
    assert collapse_whitespace("  GRAB*123 \n\t SINGAPORE   SG ") == "GRAB*123 SINGAPORE SG"
    assert collapse_whitespace("") == ""


def test_to_civil_date_naive_is_local():
    assert to_civil_date(datetime(2024, 3, 24, 23, 59)) == date(2024, 3, 24)


def test_to_civil_date_converts_aware_values():
    # 20:00 UTC is 04:00 the next day in Singapore (UTC+8).
    assert to_civil_date(datetime(2024, 3, 24, 20, 0, tzinfo=timezone.utc)) == date(2024, 3, 25)
    west = timezone(timedelta(hours=-5))
    assert to_civil_date(datetime(2024, 3, 24, 10, 0, tzinfo=west)) == date(2024, 3, 24)
