"""Tests for amount parsing and formatting."""

import pytest

from app.errors import InvalidAmount
from app.money import ensure_positive_int, format_amount, parse_amount


@pytest.mark.parametrize(
    "text,expected",
    [
        ("100.00", 10000),
        ("100", 10000),
        (" 0.01 ", 1),
        ("12.345", 1235),
        ("12.344", 1234),
    ],
)
def test_parse_amount(text, expected):
    assert parse_amount(text) == expected


@pytest.mark.parametrize(
    "text",
    ["", "abc", "0", "-5", "0.004", "nan", "inf", "1e30", "12345678901234567890123456789", "1e20"],
)
def test_parse_amount_rejects(text):
    with pytest.raises(InvalidAmount):
        parse_amount(text)


def test_format_amount():
    assert format_amount(10000) == "100.00"
    assert format_amount(1) == "0.01"
    assert format_amount(0) == "0.00"
    assert format_amount(-550) == "-5.50"


def test_ensure_positive_int():
    assert ensure_positive_int(5) == 5
    for bad in (0, -1, 1.0, "5", True, None, 2**63):
        with pytest.raises(InvalidAmount):
            ensure_positive_int(bad)


def test_largest_storable_amount_is_accepted():
    assert ensure_positive_int(2**63 - 1) == 2**63 - 1
