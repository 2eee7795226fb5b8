"""Tests for monetary and count input parsing."""

from decimal import Decimal

import pytest

from ledger.errors import InvalidAmount, ValidationError
from ledger.ledger_store import to_count, to_money


@pytest.mark.parametrize("raw,expected", [
    (20, Decimal("20.00")),
    ("12.50", Decimal("12.50")),
    (12.5, Decimal("12.50")),
    ("12.505", Decimal("12.51")),
    (" 7 ", Decimal("7.00")),
    ("9999999999999999.99", Decimal("9999999999999999.99")),
    ("1.5e2", Decimal("150.00")),
])
def test_to_money_parses_and_rounds(raw, expected):
    assert to_money(raw) == expected


@pytest.mark.parametrize("raw", [
    None, "", 0, "0", -5, "-0.01", "0.001", "abc", "NaN", "Infinity", True, False,
    "1e30", 1e30, "-1e30", "1e16", "10000000000000000",
])
def test_to_money_rejects(raw):
    with pytest.raises(InvalidAmount):
        to_money(raw)


def test_to_money_names_the_field():
    with pytest.raises(InvalidAmount) as exc_info:
        to_money("x", field="price")
    assert "price" in exc_info.value.message


@pytest.mark.parametrize("raw,expected", [(1, 1), ("3", 3), (12, 12)])
def test_to_count(raw, expected):
    assert to_count(raw, "machinesClaimed") == expected


@pytest.mark.parametrize("raw", [0, -1, "two", 2.5, None, True])
def test_to_count_rejects(raw):
    with pytest.raises(ValidationError):
        to_count(raw, "machinesClaimed")
